"""Load dashboard runtime settings from defaults, YAML overrides, and the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml
from dotenv import load_dotenv

from project_utility.config.paths import get_config_path, get_repo_root

DEFAULT_API_BASE_URL = "http://127.0.0.1:8000"

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

# settings field -> environment variable
_ENV_OVERRIDES = {
    "api_base_url": "PUBLIC_API_URL",
    "request_timeout": "NODE_API_TIMEOUT",
    "auto_refresh": "DASHBOARD_AUTO_REFRESH",
    "refresh_interval": "DASHBOARD_REFRESH_INTERVAL",
    "page_limit": "DASHBOARD_PAGE_LIMIT",
    "include_offline": "DASHBOARD_INCLUDE_OFFLINE",
}


@dataclass(slots=True, frozen=True)
class DashboardSettings:
    api_base_url: str = DEFAULT_API_BASE_URL
    request_timeout: float = 10.0
    auto_refresh: bool = True
    refresh_interval: float = 7.0
    page_limit: int = 50
    include_offline: bool = True

    def __post_init__(self) -> None:
        if not self.api_base_url:
            raise ValueError("api_base_url must not be empty")
        if self.request_timeout <= 0:
            raise ValueError("request_timeout must be positive")
        if self.refresh_interval <= 0:
            raise ValueError("refresh_interval must be positive")
        if self.page_limit < 1:
            raise ValueError("page_limit must be >= 1")


def _coerce_bool(name: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"{name}: expected a boolean, got {value!r}")


def _coerce(name: str, value: Any) -> Any:
    if name in {"auto_refresh", "include_offline"}:
        return _coerce_bool(name, value)
    try:
        if name in {"request_timeout", "refresh_interval"}:
            return float(value)
        if name == "page_limit":
            return int(value)
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name}: invalid value {value!r}") from exc
    return str(value).strip().rstrip("/")


def _load_yaml_overrides(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    except yaml.YAMLError as exc:
        raise RuntimeError(f"Failed to load dashboard config from {path}") from exc
    section = data.get("dashboard", data) if isinstance(data, Mapping) else None
    if not isinstance(section, Mapping):
        raise RuntimeError(f"Dashboard config at {path} must be a mapping")
    known = set(DashboardSettings.__dataclass_fields__)
    return {key: value for key, value in section.items() if key in known}


def _load_env_overrides(environ: Mapping[str, str]) -> Dict[str, Any]:
    overrides: Dict[str, Any] = {}
    for field_name, env_var in _ENV_OVERRIDES.items():
        raw = environ.get(env_var)
        if raw is None or raw.strip() == "":
            continue
        overrides[field_name] = raw
    return overrides


def load_dashboard_settings(
    *,
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
    use_dotenv: bool = True,
) -> DashboardSettings:
    """
    Build settings with precedence defaults < YAML file < environment.

    `.env` at the repository root is loaded first (without clobbering variables that are already
    set) unless `use_dotenv` is False.
    """

    if use_dotenv:
        load_dotenv(get_repo_root() / ".env", override=False)
    env = os.environ if environ is None else environ

    merged: Dict[str, Any] = {}
    merged.update(_load_yaml_overrides(config_path or get_config_path()))
    merged.update(_load_env_overrides(env))

    settings = DashboardSettings()
    coerced = {name: _coerce(name, value) for name, value in merged.items()}
    return replace(settings, **coerced)


__all__ = ["DEFAULT_API_BASE_URL", "DashboardSettings", "load_dashboard_settings"]
