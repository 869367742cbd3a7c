"""
Centralised filesystem path helpers for the dashboard client.

Works with the repository's `src/` layout: the repo root is the first ancestor holding both `src`
and `tests`.
"""

from __future__ import annotations

import os
from pathlib import Path

_REPO_MARKERS = ("src", "tests")


def get_repo_root() -> Path:
    """Return the absolute path to the repository root."""

    current = Path(__file__).resolve()
    for parent in current.parents:
        if all((parent / marker).exists() for marker in _REPO_MARKERS):
            return parent
    # Fallback: ascend from src/project_utility/config/paths.py to repository root.
    return current.parents[3]


def get_log_root() -> Path:
    """Return the base directory where all runtime logs must live."""

    override = os.getenv("DASHBOARD_LOG_ROOT")
    if override:
        return Path(override).expanduser().resolve()
    return get_repo_root() / "var" / "logs"


def get_config_path() -> Path:
    """Return the YAML settings file location, honouring `DASHBOARD_CONFIG`."""

    override = os.getenv("DASHBOARD_CONFIG")
    if override:
        return Path(override).expanduser()
    return get_repo_root() / "config" / "dashboard.yaml"


__all__ = ["get_config_path", "get_log_root", "get_repo_root"]
