from __future__ import annotations

"""Structured telemetry events: structlog JSONL file, Rich stderr summary, in-process listeners."""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, TextIO

import structlog
from rich.console import Console
from rich.text import Text

from project_utility.clock import utc_iso
from project_utility.config.paths import get_log_root

TelemetryListener = Callable[[Mapping[str, Any]], None]

_LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40, "critical": 50}
_CONSOLE_STYLES = {
    "debug": "dim",
    "info": "cyan",
    "warning": "yellow",
    "error": "bold red",
    "critical": "bold white on red",
}
_SUMMARY_KEYS = ("endpoint", "status_code", "latency_ms", "sequence", "node_count", "outcome")

_log = logging.getLogger("project_utility.telemetry")


def _rank(level: str) -> int:
    return _LEVELS.get(level.lower(), _LEVELS["info"])


def _truncate(value: str, limit: int = 160) -> str:
    return value if len(value) <= limit else value[: limit - 3] + "..."


class TelemetryEmitter:
    """
    Fan one event out to every configured sink.

    Until `configure()` runs only the console summary and listeners are active, so library code
    can emit freely without creating files.

    An `error` listed in `sensitive` is shortened to a preview in the console summary only; the
    JSONL file and listeners receive it whole.
    """

    def __init__(self, *, console: Optional[Console] = None) -> None:
        self._lock = threading.Lock()
        self._listeners: List[TelemetryListener] = []
        self._console = console or Console(stderr=True)
        self._file_logger: Any = None
        self._file_handle: Optional[TextIO] = None
        self._console_level = os.getenv("DASHBOARD_TELEMETRY_CONSOLE_LEVEL", "warning")
        self._file_level = os.getenv("DASHBOARD_TELEMETRY_FILE_LEVEL", "debug")
        self._prefixes = tuple(
            prefix.strip() for prefix in os.getenv("DASHBOARD_TELEMETRY_EVENTS", "").split(",") if prefix.strip()
        )

    def configure(self, *, log_root: Optional[Path] = None) -> Path:
        path = (log_root or get_log_root()).resolve() / "telemetry.jsonl"
        path.parent.mkdir(parents=True, exist_ok=True)
        with self._lock:
            if self._file_handle is not None:
                self._file_handle.close()
            self._file_handle = path.open("a", encoding="utf-8")
            self._file_logger = structlog.wrap_logger(
                structlog.WriteLogger(self._file_handle),
                processors=[
                    structlog.processors.dict_tracebacks,
                    structlog.processors.JSONRenderer(ensure_ascii=False, default=str),
                ],
                wrapper_class=structlog.BoundLogger,
            )
        return path

    def emit(
        self,
        event_type: str,
        *,
        level: str = "info",
        payload: Optional[Mapping[str, Any]] = None,
        sensitive: Optional[Sequence[str]] = None,
        **fields: Any,
    ) -> None:
        if self._prefixes and not event_type.startswith(self._prefixes):
            return
        level = level.lower()
        event: Dict[str, Any] = {
            "event_type": event_type,
            "level": level,
            "timestamp": utc_iso(),
            **fields,
            "payload": dict(payload or {}),
            "sensitive": list(dict.fromkeys(sensitive or ())),
        }
        with self._lock:
            file_logger = self._file_logger
            listeners = list(self._listeners)
        if file_logger is not None and _rank(level) >= _rank(self._file_level):
            file_logger.msg(event_type, **{key: value for key, value in event.items() if key != "event_type"})
        if _rank(level) >= _rank(self._console_level):
            self._print_summary(event)
        if listeners:
            frozen = json.loads(json.dumps(event, ensure_ascii=False, default=str))
            for listener in listeners:
                try:
                    listener(frozen)
                except Exception:
                    _log.exception("telemetry.listener_failed", extra={"event_type": event_type})

    def add_listener(self, listener: TelemetryListener) -> None:
        with self._lock:
            if listener not in self._listeners:
                self._listeners.append(listener)

    def remove_listener(self, listener: TelemetryListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def _print_summary(self, event: Mapping[str, Any]) -> None:
        payload = event["payload"]
        line = Text(f"[{event['level'].upper()}] {event['event_type']}", style=_CONSOLE_STYLES.get(event["level"], ""))
        parts = [f"{key}={payload[key]}" for key in _SUMMARY_KEYS if payload.get(key) is not None]
        if parts:
            line.append("  " + " ".join(parts), style="dim")
        error = payload.get("error")
        if error:
            text = str(error)
            line.append(f"  error={_truncate(text) if 'error' in event['sensitive'] else text}", style="red")
        self._console.print(line)


_EMITTER: Optional[TelemetryEmitter] = None
_EMITTER_LOCK = threading.Lock()


def get_telemetry() -> TelemetryEmitter:
    global _EMITTER
    if _EMITTER is None:
        with _EMITTER_LOCK:
            if _EMITTER is None:
                _EMITTER = TelemetryEmitter()
    return _EMITTER


def setup_telemetry(log_root: Optional[Path] = None) -> Path:
    return get_telemetry().configure(log_root=log_root)


def emit(event_type: str, **kwargs: Any) -> None:
    get_telemetry().emit(event_type, **kwargs)


def register_listener(callback: TelemetryListener) -> None:
    get_telemetry().add_listener(callback)


def unregister_listener(callback: TelemetryListener) -> None:
    get_telemetry().remove_listener(callback)


__all__ = [
    "TelemetryEmitter",
    "TelemetryListener",
    "emit",
    "get_telemetry",
    "register_listener",
    "setup_telemetry",
    "unregister_listener",
]
