"""
Rich-backed logging for the dashboard client.

Records are logged as dotted event names (`registry.fetch.failed`) with their context in `extra`.
`configure_logging()` routes them to:

* the console: DEBUG/INFO lines with the known `extra` keys rendered as a small tree, and
  WARNING+ lines as one-line alerts where identical alerts repeated within a window are folded
  into a "+N suppressed" counter;
* `dashboard-info.log` (up to INFO) and `dashboard-error.log` (WARNING+) under the log root,
  both size-rotated.
"""

from __future__ import annotations

import logging
import time
import traceback
from datetime import datetime
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from rich.console import Console
from rich.text import Text

from project_utility.config.paths import get_log_root
from project_utility.telemetry import setup_telemetry

INFO_LOG_FILENAME = "dashboard-info.log"
ERROR_LOG_FILENAME = "dashboard-error.log"

CONTEXT_KEYS = (
    "sequence",
    "page",
    "limit",
    "status",
    "sort",
    "order",
    "include_offline",
    "raw_count",
    "node_count",
    "endpoint",
    "status_code",
    "latency_ms",
    "interval",
    "error",
)

_ROTATE_BYTES = 2 * 1024 * 1024
_ROTATE_BACKUPS = 5


def _record_context(record: logging.LogRecord) -> List[Tuple[str, str]]:
    pairs: List[Tuple[str, str]] = []
    for key in CONTEXT_KEYS:
        value = getattr(record, key, None)
        if value is None or value == "":
            continue
        pairs.append((key, str(value)))
    return pairs


class _AlertThrottle:
    """
    Let the first of a run of identical alerts through and count the rest.

    Runs older than the window are dropped once per window, so the table only holds keys seen
    recently; a dropped run's suppressed count is not reported.
    """

    def __init__(self, window_seconds: float) -> None:
        self._window = window_seconds
        self._seen: Dict[str, Tuple[float, int]] = {}
        self._pruned_at = 0.0

    def __len__(self) -> int:
        return len(self._seen)

    def admit(self, key: str, now: float) -> Optional[int]:
        last = self._seen.get(key)
        if last is not None and now - last[0] < self._window:
            self._seen[key] = (last[0], last[1] + 1)
            return None
        self._prune(now)
        self._seen[key] = (now, 0)
        return last[1] if last is not None else 0

    def _prune(self, now: float) -> None:
        if now - self._pruned_at < self._window:
            return
        self._pruned_at = now
        for stale in [key for key, (started, _) in self._seen.items() if now - started >= self._window]:
            del self._seen[stale]


class _RichConsoleHandler(logging.Handler):
    _STYLES = {
        logging.DEBUG: "dim",
        logging.INFO: "bold cyan",
        logging.WARNING: "bold yellow",
        logging.ERROR: "bold red",
        logging.CRITICAL: "bold white on red",
    }

    def __init__(self, console: Console, *, alert_window: float = 60.0) -> None:
        super().__init__(level=logging.DEBUG)
        self._console = console
        self._throttle = _AlertThrottle(alert_window)

    def emit(self, record: logging.LogRecord) -> None:
        if getattr(logging, "_shutdown", False):
            return
        try:
            if record.levelno >= logging.WARNING:
                line = self._render_alert(record)
            else:
                line = self._render_event(record)
            if line is not None:
                self._console.print(line)
        except Exception:
            self.handleError(record)

    def _header(self, record: logging.LogRecord, timestamp: str) -> Text:
        text = Text(timestamp, style="dim")
        text.append(f" {record.levelname:<8} ", style=self._STYLES.get(record.levelno, "white"))
        text.append(f"[{record.name}] ", style="bold white")
        return text

    def _render_event(self, record: logging.LogRecord) -> Text:
        stamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S.%f")[:-3]
        text = self._header(record, stamp)
        text.append(record.getMessage())
        entries = _record_context(record)
        if record.exc_info:
            entries.append(("traceback", "".join(traceback.format_exception(*record.exc_info)).rstrip()))
        for index, (key, value) in enumerate(entries):
            last = index == len(entries) - 1
            branch = "└── " if last else "├── "
            hanging = "    " + ("    " if last else "│   ")
            text.append(f"\n    {branch}{key}: ", style="dim")
            text.append(value.replace("\n", "\n" + hanging), style="italic red" if key in ("error", "traceback") else "white")
        return text

    def _render_alert(self, record: logging.LogRecord) -> Optional[Text]:
        message = record.getMessage()
        key = "|".join((record.name, message, str(getattr(record, "endpoint", "")), str(getattr(record, "error", ""))))
        suppressed = self._throttle.admit(key, time.monotonic())
        if suppressed is None:
            return None
        text = self._header(record, datetime.fromtimestamp(record.created).strftime("%H:%M:%S"))
        text.append(message, style="red" if record.levelno >= logging.ERROR else "yellow")
        if suppressed:
            text.append(f" (+{suppressed} suppressed)", style="dim")
        context = _record_context(record)
        if context:
            text.append(" :: " + " ".join(f"{name}={value}" for name, value in context), style="dim")
        if record.exc_info and record.exc_info[1] is not None:
            text.append(f"\n    {record.exc_info[0].__name__}: {record.exc_info[1]}", style="italic red")
        return text


class _MaxLevelFilter(logging.Filter):
    def __init__(self, max_level: int) -> None:
        super().__init__()
        self._max_level = max_level

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno <= self._max_level


class _ContextFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        line = super().format(record)
        context = _record_context(record)
        if context:
            line = f"{line} | " + " ".join(f"{key}={value}" for key, value in context)
        return line


def _rotating_file_handler(path: Path, *, errors: bool) -> logging.Handler:
    handler = RotatingFileHandler(path, maxBytes=_ROTATE_BYTES, backupCount=_ROTATE_BACKUPS, encoding="utf-8")
    handler.setFormatter(_ContextFormatter("%(asctime)s %(levelname)-8s %(name)s :: %(message)s", "%Y-%m-%d %H:%M:%S"))
    if errors:
        handler.setLevel(logging.WARNING)
    else:
        handler.addFilter(_MaxLevelFilter(logging.INFO))
    return handler


def configure_logging(
    *,
    log_root: Optional[Path] = None,
    level: int = logging.INFO,
    console: Optional[Console] = None,
    extra_loggers: Optional[Dict[str, Dict[str, Any]]] = None,
) -> Dict[str, logging.Logger]:
    """
    Install the console and file handlers on the root logger and start the telemetry file sink.

    `extra_loggers` maps logger names to `{"level": ..., "handlers": [...]}` overrides; the
    configured loggers are returned by name.
    """

    root = (log_root or get_log_root()).resolve()
    root.mkdir(parents=True, exist_ok=True)
    setup_telemetry(log_root=root)
    logging.captureWarnings(True)

    logging.basicConfig(
        level=level,
        handlers=[
            _RichConsoleHandler(console or Console(stderr=True)),
            _rotating_file_handler(root / INFO_LOG_FILENAME, errors=False),
            _rotating_file_handler(root / ERROR_LOG_FILENAME, errors=True),
        ],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

    configured: Dict[str, logging.Logger] = {}
    for name, options in (extra_loggers or {}).items():
        logger = logging.getLogger(name)
        if "level" in options:
            logger.setLevel(options["level"])
        for handler in options.get("handlers", ()):
            logger.addHandler(handler)
        configured[name] = logger
    return configured


__all__ = ["ERROR_LOG_FILENAME", "INFO_LOG_FILENAME", "configure_logging"]
