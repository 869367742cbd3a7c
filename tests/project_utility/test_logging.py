from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterator

import pytest
from rich.console import Console

from project_utility.logging import ERROR_LOG_FILENAME, INFO_LOG_FILENAME, _AlertThrottle, configure_logging


@pytest.fixture
def restore_root_logger() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    try:
        yield
    finally:
        for handler in root.handlers:
            if handler not in handlers:
                handler.close()
        root.handlers[:] = handlers
        root.setLevel(level)


def test_console_and_files_receive_structured_records(tmp_path: Path, restore_root_logger: None) -> None:
    console = Console(record=True, width=160)
    configure_logging(log_root=tmp_path, level=logging.DEBUG, console=console)
    log = logging.getLogger("business_service.registry.store")

    log.info("registry.fetch.completed", extra={"sequence": 4, "node_count": 12})
    log.warning("registry.fetch.failed", extra={"sequence": 5, "error": "HTTP 503: Service Unavailable"})
    log.warning("registry.fetch.failed", extra={"sequence": 5, "error": "HTTP 503: Service Unavailable"})
    for handler in logging.getLogger().handlers:
        handler.flush()

    output = console.export_text()
    assert "registry.fetch.completed" in output
    assert "└── node_count: 12" in output
    assert output.count("registry.fetch.failed") == 1

    info_log = (tmp_path / INFO_LOG_FILENAME).read_text(encoding="utf-8")
    error_log = (tmp_path / ERROR_LOG_FILENAME).read_text(encoding="utf-8")
    assert "registry.fetch.completed | sequence=4 node_count=12" in info_log
    assert "registry.fetch.failed" not in info_log
    assert "error=HTTP 503: Service Unavailable" in error_log
    assert (tmp_path / "telemetry.jsonl").exists()


def test_extra_loggers_are_configured(tmp_path: Path, restore_root_logger: None) -> None:
    configured = configure_logging(
        log_root=tmp_path,
        console=Console(record=True),
        extra_loggers={"foundational_service.integrations": {"level": logging.DEBUG}},
    )

    assert configured["foundational_service.integrations"].level == logging.DEBUG


def test_alert_throttle_forgets_expired_runs() -> None:
    throttle = _AlertThrottle(window_seconds=10.0)

    assert throttle.admit("registry.fetch.failed|HTTP 502", 0.0) == 0
    assert throttle.admit("registry.fetch.failed|HTTP 502", 1.0) is None
    for index in range(100):
        assert throttle.admit(f"registry.fetch.failed|error {index}", 2.0) == 0
    assert len(throttle) == 101

    assert throttle.admit("auto_refresh.cycle_failed", 20.0) == 0
    assert len(throttle) == 1
