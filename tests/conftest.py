from __future__ import annotations

import sys
from pathlib import Path

import pytest

SRC_PATH = Path(__file__).resolve().parents[1] / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))


@pytest.fixture(autouse=True)
def _isolated_log_root(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    log_root = tmp_path / "logs"
    monkeypatch.setenv("DASHBOARD_LOG_ROOT", str(log_root))
    return log_root
