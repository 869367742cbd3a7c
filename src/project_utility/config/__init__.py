"""
Configuration helpers exposed by the project utility layer.
"""

from __future__ import annotations

from .paths import get_config_path, get_log_root, get_repo_root
from .settings import DashboardSettings, load_dashboard_settings

__all__ = [
    "DashboardSettings",
    "get_config_path",
    "get_log_root",
    "get_repo_root",
    "load_dashboard_settings",
]
