"""Integrations managed by the foundational service layer."""

from __future__ import annotations

__all__ = [
    "node_api_client",
]
