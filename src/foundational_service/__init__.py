"""Foundational Service Layer top-level package."""

from __future__ import annotations

__all__ = [
    "contracts",
    "integrations",
]
