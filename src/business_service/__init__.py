from __future__ import annotations

"""Business Service layer entrypoints."""

from business_service.registry import RegistryStore, reconcile_observations

__all__ = [
    "RegistryStore",
    "reconcile_observations",
]
