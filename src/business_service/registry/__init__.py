"""Node registry: reconciliation of raw node listings and the query/snapshot store."""

from __future__ import annotations

from .models import (
    CanonicalRecord,
    NodePage,
    PaginationMeta,
    QueryState,
    RawObservation,
    RegistrySnapshot,
)
from .reconciliation import reconcile_observations
from .store import NodeFetcher, RegistryStore, SnapshotListener

__all__ = [
    "CanonicalRecord",
    "NodeFetcher",
    "NodePage",
    "PaginationMeta",
    "QueryState",
    "RawObservation",
    "RegistrySnapshot",
    "RegistryStore",
    "SnapshotListener",
    "reconcile_observations",
]
