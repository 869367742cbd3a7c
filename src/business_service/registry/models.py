from __future__ import annotations

"""Node registry domain models."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from types import MappingProxyType
from typing import Any, Literal, Mapping, Optional, Tuple, Union

__all__ = [
    "DEFAULT_PAGE_LIMIT",
    "NODE_STATUSES",
    "SORT_FIELDS",
    "SORT_ORDERS",
    "CanonicalRecord",
    "LastSeen",
    "NodePage",
    "NodeStatus",
    "PaginationMeta",
    "QueryState",
    "RawObservation",
    "RegistrySnapshot",
    "SortField",
    "SortOrder",
]

NodeStatus = Literal["active", "inactive", "syncing", "online", "offline", "delinquent", "warning"]
SortField = Literal["storage", "uptime", "latency", "score", "credits", "performance"]
SortOrder = Literal["asc", "desc"]
LastSeen = Union[int, float, str, None]

NODE_STATUSES: Tuple[str, ...] = ("active", "inactive", "syncing", "online", "offline", "delinquent", "warning")
SORT_FIELDS: Tuple[str, ...] = ("storage", "uptime", "latency", "score", "credits", "performance")
SORT_ORDERS: Tuple[str, ...] = ("asc", "desc")

DEFAULT_PAGE_LIMIT = 50


def _frozen_mapping(values: Optional[Mapping[str, Any]]) -> Mapping[str, Any]:
    return MappingProxyType(dict(values or {}))


@dataclass(slots=True, frozen=True)
class RawObservation:
    """One upstream-reported node entry; several may share an identity."""

    identity: str
    status: str
    address: str = ""
    last_seen: LastSeen = None
    telemetry: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.identity:
            raise ValueError("observation identity must not be empty")
        object.__setattr__(self, "address", (self.address or "").strip())
        object.__setattr__(self, "telemetry", _frozen_mapping(self.telemetry))


@dataclass(slots=True, frozen=True)
class CanonicalRecord:
    """Merged view of every observation sharing one identity."""

    identity: str
    status: str
    address: str = ""
    addresses: Tuple[str, ...] = ()
    last_seen: LastSeen = None
    telemetry: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "addresses", tuple(self.addresses))
        object.__setattr__(self, "telemetry", _frozen_mapping(self.telemetry))

    def to_dict(self) -> dict[str, Any]:
        return {
            **dict(self.telemetry),
            "pubkey": self.identity,
            "address": self.address,
            "all_ips": list(self.addresses),
            "status": self.status,
            "last_seen": self.last_seen,
        }


@dataclass(slots=True, frozen=True)
class PaginationMeta:
    total_items: int
    total_pages: int
    page: int
    limit: int


@dataclass(slots=True, frozen=True)
class NodePage:
    """Fetch collaborator result: one page of raw observations."""

    nodes: Tuple[RawObservation, ...]
    pagination: PaginationMeta

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))


@dataclass(slots=True, frozen=True)
class QueryState:
    page: int = 1
    limit: int = DEFAULT_PAGE_LIMIT
    status: Optional[str] = None
    sort: Optional[str] = None
    order: Optional[str] = None
    include_offline: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.page, bool) or not isinstance(self.page, int) or self.page < 1:
            raise ValueError(f"page must be an integer >= 1, got {self.page!r}")
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit < 1:
            raise ValueError(f"limit must be an integer >= 1, got {self.limit!r}")
        if self.status is not None and self.status not in NODE_STATUSES:
            raise ValueError(f"unknown status filter {self.status!r}")
        if self.sort is not None and self.sort not in SORT_FIELDS:
            raise ValueError(f"unknown sort field {self.sort!r}")
        if self.order is not None and self.order not in SORT_ORDERS:
            raise ValueError(f"unknown sort order {self.order!r}")
        if not isinstance(self.include_offline, bool):
            raise ValueError("include_offline must be a boolean")

    def with_page(self, page: int) -> "QueryState":
        return replace(self, page=page)

    def to_params(self) -> dict[str, str]:
        """Render as upstream query-string parameters, omitting unset values."""

        params: dict[str, str] = {"page": str(self.page), "limit": str(self.limit)}
        if self.status:
            params["status"] = self.status
        if self.sort:
            params["sort"] = self.sort
        if self.order:
            params["order"] = self.order
        params["include_offline"] = "true" if self.include_offline else "false"
        return params


@dataclass(slots=True, frozen=True)
class RegistrySnapshot:
    """Published registry state; replaced wholesale, never patched in place."""

    loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None
    nodes: Tuple[CanonicalRecord, ...] = ()
    pagination: Optional[PaginationMeta] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "nodes", tuple(self.nodes))
