"""Wire schema for the upstream node listing endpoints.

Node entries carry an open set of telemetry fields (storage, uptime, latency, credits, ...). Only
the keys reconciliation relies on are validated; everything else is kept verbatim as passthrough
telemetry.
"""
from __future__ import annotations

from typing import Any, List, Literal, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from business_service.registry.models import NodePage, PaginationMeta, RawObservation

__all__ = [
    "SchemaValidationError",
    "NodePayload",
    "PaginationPayload",
    "NodesResponsePayload",
    "parse_node",
    "parse_nodes_response",
]

_RESERVED_KEYS = frozenset({"pubkey", "address", "status", "last_seen"})


class SchemaValidationError(ValueError):
    """Raised when an upstream payload does not match the node listing schema."""


class NodePayload(BaseModel):
    pubkey: str = Field(min_length=1)
    status: Literal["active", "inactive", "syncing", "online", "offline", "delinquent", "warning"]
    address: Optional[str] = None
    last_seen: Optional[Union[int, float, str]] = None

    model_config = ConfigDict(extra="allow")

    @field_validator("pubkey")
    @classmethod
    def _strip_pubkey(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("pubkey must not be blank")
        return value

    def to_observation(self) -> RawObservation:
        extras = {key: value for key, value in (self.model_extra or {}).items() if key not in _RESERVED_KEYS}
        return RawObservation(
            identity=self.pubkey,
            status=self.status,
            address=self.address or "",
            last_seen=self.last_seen,
            telemetry=extras,
        )


class PaginationPayload(BaseModel):
    total_items: int = Field(ge=0)
    total_pages: int = Field(ge=0)
    page: int = Field(ge=1)
    limit: int = Field(ge=1)

    def to_meta(self) -> PaginationMeta:
        return PaginationMeta(
            total_items=self.total_items,
            total_pages=self.total_pages,
            page=self.page,
            limit=self.limit,
        )


class NodesResponsePayload(BaseModel):
    nodes: List[NodePayload]
    pagination: PaginationPayload

    def to_page(self) -> NodePage:
        return NodePage(
            nodes=tuple(node.to_observation() for node in self.nodes),
            pagination=self.pagination.to_meta(),
        )


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    detail = first.get("msg", "invalid payload")
    suffix = f" (+{exc.error_count() - 1} more)" if exc.error_count() > 1 else ""
    return f"{location}: {detail}{suffix}" if location else f"{detail}{suffix}"


def parse_nodes_response(payload: Any) -> NodePage:
    if not isinstance(payload, Mapping):
        raise SchemaValidationError("node listing must be a JSON object")
    try:
        return NodesResponsePayload.model_validate(payload).to_page()
    except ValidationError as exc:
        raise SchemaValidationError(_describe(exc)) from exc


def parse_node(payload: Any) -> RawObservation:
    if not isinstance(payload, Mapping):
        raise SchemaValidationError("node detail must be a JSON object")
    try:
        return NodePayload.model_validate(payload).to_observation()
    except ValidationError as exc:
        raise SchemaValidationError(_describe(exc)) from exc
