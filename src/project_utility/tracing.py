"""Request-scoped timing spans reported through the telemetry emitter."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from time import perf_counter
from typing import Any, Dict, Optional

from project_utility.clock import utc_iso, utc_now
from project_utility.telemetry import emit as telemetry_emit


@dataclass(slots=True)
class TraceSpan:
    """
    Time one unit of outbound work.

    On exit the span records `duration_ms` and `outcome` ("ok" or "error") and emits a single
    `<name>.finished` telemetry event; failures are emitted at warning level with the exception
    type, while the exception itself still propagates.
    """

    name: str
    attributes: Dict[str, Any] = field(default_factory=dict)
    started_at: Optional[datetime] = None
    duration_ms: Optional[float] = None
    outcome: str = "pending"
    _origin: float = field(init=False, default=0.0)

    async def __aenter__(self) -> "TraceSpan":
        self.started_at = utc_now()
        self._origin = perf_counter()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        self.duration_ms = self.elapsed_ms()
        self.outcome = "ok" if exc is None else "error"
        payload: Dict[str, Any] = {
            **self.attributes,
            "started_at": utc_iso(self.started_at) if self.started_at else None,
            "latency_ms": self.duration_ms,
            "outcome": self.outcome,
        }
        if exc is not None:
            payload["error_type"] = exc_type.__name__
            payload["error"] = str(exc)
        telemetry_emit(
            f"{self.name}.finished",
            level="debug" if exc is None else "warning",
            span=self.name,
            payload=payload,
            sensitive=["error"],
        )
        return False

    def elapsed_ms(self) -> float:
        return round((perf_counter() - self._origin) * 1000, 3)

    def set_attribute(self, key: str, value: Any) -> None:
        self.attributes[key] = value


def trace_span(name: str, **attributes: Any) -> TraceSpan:
    """Usage: `async with trace_span("node_api.request", endpoint="/api/nodes") as span: ...`"""

    return TraceSpan(name=name, attributes=dict(attributes))


__all__ = ["TraceSpan", "trace_span"]
