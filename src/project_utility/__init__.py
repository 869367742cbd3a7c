"""
Project utility layer: reusable infrastructure primitives shared across dashboard services.

This package depends only on the Python standard library and vetted third-party libraries (Rich,
structlog, PyYAML, python-dotenv) so higher layers can import helpers without pulling in business
logic.
"""

from __future__ import annotations

from .clock import ensure_utc, freshness_key, to_instant, utc_iso, utc_now
from .logging import configure_logging
from .tracing import TraceSpan, trace_span

__all__ = [
    "TraceSpan",
    "configure_logging",
    "ensure_utc",
    "freshness_key",
    "to_instant",
    "trace_span",
    "utc_iso",
    "utc_now",
]
