"""
Time helpers for dashboard services.

All runtime timestamps route through this module so snapshots and telemetry agree on UTC. Upstream
node listings report `last_seen` either as epoch milliseconds or as ISO-8601 text; `to_instant` folds
both shapes into aware datetimes so they can be compared.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

EARLIEST_INSTANT = datetime.min.replace(tzinfo=timezone.utc)


def utc_now() -> datetime:
    """Current aware datetime in UTC."""

    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """Convert any datetime into UTC, defaulting naive values."""

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def utc_iso(dt: Optional[datetime] = None) -> str:
    """Render ISO-8601 string in UTC with explicit offset."""

    return ensure_utc(dt or utc_now()).isoformat()


def to_instant(value: Any) -> Optional[datetime]:
    """
    Interpret a raw `last_seen` value as an aware datetime.

    Numbers are epoch milliseconds, strings are ISO-8601 (a trailing `Z` is accepted). Returns None for
    anything absent or unparseable.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            return None
    return None


def freshness_key(value: Any) -> datetime:
    """Sort key for `last_seen` values; missing values rank as the earliest possible instant."""

    return to_instant(value) or EARLIEST_INSTANT


__all__ = [
    "EARLIEST_INSTANT",
    "ensure_utc",
    "freshness_key",
    "to_instant",
    "utc_iso",
    "utc_now",
]
