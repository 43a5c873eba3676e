"""
Time helpers for horizon and freshness arithmetic.

All instants handled by the engine are timezone-aware UTC datetimes.  Values
read back from SQLite (ISO-8601 strings) or supplied on the command line may
be naive; ``ensure_utc()`` treats those as UTC.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

SECONDS_PER_DAY = 86_400


def utcnow() -> datetime:
    """Return the current UTC datetime with timezone info.

    Prefer this over ``datetime.utcnow()`` (which returns naive datetimes).
    """
    return datetime.now(tz=timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Return ``value`` as an aware UTC datetime (naive input is assumed UTC)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def whole_days_between(start: datetime, end: datetime) -> int:
    """Return the number of complete days from ``start`` to ``end``.

    Partial days are floored, so 29 days and 23 hours counts as 29.  Negative
    spans floor towards minus infinity.
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return int(delta.total_seconds() // SECONDS_PER_DAY)


def days_ago(now: datetime, days: int) -> datetime:
    """Return the instant ``days`` whole days before ``now``."""
    return ensure_utc(now) - timedelta(days=days)


def parse_instant(text: str) -> datetime:
    """Parse an ISO date or datetime string into an aware UTC datetime.

    ``"2025-03-01"`` is read as midnight UTC.

    Raises:
        ValueError: If ``text`` is not ISO-8601.
    """
    return ensure_utc(datetime.fromisoformat(text.strip()))
