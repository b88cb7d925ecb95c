from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    """Server-side 'now' in UTC (naive, canonical)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Serializes datetime to ISO-8601 with trailing 'Z'.
    If dt is naive, it is treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt_utc = dt.astimezone(timezone.utc).replace(microsecond=0)
    return dt_utc.isoformat().replace("+00:00", "Z")


def to_naive_utc(dt: datetime) -> datetime:
    """Drop tzinfo after converting to UTC; SQLite hands back naive values."""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def has_elapsed(since: datetime, window: timedelta, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    return to_naive_utc(now) - to_naive_utc(since) > window


def short_date(dt: Optional[datetime]) -> Optional[str]:
    """Date-only rendering used by purchase report rows."""
    if dt is None:
        return None
    return to_naive_utc(dt).strftime("%Y-%m-%d")
