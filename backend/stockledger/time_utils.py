# Overview: UTC clock, ISO-8601 parsing and calendar-day helpers.

"""
All timestamps are stored UTC-naive and rendered with a trailing 'Z'.

Calendar days (notification dedup, report buckets, dashboard defaults) are
UTC days: [00:00, 24:00) of the stored value.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _as_utc_naive(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Accepts dates ("2026-03-01", read as midnight UTC), naive datetimes
    (read as UTC) and offset-qualified datetimes including a 'Z' suffix.

    Blank input gives None; anything else unparseable raises ValueError.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if text[-1] in "zZ":
        text = text[:-1] + "+00:00"

    return _as_utc_naive(datetime.fromisoformat(text))


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 in UTC, e.g. 2026-03-01T08:30:00Z."""
    if dt is None:
        return None
    return _as_utc_naive(dt).replace(microsecond=0).isoformat() + "Z"


def start_of_day(dt: datetime) -> datetime:
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def day_bounds(dt: datetime) -> tuple[datetime, datetime]:
    """Half-open [start, end) bounds of the UTC calendar day containing dt."""
    start = start_of_day(dt)
    return start, start + timedelta(days=1)
