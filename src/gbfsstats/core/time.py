"""
Time parsing and date-partition helpers.

Stored records use integer epoch seconds and a UTC `YYYY-MM-DD` partition key, so every
conversion in this module is UTC-based.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone


def ensure_utc(dt: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_datetime(value: str) -> datetime:
    """Parse an ISO-8601 datetime (or date) string into an aware UTC datetime.

    Notes:
    - Accepts a trailing `Z` (UTC) and converts it to `+00:00` for `fromisoformat`.
    - Naive values are interpreted as UTC; date-only values mean midnight UTC.
    """
    value = value.strip()
    if not value:
        raise ValueError("Empty datetime value")
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def to_epoch_seconds(dt: datetime) -> int:
    return int(ensure_utc(dt).timestamp())


def date_partition(timestamp: int) -> str:
    """Return the UTC `YYYY-MM-DD` partition for epoch seconds."""
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d")


def dates_between(start_timestamp: int, end_timestamp: int) -> list[str]:
    """Every UTC calendar date touched by `[start_timestamp, end_timestamp]`, oldest first."""
    if end_timestamp < start_timestamp:
        return []
    first = datetime.fromtimestamp(start_timestamp, tz=timezone.utc).date()
    last = datetime.fromtimestamp(end_timestamp, tz=timezone.utc).date()
    out: list[str] = []
    current: date = first
    while current <= last:
        out.append(current.isoformat())
        current += timedelta(days=1)
    return out


def utc_isoformat(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat().replace("+00:00", "Z")
