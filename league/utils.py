"""Datetime helpers shared by the core and the persistence layer."""

from datetime import datetime, timezone, tzinfo
from typing import Optional


def utc_now() -> datetime:
    """
    Get current UTC time.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC value.

    Naive datetimes are taken to already be in UTC, which is how the
    database stores them.

    Args:
        value: Naive or aware datetime

    Returns:
        Aware datetime in UTC
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def to_db_datetime(value: datetime) -> datetime:
    """Convert a datetime to the naive UTC form stored in SQL columns."""
    return ensure_utc(value).replace(tzinfo=None)


def parse_datetime(text: str, tz: Optional[tzinfo] = None) -> datetime:
    """
    Parse an ISO-8601 timestamp (``2024-03-01T18:30``, ``2024-03-01``).

    Args:
        text: Timestamp text
        tz: Zone attached to timestamps written without an offset

    Returns:
        Parsed datetime (aware when an offset or ``tz`` is available)

    Raises:
        ValueError: If the text is not a valid ISO timestamp
    """
    value = datetime.fromisoformat(text.strip().replace("Z", "+00:00"))
    if value.tzinfo is None and tz is not None:
        value = value.replace(tzinfo=tz)
    return value
