"""
Timestamp utilities for consistent time handling across the system.

All stored timestamps are timezone-aware UTC.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def ensure_utc(value: datetime) -> datetime:
    """
    Normalize a datetime to aware UTC.

    Naive datetimes are interpreted as UTC rather than local time.

    Args:
        value: Datetime to normalize

    Returns:
        Aware UTC datetime
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_db(value: datetime | None) -> str | None:
    """
    Serialize a datetime for storage.

    Fixed microsecond precision keeps stored strings lexicographically sortable.
    """
    if value is None:
        return None
    return ensure_utc(value).isoformat(timespec="microseconds")


def from_db(value: str | None) -> datetime | None:
    """Parse a stored timestamp."""
    if not value:
        return None
    return ensure_utc(datetime.fromisoformat(value))


def hours_between(earlier: datetime, later: datetime) -> float:
    """Elapsed hours from earlier to later (negative if reversed)."""
    return (ensure_utc(later) - ensure_utc(earlier)).total_seconds() / 3600.0
