"""
Time Utilities

Receipt timestamps are assigned by whichever side stores a snapshot (the relay
cache or a client store). These helpers keep them consistent:
timezone-aware UTC datetimes internally, epoch milliseconds and ISO-8601
strings at the edges (history points, health probe).
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC datetime.

    Returns:
        datetime: Current time as timezone-aware datetime in UTC
    """
    return datetime.now(timezone.utc)


def to_epoch_ms(dt: datetime) -> int:
    """
    Convert a datetime object to Unix epoch milliseconds.

    Args:
        dt: Datetime object (naive values are treated as UTC)

    Returns:
        int: Milliseconds since epoch

    Examples:
        >>> to_epoch_ms(datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc))
        1704110400000
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def to_iso(dt: datetime) -> str:
    """
    Format a datetime as ISO-8601 UTC with a trailing 'Z'.

    Examples:
        >>> to_iso(datetime(2024, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc))
        '2024-01-01T12:00:00.500Z'
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"
