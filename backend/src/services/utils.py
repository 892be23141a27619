"""Shared utility functions for service layer."""
from datetime import UTC, datetime, timedelta

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def to_utc(value: datetime) -> datetime:
    """
    Return a timezone-aware UTC datetime.

    SQLite hands back naive datetimes for timezone-aware columns; those are stored
    as UTC, so a naive value is tagged UTC rather than interpreted as local time.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def to_epoch_millis(value: datetime | str | None) -> int | None:
    """
    Convert a timestamp to whole milliseconds since the epoch.

    Accepts datetimes and ISO 8601 strings (including a trailing "Z"), so two
    serializations of the same instant compare equal. Sub-millisecond precision
    is floored away.
    """
    if value is None:
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    return (to_utc(value) - EPOCH) // timedelta(milliseconds=1)
