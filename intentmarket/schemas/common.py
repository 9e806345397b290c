# intentmarket/schemas/common.py
from datetime import datetime, timezone


def utc(value: datetime | None) -> datetime | None:
    """
    Normalize a timestamp to aware UTC.

    SQLite hands back naive datetimes for values that were stored as UTC,
    while the in-memory store keeps them aware; responses use this so both
    serialize with an explicit offset.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
