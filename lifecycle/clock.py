"""UTC time helpers shared by the model defaults and the lifecycle code."""

from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a timestamp read back from the database to an aware UTC datetime.

    PostgreSQL returns aware datetimes for TIMESTAMPTZ columns; SQLite drops the
    offset and hands back naive values that were written as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
