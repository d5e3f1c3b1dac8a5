"""UTC time helpers.

SQLite drops tzinfo on ``DateTime(timezone=True)`` columns, so values read
back are naive UTC; :func:`as_utc` normalises them.
"""

from __future__ import annotations

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Timezone-aware current time in UTC."""
    return datetime.now(tz=UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def unix_seconds(value: datetime) -> int:
    """Whole unix seconds for *value*."""
    return int(as_utc(value).timestamp())
