"""
Timezone helpers.

All timestamps are stored and compared in UTC. Some database drivers (SQLite)
hand back naive datetimes, so values read from the database go through
``as_utc`` before any arithmetic.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, Tuple


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return ``value`` as an aware UTC datetime (naive values are assumed UTC)."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def day_bounds(day: date) -> Tuple[datetime, datetime]:
    """Return the ``[start, end)`` UTC window covering ``day``."""
    start = datetime.combine(day, time.min, tzinfo=timezone.utc)
    return start, start + timedelta(days=1)


def yesterday() -> date:
    return (utcnow() - timedelta(days=1)).date()
