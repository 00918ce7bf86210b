"""Date manipulation utilities"""

from datetime import datetime, timedelta, timezone
from typing import Optional

SECONDS_PER_YEAR = 365 * 24 * 60 * 60


def utcnow() -> datetime:
    """Current time as an aware UTC datetime"""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes (SQLite drops tzinfo on read)"""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def add_days(from_time: datetime, days: int) -> datetime:
    """Add calendar days to a timestamp"""
    return from_time + timedelta(days=days)


def elapsed_seconds(start: datetime, end: datetime) -> int:
    """Whole seconds between two timestamps, never negative"""
    return max(int((as_utc(end) - as_utc(start)).total_seconds()), 0)
