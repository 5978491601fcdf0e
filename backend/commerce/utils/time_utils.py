# backend/commerce/utils/time_utils.py
"""
Centralized time utilities.

All timestamps handled by the scheduling code are timezone-aware UTC.
Naive datetimes arriving from callers are interpreted as UTC.
"""

from datetime import date, datetime, time, timedelta, timezone
from typing import Optional

# Constant for UTC timezone to avoid hardcoded timezone.utc references
UTC_TIMEZONE = timezone.utc


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(UTC_TIMEZONE)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC_TIMEZONE)
    return value.astimezone(UTC_TIMEZONE)


def start_of_day(value: datetime) -> datetime:
    """Midnight UTC of the day containing ``value``."""
    value = ensure_utc(value)
    return datetime.combine(value.date(), time.min, tzinfo=UTC_TIMEZONE)


def date_to_utc_datetime(value: date) -> datetime:
    """Midnight UTC of a calendar date."""
    return datetime.combine(value, time.min, tzinfo=UTC_TIMEZONE)


def to_epoch_ms(value: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    return int(ensure_utc(value).timestamp() * 1000)


def add_milliseconds(value: datetime, milliseconds: int) -> datetime:
    """Shift a datetime forward by a millisecond period."""
    return value + timedelta(milliseconds=milliseconds)
