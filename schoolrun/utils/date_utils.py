"""
Date and time utility functions.
Dismissal and arrival times are local time-of-day values; everything that is
stored as a timestamp is UTC.
"""

from datetime import date, datetime, time, timedelta
from typing import Optional, Union

import pytz

UTC_TZ = pytz.UTC


def get_timezone(name: str):
    """Return a pytz timezone, raising pytz.UnknownTimeZoneError for bad names."""
    return pytz.timezone(name)


def utc_now() -> datetime:
    """Get current UTC time (aware)."""
    return datetime.now(UTC_TZ)


def ensure_utc(dt: datetime) -> datetime:
    """Aware UTC datetime. Naive values are assumed to already be UTC (SQLite drops offsets)."""
    if dt.tzinfo is None:
        return UTC_TZ.localize(dt)
    return dt.astimezone(UTC_TZ)


def parse_time_of_day(value: Union[str, time]) -> time:
    """Parse 'HH:MM' or 'HH:MM:SS' into a time."""
    if isinstance(value, time):
        return value
    text = str(value).strip()
    for fmt in ("%H:%M", "%H:%M:%S"):
        try:
            return datetime.strptime(text, fmt).time()
        except ValueError:
            continue
    raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM)")


def local_datetime(service_date: date, time_of_day: time, tz_name: str) -> datetime:
    """Localize a service date plus time-of-day into an aware UTC datetime."""
    tz = get_timezone(tz_name)
    naive = datetime.combine(service_date, time_of_day.replace(tzinfo=None))
    return tz.localize(naive).astimezone(UTC_TZ)


def local_today(tz_name: str) -> date:
    return datetime.now(get_timezone(tz_name)).date()


def minutes_between(start: datetime, end: datetime) -> float:
    """Signed number of minutes from start to end."""
    return (end - start).total_seconds() / 60


def is_stale(timestamp: Optional[datetime], now: datetime, max_age_minutes: int) -> bool:
    """True when the timestamp is missing or older than max_age_minutes."""
    if timestamp is None:
        return True
    return ensure_utc(now) - ensure_utc(timestamp) > timedelta(minutes=max_age_minutes)
