"""
Timezone utilities

All timestamps are stored as timezone-aware UTC; the daily bonus boundary is
computed in the configured local timezone.
"""

from datetime import datetime, timezone
from typing import Callable

import pytz

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime) -> datetime:
    """Naive datetimes are assumed to be UTC (SQLite drops tzinfo)."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def start_of_local_day(dt: datetime, tz_name: str) -> datetime:
    """Local midnight of the day containing ``dt``, as an aware datetime.

    ``localize`` picks the right UTC offset on DST transition days.
    """
    tz = pytz.timezone(tz_name)
    local = ensure_aware(dt).astimezone(tz)
    return tz.localize(datetime(local.year, local.month, local.day))


def isoformat_utc(dt: datetime) -> str:
    """ISO8601 with a trailing Z, e.g. 2024-01-01T12:00:00.000000Z"""
    return ensure_aware(dt).astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")
