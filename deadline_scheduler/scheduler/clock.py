from __future__ import annotations

import math
from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

ONE_DAY = timedelta(days=1)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Normalize to aware UTC; naive values (e.g. read back from SQLite) are taken as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def local_midnight(now: datetime, tz: ZoneInfo) -> datetime:
    local_day = as_utc(now).astimezone(tz).date()
    return datetime.combine(local_day, time.min, tzinfo=tz).astimezone(timezone.utc)


def next_local_midnight(now: datetime, tz: ZoneInfo) -> datetime:
    local_day = as_utc(now).astimezone(tz).date() + ONE_DAY
    return datetime.combine(local_day, time.min, tzinfo=tz).astimezone(timezone.utc)


def next_daily_run(now: datetime, tz: ZoneInfo, hour: int = 8) -> datetime:
    """Next wall-clock ``hour:00`` in ``tz`` strictly after ``now``, returned in UTC.

    A process that starts at or after ``hour:00`` waits for tomorrow's slot
    instead of firing immediately, so restarts never re-send the daily batch.
    """
    local_now = as_utc(now).astimezone(tz)
    target = datetime.combine(local_now.date(), time(hour=hour), tzinfo=tz)
    if local_now >= target:
        target = datetime.combine(local_now.date() + ONE_DAY, time(hour=hour), tzinfo=tz)
    return target.astimezone(timezone.utc)


def days_between(later: datetime, earlier: datetime) -> int:
    # Half-up rounding absorbs DST shifts and sub-day skew.
    delta = (as_utc(later) - as_utc(earlier)) / ONE_DAY
    return math.floor(delta + 0.5)
