"""
Standardized Date/Time Handling Utilities

Calendar-day arithmetic for streaks, daily bonuses and weekly buckets.

CRITICAL RULES:
- Always store datetimes as UTC (use to_utc())
- "Today" for a user is the date in the user's own timezone (use local_date())
- Never mix naive and aware datetimes
"""

import logging
from datetime import datetime, date, time, timedelta
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)

# Default timezone if user hasn't set one
DEFAULT_TIMEZONE = "UTC"


def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Resolve a timezone name, falling back to UTC

    Args:
        tz_name: IANA timezone name (e.g. "Europe/Berlin")

    Returns:
        ZoneInfo object
    """
    if not tz_name:
        return ZoneInfo(DEFAULT_TIMEZONE)

    try:
        return ZoneInfo(tz_name)
    except (ZoneInfoNotFoundError, ValueError) as e:
        logger.error(f"Invalid timezone '{tz_name}': {e}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(ZoneInfo("UTC"))


def to_utc(dt: datetime) -> datetime:
    """
    Convert datetime to UTC for storage

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        logger.warning(f"Received naive datetime, assuming UTC: {dt}")
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))

    return dt.astimezone(ZoneInfo("UTC"))


def local_date(dt: datetime, tz_name: Optional[str] = None) -> date:
    """
    Calendar date of a timestamp as seen on the wall clock of tz_name

    Args:
        dt: Timestamp (naive values are treated as UTC)
        tz_name: IANA timezone name, defaults to UTC

    Returns:
        The local calendar date
    """
    return to_utc(dt).astimezone(get_zone(tz_name)).date()


def get_day_start_utc(day: date, tz_name: Optional[str] = None) -> datetime:
    """
    Get start of a local calendar day (00:00:00) as a UTC datetime
    """
    local_start = datetime.combine(day, time.min).replace(tzinfo=get_zone(tz_name))
    return local_start.astimezone(ZoneInfo("UTC"))


def get_day_end_utc(day: date, tz_name: Optional[str] = None) -> datetime:
    """
    Get the exclusive end of a local calendar day (next day's 00:00) as UTC
    """
    return get_day_start_utc(day + timedelta(days=1), tz_name)


def start_of_iso_week(dt: datetime, tz_name: Optional[str] = None) -> date:
    """
    Monday of the ISO week containing dt

    Weeks start Monday 00:00 local time, so a Sunday 23:30 event still
    belongs to the week that began six days earlier.
    """
    day = local_date(dt, tz_name)
    return day - timedelta(days=day.weekday())


def month_key(day: date) -> str:
    """Return the "YYYY-MM" key of the calendar month containing day"""
    return f"{day.year:04d}-{day.month:02d}"


def seconds_until(target_dt: datetime, now: Optional[datetime] = None) -> int:
    """
    Whole seconds from now until target_dt, floored at 0
    """
    now = to_utc(now) if now else now_utc()
    delta = to_utc(target_dt) - now
    return max(0, int(delta.total_seconds()))
