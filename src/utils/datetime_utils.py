"""
Datetime utilities for consistent date and time handling across the application.

Appointment dates are time-zone-naive calendar dates and start times are
naive wall-clock times in the organization's own timezone. Weekdays are
derived from the calendar date alone, never from the host's local time.
"""

import logging
from datetime import datetime, timezone, timedelta, date, time
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import DEFAULT_TIMEZONE
from core.constants import DATE_PATTERN, TIME_PATTERN, WEEKDAYS

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def utc_now() -> datetime:
    """Get current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def get_zone(tz_name: Optional[str]) -> ZoneInfo:
    """
    Resolve an IANA timezone name, falling back to the configured default.

    Args:
        tz_name: IANA timezone name (e.g. "Europe/Paris") or None

    Returns:
        ZoneInfo for the timezone
    """
    try:
        return ZoneInfo(tz_name or DEFAULT_TIMEZONE)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning(f"Unknown timezone {tz_name!r}, falling back to {DEFAULT_TIMEZONE}")
        return ZoneInfo(DEFAULT_TIMEZONE)


def organization_now(tz_name: Optional[str] = None) -> datetime:
    """
    Get the current datetime in an organization's timezone.

    Args:
        tz_name: Organization's IANA timezone name

    Returns:
        Timezone-aware current datetime
    """
    return datetime.now(get_zone(tz_name))


def is_valid_timezone(tz_name: str) -> bool:
    """Check whether a string names a known IANA timezone."""
    try:
        ZoneInfo(tz_name)
        return True
    except (ZoneInfoNotFoundError, ValueError):
        return False


def parse_date_string(date_str: str) -> date:
    """
    Parse a strict YYYY-MM-DD date string.

    The string is matched against the wire pattern before parsing, so
    "2025-1-1" or "2025/01/01" are rejected.

    Raises:
        ValueError: If the string is malformed or not a real calendar date
    """
    if not date_str or not DATE_PATTERN.match(date_str):
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD): {date_str}")
    try:
        return datetime.strptime(date_str, "%Y-%m-%d").date()
    except ValueError as e:
        raise ValueError(f"Invalid date format (expected YYYY-MM-DD): {date_str}") from e


def parse_time_string(time_str: str) -> time:
    """
    Parse a strict HH:MM 24-hour time string.

    Raises:
        ValueError: If the string is malformed
    """
    if not time_str or not TIME_PATTERN.match(time_str):
        raise ValueError(f"Invalid time format (expected HH:MM): {time_str}")
    hours, minutes = time_str.split(":")
    return time(int(hours), int(minutes))


def format_date(value: date) -> str:
    """Format a date as YYYY-MM-DD."""
    return value.strftime("%Y-%m-%d")


def format_time(value: time) -> str:
    """Format a time as HH:MM."""
    return f"{value.hour:02d}:{value.minute:02d}"


def time_to_minutes(value: time | str) -> int:
    """Convert a time (or HH:MM string) to minutes since midnight."""
    if isinstance(value, str):
        value = parse_time_string(value)
    return value.hour * 60 + value.minute


def minutes_to_time_string(minutes: int) -> str:
    """
    Convert minutes since midnight to an HH:MM string.

    Values past midnight are not wrapped ("24:30" for 1470), matching the
    plain minute arithmetic used by working-hours comparisons.
    """
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def calculate_end_time(start_time: str, duration: int) -> str:
    """
    Calculate the HH:MM end time of a slot.

    Example: calculate_end_time("09:45", 30) == "10:15"
    """
    return minutes_to_time_string(time_to_minutes(start_time) + duration)


def get_weekday_name(value: date) -> str:
    """
    Get the lowercase English weekday name for a calendar date.

    Uses date.weekday(), a pure calendar computation with no timezone input.
    """
    return WEEKDAYS[value.weekday()]


def combine_in_zone(day: date, start: time, tz_name: Optional[str] = None) -> datetime:
    """Combine a naive date and time into an aware datetime in the given timezone."""
    return datetime.combine(day, start).replace(tzinfo=get_zone(tz_name))


def hours_between(start: datetime, end: datetime) -> float:
    """Return the number of hours from start to end (negative if end is earlier)."""
    return (end - start) / timedelta(hours=1)


def ensure_aware(value: datetime) -> datetime:
    """
    Attach UTC to a naive datetime.

    SQLite drops tzinfo from TIMESTAMP columns, so values read back from it
    are naive UTC.
    """
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
