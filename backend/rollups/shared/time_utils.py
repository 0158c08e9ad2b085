"""
Time utilities for the aquaculture rollup pipeline.

Provides functions for:
- Calendar keys (date, hour, ISO week, month)
- Strict period key validation
- Period boundaries and membership (dates in week, dates in month)
- Period arithmetic (previous day, ISO week, month)
"""

import calendar
import re
from datetime import date, datetime, timedelta, timezone
from typing import Dict, List, Optional, Tuple

# Aggregation levels above the hourly bucket
DAILY = "daily"
WEEKLY = "weekly"
MONTHLY = "monthly"
LEVELS = (DAILY, WEEKLY, MONTHLY)

_DATE_KEY_RE = re.compile(r"([0-9]{4})-([0-9]{2})-([0-9]{2})")
_HOUR_KEY_RE = re.compile(r"[0-9]{2}")
_WEEK_KEY_RE = re.compile(r"([0-9]{4})-W([0-9]{2})")
_MONTH_KEY_RE = re.compile(r"([0-9]{4})-([0-9]{2})")

HOUR_MS = 60 * 60 * 1000


class PeriodKeyError(ValueError):
    """Raised when a date, hour, ISO week or month key is malformed."""


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def date_key(day) -> str:
    """
    Format a date (or datetime) as YYYY-MM-DD.

    Args:
        day: date or datetime; aware datetimes are converted to UTC first

    Returns:
        Date key string
    """
    if isinstance(day, datetime):
        if day.tzinfo is not None:
            day = day.astimezone(timezone.utc)
        day = day.date()
    return day.isoformat()


def hour_key(hour: int) -> str:
    """Format an hour of day as a two-digit key."""
    if not 0 <= hour <= 23:
        raise PeriodKeyError(f"Hour out of range: {hour}. Expected 0-23")
    return f"{hour:02d}"


def iso_week_key(day) -> str:
    """
    Format the ISO week containing a date as YYYY-Www.

    The year is the ISO year, which differs from the calendar year for
    dates near January 1st (2024-12-30 belongs to 2025-W01).

    Args:
        day: date or datetime

    Returns:
        ISO week key string
    """
    if isinstance(day, datetime):
        day = day.astimezone(timezone.utc).date() if day.tzinfo else day.date()
    iso_year, iso_week, _ = day.isocalendar()
    return f"{iso_year:04d}-W{iso_week:02d}"


def month_key(day) -> str:
    """Format the calendar month containing a date as YYYY-MM."""
    if isinstance(day, datetime):
        day = day.astimezone(timezone.utc).date() if day.tzinfo else day.date()
    return f"{day.year:04d}-{day.month:02d}"


def parse_date_key(key: str) -> date:
    """
    Parse and validate a YYYY-MM-DD key.

    Args:
        key: Date key

    Returns:
        date object

    Raises:
        PeriodKeyError: If the key is malformed or not a real calendar date
    """
    match = _DATE_KEY_RE.fullmatch(key or "")
    if not match:
        raise PeriodKeyError(f"Invalid date format: {key}. Expected YYYY-MM-DD")
    try:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError as e:
        raise PeriodKeyError(f"Invalid date: {key} ({e})") from e


def parse_hour_key(key) -> int:
    """
    Parse and validate an hour key ("00".."23" or an int 0..23).

    Raises:
        PeriodKeyError: If the hour is malformed or out of range
    """
    if isinstance(key, int) and not isinstance(key, bool):
        hour = key
    elif isinstance(key, str) and _HOUR_KEY_RE.fullmatch(key):
        hour = int(key)
    else:
        raise PeriodKeyError(f"Invalid hour: {key}. Expected 00-23")
    if not 0 <= hour <= 23:
        raise PeriodKeyError(f"Hour out of range: {key}. Expected 00-23")
    return hour


def iso_weeks_in_year(iso_year: int) -> int:
    """Number of ISO weeks (52 or 53) in an ISO year."""
    # December 28th always falls in the last ISO week of its year
    return date(iso_year, 12, 28).isocalendar()[1]


def parse_iso_week_key(key: str) -> Tuple[int, int]:
    """
    Parse and validate a YYYY-Www key.

    Args:
        key: ISO week key

    Returns:
        Tuple of (iso_year, iso_week)

    Raises:
        PeriodKeyError: If the key is malformed or the week does not exist
    """
    match = _WEEK_KEY_RE.fullmatch(key or "")
    if not match:
        raise PeriodKeyError(f"Invalid ISO week format: {key}. Expected YYYY-Www")
    iso_year, iso_week = int(match.group(1)), int(match.group(2))
    if iso_year < 1 or not 1 <= iso_week <= iso_weeks_in_year(iso_year):
        raise PeriodKeyError(f"ISO week does not exist: {key}")
    return iso_year, iso_week


def parse_month_key(key: str) -> Tuple[int, int]:
    """
    Parse and validate a YYYY-MM key.

    Returns:
        Tuple of (year, month)

    Raises:
        PeriodKeyError: If the key is malformed or the month is out of range
    """
    match = _MONTH_KEY_RE.fullmatch(key or "")
    if not match:
        raise PeriodKeyError(f"Invalid month format: {key}. Expected YYYY-MM")
    year, month = int(match.group(1)), int(match.group(2))
    if year < 1 or not 1 <= month <= 12:
        raise PeriodKeyError(f"Month out of range: {key}")
    return year, month


def validate_period_key(level: str, key: str) -> str:
    """
    Validate a period key for an aggregation level.

    Args:
        level: "daily", "weekly" or "monthly"
        key: Period key for that level

    Returns:
        The key, unchanged

    Raises:
        ValueError: If the level is unknown
        PeriodKeyError: If the key is invalid for the level
    """
    if level == DAILY:
        parse_date_key(key)
    elif level == WEEKLY:
        parse_iso_week_key(key)
    elif level == MONTHLY:
        parse_month_key(key)
    else:
        raise ValueError(f"Unknown level: {level}. Expected one of {', '.join(LEVELS)}")
    return key


def dates_in_iso_week(key: str) -> List[str]:
    """
    Get the seven date keys (Monday..Sunday) of an ISO week.

    Args:
        key: ISO week key (YYYY-Www)

    Returns:
        List of date keys
    """
    iso_year, iso_week = parse_iso_week_key(key)
    monday = date.fromisocalendar(iso_year, iso_week, 1)
    return [date_key(monday + timedelta(days=offset)) for offset in range(7)]


def dates_in_month(key: str) -> List[str]:
    """Get every date key of a calendar month."""
    year, month = parse_month_key(key)
    days = calendar.monthrange(year, month)[1]
    return [date_key(date(year, month, day)) for day in range(1, days + 1)]


def date_range(start_key: str, end_key: str) -> List[str]:
    """
    Get all date keys from start to end, inclusive.

    Raises:
        PeriodKeyError: If either key is invalid or start is after end
    """
    start = parse_date_key(start_key)
    end = parse_date_key(end_key)
    if start > end:
        raise PeriodKeyError(f"Start date {start_key} is after end date {end_key}")
    return [date_key(start + timedelta(days=offset)) for offset in range((end - start).days + 1)]


def week_overlaps_month(week: str, month: str) -> bool:
    """Check whether any day of an ISO week falls in a calendar month."""
    return any(day.startswith(month) for day in dates_in_iso_week(week))


def previous_day(key: str) -> str:
    """Date key of the day before."""
    return date_key(parse_date_key(key) - timedelta(days=1))


def previous_iso_week(key: str) -> str:
    """ISO week key of the week before, across ISO year boundaries."""
    iso_year, iso_week = parse_iso_week_key(key)
    monday = date.fromisocalendar(iso_year, iso_week, 1)
    return iso_week_key(monday - timedelta(days=7))


def previous_month(key: str) -> str:
    """Month key of the month before."""
    year, month = parse_month_key(key)
    if month == 1:
        return f"{year - 1:04d}-12"
    return f"{year:04d}-{month - 1:02d}"


def previous_period(level: str, key: str) -> str:
    """
    Get the immediately preceding period for an aggregation level.

    Args:
        level: "daily", "weekly" or "monthly"
        key: Period key

    Returns:
        Previous period key
    """
    validate_period_key(level, key)
    if level == DAILY:
        return previous_day(key)
    if level == WEEKLY:
        return previous_iso_week(key)
    return previous_month(key)


def hour_window_ms(day_key: str, hour) -> Tuple[int, int]:
    """
    Get the UTC hour window boundaries for a date and hour.

    Args:
        day_key: Date key (YYYY-MM-DD)
        hour: Hour key or int

    Returns:
        Tuple of (window_start_ms, window_end_ms), end exclusive
    """
    day = parse_date_key(day_key)
    start = datetime(day.year, day.month, day.day, parse_hour_key(hour), tzinfo=timezone.utc)
    window_start = int(start.timestamp() * 1000)
    return window_start, window_start + HOUR_MS


def timestamp_to_ms(value) -> Optional[int]:
    """
    Normalize a timestamp (epoch ms, epoch seconds, ISO-8601 string or datetime) to epoch ms.

    Returns:
        Epoch milliseconds, or None if the value cannot be interpreted
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return int(value.timestamp() * 1000)
    if isinstance(value, (int, float)):
        # Values below 1e11 are epoch seconds (year 5138 in ms)
        return int(value * 1000) if value < 1e11 else int(value)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        return timestamp_to_ms(parsed)
    return None


def current_period_keys(now: Optional[datetime] = None) -> Dict[str, str]:
    """
    Get the calendar keys of the current hour, day, ISO week and month.

    Returns:
        Dict with "date", "hour", "week" and "month" keys
    """
    now = now or utc_now()
    if now.tzinfo is not None:
        now = now.astimezone(timezone.utc)
    return {
        "date": date_key(now),
        "hour": hour_key(now.hour),
        "week": iso_week_key(now),
        "month": month_key(now),
    }


def current_period_key(level: str, now: Optional[datetime] = None) -> str:
    """Get the current period key for an aggregation level."""
    keys = current_period_keys(now)
    if level == DAILY:
        return keys["date"]
    if level == WEEKLY:
        return keys["week"]
    if level == MONTHLY:
        return keys["month"]
    raise ValueError(f"Unknown level: {level}. Expected one of {', '.join(LEVELS)}")


def default_target_period(level: str, now: Optional[datetime] = None) -> str:
    """
    Get the period a scheduled run targets by default.

    Daily runs target yesterday, weekly runs the previous ISO week and
    monthly runs the previous month, so the period is complete.
    """
    return previous_period(level, current_period_key(level, now))
