"""
Timezone and duration formatting utilities.
"""

from datetime import datetime, timedelta

import pytz


def ensure_utc(dt: datetime) -> datetime:
    """Return dt as an aware UTC datetime (naive datetimes treated as UTC)."""
    if dt.tzinfo is None:
        return pytz.UTC.localize(dt)
    return dt.astimezone(pytz.UTC)


def _to_local(utc_dt: datetime, tz_name: str) -> datetime:
    utc_dt = ensure_utc(utc_dt)

    # Try to convert to display timezone, fall back to UTC
    try:
        tz = pytz.timezone(tz_name)
        return utc_dt.astimezone(tz)
    except pytz.UnknownTimeZoneError:
        return utc_dt.astimezone(pytz.UTC)


def _offset_label(local_dt: datetime) -> str:
    offset = local_dt.strftime("%z")  # "+0100" or "-0500"
    if not offset:
        return "UTC"
    hours = int(offset[:3])
    minutes = int(offset[0] + offset[3:5])
    if minutes == 0:
        return f"UTC{hours:+d}" if hours != 0 else "UTC"
    return f"UTC{hours:+d}:{abs(minutes):02d}"


def format_datetime_in_timezone(
    utc_dt: datetime,
    tz_name: str,
) -> str:
    """
    Format a UTC datetime in a display timezone with explicit offset.

    Args:
        utc_dt: Datetime in UTC (naive datetimes treated as UTC)
        tz_name: Timezone string (e.g., "Africa/Lagos")

    Returns:
        Formatted string like "Wednesday, January 10 at 3:00 PM (UTC+1)"
    """
    local_dt = _to_local(utc_dt, tz_name)

    date_str = local_dt.strftime("%A, %B %d").replace(" 0", " ")
    time_str = local_dt.strftime("%I:%M %p").lstrip("0")  # "3:00 PM" not "03:00 PM"

    return f"{date_str} at {time_str} ({_offset_label(local_dt)})"


def format_time_until(delta: timedelta) -> str:
    """
    Describe a positive duration in words, rounded down to the largest unit.

    Examples: "now", "in 1 minute", "in 29 minutes", "in 3 hours", "in 1 day"
    """
    total_minutes = int(delta.total_seconds() // 60)
    if total_minutes <= 0:
        return "now"
    if total_minutes < 60:
        unit, count = "minute", total_minutes
    elif total_minutes < 24 * 60:
        unit, count = "hour", total_minutes // 60
    else:
        unit, count = "day", total_minutes // (24 * 60)
    return f"in {count} {unit}{'' if count == 1 else 's'}"
