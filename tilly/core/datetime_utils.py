"""Centralized datetime utilities for consistent timezone handling.

Database columns store naive UTC datetimes; everything else in the delivery
pipeline works with aware datetimes. Helpers here accept either and treat naive
values as UTC.

Usage:
    from tilly.core.datetime_utils import local_date_str, utc_now

    today = local_date_str(utc_now(), account.timezone)
    if reminder.due_at_date <= today:
        ...
"""

from datetime import UTC, date, datetime, time
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "UTC"
DEFAULT_NOTIFICATION_TIME = "12:00"

DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M"


def utc_now() -> datetime:
    """Get current UTC time as an aware datetime."""
    return datetime.now(UTC)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to naive UTC.

    Args:
        dt: Datetime to convert (can be aware or naive)

    Returns:
        Naive UTC datetime for database compatibility
    """
    if dt.tzinfo is None:
        # Already naive, assume it's UTC
        return dt
    return dt.astimezone(UTC).replace(tzinfo=None)


def to_aware_utc(dt: datetime) -> datetime:
    """Attach UTC to a naive datetime, or convert an aware one to UTC."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def is_valid_timezone(tz_name: str) -> bool:
    """Check if a timezone name is valid IANA identifier."""
    try:
        ZoneInfo(tz_name)
        return True
    except (KeyError, ValueError):
        return False


def resolve_timezone(tz_name: str | None) -> ZoneInfo:
    """Resolve an IANA timezone name, falling back to UTC.

    Args:
        tz_name: Timezone string (e.g., "Asia/Tokyo"), may be empty

    Returns:
        ZoneInfo for the name, or UTC when missing or invalid
    """
    if not tz_name or not is_valid_timezone(tz_name):
        return ZoneInfo(DEFAULT_TIMEZONE)
    return ZoneInfo(tz_name)


def parse_notification_time(notification_time: str | None) -> time:
    """Parse a notification time string (HH:MM) into a time object.

    Args:
        notification_time: Time in "HH:MM" format (e.g., "09:00")

    Returns:
        time object, defaults to 12:00 if missing or malformed
    """
    try:
        parts = (notification_time or "").split(":")
        return time(hour=int(parts[0]), minute=int(parts[1]))
    except (ValueError, IndexError):
        return time(hour=12, minute=0)


def normalize_notification_time(notification_time: str | None) -> str:
    """Return a zero-padded HH:MM string safe for lexical comparison."""
    return parse_notification_time(notification_time).strftime(TIME_FORMAT)


def to_local(dt: datetime, tz_name: str | None) -> datetime:
    """Convert an instant to the wall-clock time of a timezone."""
    return to_aware_utc(dt).astimezone(resolve_timezone(tz_name))


def local_date_str(dt: datetime, tz_name: str | None) -> str:
    """Format the local calendar date (yyyy-MM-dd) of an instant in a timezone."""
    return to_local(dt, tz_name).strftime(DATE_FORMAT)


def local_time_str(dt: datetime, tz_name: str | None) -> str:
    """Format the local wall-clock time (HH:MM) of an instant in a timezone."""
    return to_local(dt, tz_name).strftime(TIME_FORMAT)


def local_instant_to_utc(local_date: str, local_time: time, tz_name: str | None) -> datetime:
    """Interpret a local date and time in a timezone and return the UTC instant."""
    day = date.fromisoformat(local_date)
    local_dt = datetime.combine(day, local_time, tzinfo=resolve_timezone(tz_name))
    return local_dt.astimezone(UTC)
