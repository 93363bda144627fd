"""Per-account delivery gate.

Two checks, both in the account's own timezone:

1. The configured notification time has been reached today.
2. Nothing was delivered yet today. A delivery recorded earlier the same local
   day but before today's send instant does not count, so changing the
   timezone or notification time mid-day cannot cause a second send.

All functions take ``now_utc`` explicitly so callers control the clock.
"""

from datetime import datetime

from tilly.core.datetime_utils import (
    local_date_str,
    local_instant_to_utc,
    local_time_str,
    normalize_notification_time,
    parse_notification_time,
    to_aware_utc,
    to_local,
)
from tilly.schemas.notifications import NotificationSettings


def is_past_notification_time(
    timezone: str | None,
    notification_time: str | None,
    now_utc: datetime,
) -> bool:
    """Check if the local time has reached the configured notification time."""
    return local_time_str(now_utc, timezone) >= normalize_notification_time(notification_time)


def was_delivered_today(
    timezone: str | None,
    notification_time: str | None,
    last_delivered_at: datetime | None,
    now_utc: datetime,
) -> bool:
    """Check if a delivery already happened in the current local day.

    Args:
        timezone: Account IANA timezone
        notification_time: Account notification time, ``HH:MM``
        last_delivered_at: Last delivery instant (naive values are UTC)
        now_utc: Current instant

    Returns:
        True if the last delivery is on today's local date and at or after
        today's send instant
    """
    if last_delivered_at is None:
        return False

    today_local = local_date_str(now_utc, timezone)
    if local_date_str(last_delivered_at, timezone) != today_local:
        return False

    send_instant = local_instant_to_utc(
        today_local, parse_notification_time(notification_time), timezone
    )
    return to_aware_utc(last_delivered_at) >= send_instant


def check_delivery_gate(settings: NotificationSettings, now_utc: datetime) -> str | None:
    """Return a skip reason, or None when delivery may proceed."""
    if not is_past_notification_time(settings.timezone, settings.notification_time, now_utc):
        return (
            f"Not past notification time (current: {local_time_str(now_utc, settings.timezone)}, "
            f"configured: {settings.notification_time}, timezone: {settings.timezone})"
        )

    if was_delivered_today(
        settings.timezone, settings.notification_time, settings.last_delivered_at, now_utc
    ):
        last_local = to_local(settings.last_delivered_at, settings.timezone)
        return f"Already delivered today (last delivered: {last_local:%Y-%m-%d %H:%M})"

    return None


def can_deliver(settings: NotificationSettings, now_utc: datetime) -> bool:
    """Whether a delivery attempt is allowed for the account right now."""
    return check_delivery_gate(settings, now_utc) is None
