"""Quiet-hours arithmetic in the recipient's local time.

A window whose start is later than its end wraps midnight (22:00-07:00).
Saturdays and Sundays use the weekend window when one is configured.
"""

from datetime import UTC, datetime, time, timedelta
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import structlog

from safety_notifications.preference.settings import QuietHours, parse_hhmm
from safety_notifications.utils.timeutil import as_utc

logger = structlog.get_logger(__name__)

WEEKEND_DAYS = (5, 6)


def recipient_zone(quiet_hours: QuietHours) -> ZoneInfo:
    try:
        return ZoneInfo(quiet_hours.timezone or "UTC")
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown quiet hours timezone, using UTC", timezone=quiet_hours.timezone)
        return ZoneInfo("UTC")


def window_for(quiet_hours: QuietHours, local_now: datetime) -> tuple[time, time]:
    """Return (start, end) of the window that applies on ``local_now``'s day."""
    if quiet_hours.weekend_different and local_now.weekday() in WEEKEND_DAYS:
        start, end = quiet_hours.weekend_start, quiet_hours.weekend_end
    else:
        start, end = quiet_hours.start, quiet_hours.end
    return time(*parse_hhmm(start)), time(*parse_hhmm(end))


def in_window(current: time, start: time, end: time) -> bool:
    if start == end:
        return False
    if start > end:
        return current >= start or current < end
    return start <= current < end


def is_quiet(quiet_hours: QuietHours, now: datetime) -> bool:
    if not quiet_hours.enabled:
        return False
    local_now = as_utc(now).astimezone(recipient_zone(quiet_hours))
    start, end = window_for(quiet_hours, local_now)
    return in_window(local_now.time().replace(tzinfo=None), start, end)


def quiet_hours_end_after(quiet_hours: QuietHours, now: datetime) -> datetime:
    """Next occurrence of the quiet window's end after ``now``, as an aware datetime."""
    zone = recipient_zone(quiet_hours)
    local_now = as_utc(now).astimezone(zone)
    _, end = window_for(quiet_hours, local_now)
    deliver_at = datetime.combine(local_now.date(), end, tzinfo=zone)
    if deliver_at <= local_now:
        # The end falls on the next day, which may use the other window.
        tomorrow = local_now + timedelta(days=1)
        _, end = window_for(quiet_hours, tomorrow)
        deliver_at = datetime.combine(tomorrow.date(), end, tzinfo=zone)
    return deliver_at.astimezone(UTC)
