"""Quiet-hours evaluation in the user's local time."""
import logging
from datetime import datetime, timezone, tzinfo
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from soulbloom.shared.models import NotificationPreferences, parse_hhmm

logger = logging.getLogger(__name__)

_DEFAULT_TIMEZONE = NotificationPreferences().timezone


def resolve_timezone(name: str) -> tzinfo:
    """Look up an IANA zone, falling back to the default preference zone."""
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError, TypeError):
        logger.warning("UNKNOWN_TIMEZONE", extra={"timezone": name})
        return ZoneInfo(_DEFAULT_TIMEZONE)


def in_window(minute_of_day: int, start: int, end: int) -> bool:
    """Whether a minute of the day falls inside [start, end).

    A window whose start is after its end wraps midnight: 21:00-08:00
    covers [21:00, 24:00) and [00:00, 08:00). Equal start and end is empty.
    """
    if start > end:
        return minute_of_day >= start or minute_of_day < end
    return start <= minute_of_day < end


def is_quiet_time(now: datetime, preferences: NotificationPreferences) -> bool:
    """Whether `now` falls inside the user's quiet hours.

    Naive datetimes are treated as UTC.
    """
    if not preferences.quiet_hours_enabled:
        return False
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    local = now.astimezone(resolve_timezone(preferences.timezone))
    return in_window(
        local.hour * 60 + local.minute,
        parse_hhmm(preferences.quiet_hours_start),
        parse_hhmm(preferences.quiet_hours_end),
    )
