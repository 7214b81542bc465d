"""Notification preference, device and audit log models."""
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple


class NotificationType(Enum):
    """Notification categories a user can switch on or off."""
    PATTERN_INTERVENTION = "pattern_intervention"
    GOAL_REMINDERS = "goal_reminders"
    STREAK_REMINDERS = "streak_reminders"
    CARE_CIRCLE_ALERTS = "care_circle_alerts"
    CHECK_IN_REMINDERS = "check_in_reminders"
    RE_ENGAGEMENT = "re_engagement"
    DEFAULT = "default"


class NotificationStatus(Enum):
    SENT = "sent"
    BLOCKED = "blocked"
    FAILED = "failed"


class DevicePlatform(Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


# Types that carry a user-facing preference flag. DEFAULT (test
# notifications) has no flag and is always considered enabled.
PREFERENCE_TYPES: Tuple[NotificationType, ...] = tuple(
    t for t in NotificationType if t is not NotificationType.DEFAULT
)


@dataclass(frozen=True)
class NotificationPreferences:
    """Per-user notification preferences.

    Defaults mirror the values applied to users who never changed them:
    every type on, quiet hours 21:00-08:00, five notifications a day.
    """
    type_flags: Mapping[str, bool] = field(
        default_factory=lambda: {t.value: True for t in PREFERENCE_TYPES}
    )
    quiet_hours_enabled: bool = True
    quiet_hours_start: str = "21:00"
    quiet_hours_end: str = "08:00"
    daily_limit: int = 5
    timezone: str = "America/New_York"

    def __post_init__(self):
        if self.daily_limit < 0:
            raise ValueError(f"Daily limit must be >= 0, got {self.daily_limit}")
        for value in (self.quiet_hours_start, self.quiet_hours_end):
            parse_hhmm(value)

    def is_type_enabled(self, notification_type: NotificationType) -> bool:
        """A type is enabled unless its flag is explicitly False."""
        return self.type_flags.get(notification_type.value) is not False

    @classmethod
    def from_dict(cls, data: Optional[Mapping[str, Any]]) -> "NotificationPreferences":
        """Build preferences from the stored JSON document, applying defaults."""
        if not data:
            return cls()
        defaults = cls()
        flags = dict(defaults.type_flags)
        for t in PREFERENCE_TYPES:
            if t.value in data:
                flags[t.value] = bool(data[t.value])
        daily_limit = data.get("daily_limit")
        return cls(
            type_flags=flags,
            quiet_hours_enabled=bool(data.get("quiet_hours_enabled", defaults.quiet_hours_enabled)),
            quiet_hours_start=data.get("quiet_hours_start") or defaults.quiet_hours_start,
            quiet_hours_end=data.get("quiet_hours_end") or defaults.quiet_hours_end,
            daily_limit=int(daily_limit) if daily_limit is not None else defaults.daily_limit,
            timezone=data.get("timezone") or defaults.timezone,
        )

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = dict(self.type_flags)
        result.update({
            "quiet_hours_enabled": self.quiet_hours_enabled,
            "quiet_hours_start": self.quiet_hours_start,
            "quiet_hours_end": self.quiet_hours_end,
            "daily_limit": self.daily_limit,
            "timezone": self.timezone,
        })
        return result

    def merged(self, updates: Mapping[str, Any]) -> "NotificationPreferences":
        """Return new preferences with a partial update applied."""
        flags = dict(self.type_flags)
        for t in PREFERENCE_TYPES:
            if t.value in updates:
                flags[t.value] = bool(updates[t.value])
        changes: Dict[str, Any] = {"type_flags": flags}
        for key in ("quiet_hours_enabled", "quiet_hours_start",
                    "quiet_hours_end", "daily_limit", "timezone"):
            if key in updates:
                changes[key] = updates[key]
        if "daily_limit" in changes:
            changes["daily_limit"] = int(changes["daily_limit"])
        if "quiet_hours_enabled" in changes:
            changes["quiet_hours_enabled"] = bool(changes["quiet_hours_enabled"])
        return replace(self, **changes)


def parse_hhmm(value: str) -> int:
    """Parse an HH:MM string into minutes after midnight.

    Raises:
        ValueError: If the value is not a valid 24-hour time
    """
    try:
        hours_str, minutes_str = value.split(":")
        hours, minutes = int(hours_str), int(minutes_str)
    except (AttributeError, ValueError):
        raise ValueError(f"Invalid HH:MM time: {value!r}")
    if not (0 <= hours <= 23 and 0 <= minutes <= 59):
        raise ValueError(f"Invalid HH:MM time: {value!r}")
    return hours * 60 + minutes


@dataclass(frozen=True)
class DeviceRegistration:
    """A push-capable device registered for a user."""
    user_id: str
    token: str
    platform: DevicePlatform
    is_active: bool = True
    last_used_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class NotificationLogEntry:
    """Append-only record of a notification decision.

    Every send attempt produces exactly one entry, whether it was sent,
    blocked or failed. Daily and per-type caps are computed from these.
    """
    entry_id: str
    user_id: str
    notification_type: NotificationType
    title: str
    body: str
    status: NotificationStatus
    sent_at: datetime
    reason: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    delivery_results: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.entry_id,
            "notification_type": self.notification_type.value,
            "title": self.title,
            "body": self.body,
            "status": self.status.value,
            "reason": self.reason,
            "sent_at": self.sent_at.isoformat(),
        }
