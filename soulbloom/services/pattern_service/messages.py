"""Push notification copy for detected patterns."""
from dataclasses import dataclass, field
from typing import Dict

from soulbloom.shared.models import (
    HighStressPattern,
    NegativeStreakPattern,
    NotificationType,
    Pattern,
    ReEngagementPattern,
    StreakAtRiskPattern,
)


@dataclass(frozen=True)
class PatternNotification:
    """A notification ready to hand to the notification gate."""
    notification_type: NotificationType
    title: str
    body: str
    data: Dict[str, str] = field(default_factory=dict)


def notification_for(pattern: Pattern) -> PatternNotification:
    """Build the notification for a detected pattern.

    Data values are strings because push payload data must be.
    """
    if not isinstance(
        pattern,
        (NegativeStreakPattern, HighStressPattern, StreakAtRiskPattern, ReEngagementPattern),
    ):
        raise TypeError(f"Unknown pattern type: {type(pattern).__name__}")
    kind = pattern.kind.value

    if isinstance(pattern, NegativeStreakPattern):
        return PatternNotification(
            notification_type=NotificationType.PATTERN_INTERVENTION,
            title="We're here for you 💙",
            body="We noticed you've been having a tough few days. Would a breathing exercise help?",
            data={"action": "open_breathing", "pattern": kind, "days": str(pattern.days)},
        )

    if isinstance(pattern, HighStressPattern):
        return PatternNotification(
            notification_type=NotificationType.PATTERN_INTERVENTION,
            title="Take a breath 🧘",
            body="You've had some stressful days lately. Would you like to try a calming exercise?",
            data={
                "action": "open_mindfulness",
                "pattern": kind,
                "avg_stress": str(round(pattern.avg_stress, 2)),
            },
        )

    if isinstance(pattern, StreakAtRiskPattern):
        return PatternNotification(
            notification_type=NotificationType.STREAK_REMINDERS,
            title=f"Your {pattern.current_streak}-day streak! 🔥",
            body="Don't forget to check in today to keep it going!",
            data={"action": "open_checkin", "pattern": kind, "streak": str(pattern.current_streak)},
        )

    return PatternNotification(
        notification_type=NotificationType.RE_ENGAGEMENT,
        title="We miss you! 🌱",
        body="It's been a few days since your last check-in. How are you feeling?",
        data={
            "action": "open_checkin",
            "pattern": kind,
            "days_since_last_checkin": str(pattern.days_since_last_checkin),
        },
    )
