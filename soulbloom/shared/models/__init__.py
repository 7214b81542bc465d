"""Shared domain models for SoulBloom platform."""
from .risk import (
    RiskLevel,
    Sentiment,
    TopicResource,
    TopicMatch,
    RiskAnalysis,
)
from .checkin import (
    MoodRating,
    CheckinRecord,
    VALID_EMOTIONS,
    NEGATIVE_EMOTIONS,
    POSITIVE_EMOTIONS,
)
from .patterns import (
    PatternKind,
    Pattern,
    NegativeStreakPattern,
    HighStressPattern,
    StreakAtRiskPattern,
    ReEngagementPattern,
)
from .notifications import (
    NotificationType,
    NotificationStatus,
    DevicePlatform,
    NotificationPreferences,
    DeviceRegistration,
    NotificationLogEntry,
    parse_hhmm,
)

__all__ = [
    "RiskLevel",
    "Sentiment",
    "TopicResource",
    "TopicMatch",
    "RiskAnalysis",
    "MoodRating",
    "CheckinRecord",
    "VALID_EMOTIONS",
    "NEGATIVE_EMOTIONS",
    "POSITIVE_EMOTIONS",
    "PatternKind",
    "Pattern",
    "NegativeStreakPattern",
    "HighStressPattern",
    "StreakAtRiskPattern",
    "ReEngagementPattern",
    "NotificationType",
    "NotificationStatus",
    "DevicePlatform",
    "NotificationPreferences",
    "DeviceRegistration",
    "NotificationLogEntry",
    "parse_hhmm",
]
