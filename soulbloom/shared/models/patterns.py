"""Mood pattern events emitted by the pattern detector.

Patterns are ephemeral: computed on each scheduler tick, handed to the
notification gate and then discarded.
"""
from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, Optional, Union


class PatternKind(Enum):
    NEGATIVE_STREAK = "negative_streak"
    HIGH_STRESS = "high_stress"
    STREAK_AT_RISK = "streak_at_risk"
    RE_ENGAGEMENT = "re_engagement"


@dataclass(frozen=True)
class NegativeStreakPattern:
    """Consecutive most-recent days with average mood at or below negative."""
    days: int
    avg_mood: float
    start: date
    end: date

    @property
    def kind(self) -> PatternKind:
        return PatternKind.NEGATIVE_STREAK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.kind.value,
            "days": self.days,
            "avg_mood": round(self.avg_mood, 2),
            "start_date": self.start.isoformat(),
            "end_date": self.end.isoformat(),
        }


@dataclass(frozen=True)
class HighStressPattern:
    """Consecutive most-recent days with average stress at or above high."""
    days: int
    avg_stress: float

    @property
    def kind(self) -> PatternKind:
        return PatternKind.HIGH_STRESS

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.kind.value,
            "days": self.days,
            "avg_stress": round(self.avg_stress, 2),
        }


@dataclass(frozen=True)
class StreakAtRiskPattern:
    """Active check-in streak with no check-in yet today, late in the day."""
    current_streak: int
    hours_remaining: int

    @property
    def kind(self) -> PatternKind:
        return PatternKind.STREAK_AT_RISK

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.kind.value,
            "current_streak": self.current_streak,
            "hours_remaining": self.hours_remaining,
        }


@dataclass(frozen=True)
class ReEngagementPattern:
    """User has lapsed for a few days but not long enough to leave alone."""
    days_since_last_checkin: int
    last_mood: Optional[str]
    last_checkin_at: Optional[datetime] = None

    @property
    def kind(self) -> PatternKind:
        return PatternKind.RE_ENGAGEMENT

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pattern": self.kind.value,
            "days_since_last_checkin": self.days_since_last_checkin,
            "last_mood": self.last_mood,
            "last_checkin_at": (
                self.last_checkin_at.isoformat() if self.last_checkin_at else None
            ),
        }


Pattern = Union[
    NegativeStreakPattern,
    HighStressPattern,
    StreakAtRiskPattern,
    ReEngagementPattern,
]
