"""Check-in domain models.

Check-in records live in the document store; the core only reads them
(mood/stress history for pattern detection).
"""
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple


class MoodRating(Enum):
    """Five-point mood scale selected by the user."""
    TERRIBLE = "terrible"
    NOT_GOOD = "not_good"
    OKAY = "okay"
    GOOD = "good"
    GREAT = "great"

    @property
    def score(self) -> int:
        """Numeric value on a 1-5 scale (terrible=1, great=5)."""
        return list(MoodRating).index(self) + 1

    @property
    def label(self) -> str:
        return _MOOD_LABELS[self]

    @classmethod
    def parse(cls, value) -> Optional["MoodRating"]:
        """Parse a raw mood value, returning None when unrecognized."""
        if isinstance(value, MoodRating):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


_MOOD_LABELS = {
    MoodRating.GREAT: "Great (very positive)",
    MoodRating.GOOD: "Good (positive)",
    MoodRating.OKAY: "Okay (neutral)",
    MoodRating.NOT_GOOD: "Not Good (negative)",
    MoodRating.TERRIBLE: "Terrible (very negative)",
}

# Emotions the check-in screen lets a user select
VALID_EMOTIONS: Tuple[str, ...] = (
    "anxious", "calm", "sad", "happy", "angry", "tired", "energetic", "stressed",
)
NEGATIVE_EMOTIONS = frozenset({"anxious", "sad", "angry", "tired", "stressed"})
POSITIVE_EMOTIONS = frozenset({"calm", "happy", "energetic"})


@dataclass(frozen=True)
class CheckinRecord:
    """A stored mood/stress check-in."""
    user_id: str
    mood_rating: MoodRating
    stress_level: int
    created_at: datetime
    selected_emotions: Tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not 1 <= self.stress_level <= 10:
            raise ValueError(f"Stress level must be 1-10, got {self.stress_level}")
