"""Validated check-in input handed to providers and the fallback."""
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional, Tuple

from soulbloom.shared.models import MoodRating, VALID_EMOTIONS
from .errors import InvalidInput


@dataclass(frozen=True)
class CheckinContext:
    """Structured part of a check-in plus its optional free text."""
    text: Optional[str] = None
    mood_rating: Optional[MoodRating] = None
    stress_level: Optional[int] = None
    selected_emotions: Tuple[str, ...] = field(default_factory=tuple)

    @property
    def has_text(self) -> bool:
        return bool(self.text and self.text.strip())

    @property
    def has_structured(self) -> bool:
        return self.mood_rating is not None or self.stress_level is not None


def build_context(text: Any, structured: Optional[Mapping[str, Any]] = None) -> CheckinContext:
    """Validate raw check-in input.

    Unknown selected emotions are dropped; everything else that is
    malformed is rejected.

    Raises:
        InvalidInput: If neither text nor structured fields are present,
            or a structured field is out of range
    """
    structured = structured or {}

    if text is not None and not isinstance(text, str):
        raise InvalidInput("Check-in text must be a string")

    mood_rating = None
    raw_mood = structured.get("mood_rating")
    if raw_mood is not None:
        mood_rating = MoodRating.parse(raw_mood)
        if mood_rating is None:
            raise InvalidInput(f"Unknown mood_rating: {raw_mood!r}")

    stress_level = None
    raw_stress = structured.get("stress_level")
    if raw_stress is not None:
        if isinstance(raw_stress, bool) or not isinstance(raw_stress, (int, float)):
            raise InvalidInput(f"stress_level must be a number, got {raw_stress!r}")
        if not math.isfinite(raw_stress) or raw_stress != int(raw_stress) or not 1 <= raw_stress <= 10:
            raise InvalidInput(f"stress_level must be an integer 1-10, got {raw_stress!r}")
        stress_level = int(raw_stress)

    raw_emotions = structured.get("selected_emotions") or ()
    if isinstance(raw_emotions, str):
        raw_emotions = (raw_emotions,)
    emotions = tuple(
        dict.fromkeys(e for e in raw_emotions if isinstance(e, str) and e in VALID_EMOTIONS)
    )

    context = CheckinContext(
        text=(text.strip() or None) if text else None,
        mood_rating=mood_rating,
        stress_level=stress_level,
        selected_emotions=emotions,
    )
    if not context.has_text and not context.has_structured:
        raise InvalidInput(
            "Either structured data (mood_rating, stress_level) or check-in text is required"
        )
    return context
