"""Risk level and check-in analysis domain models.

This file defines the core enums and data structures for risk assessment.
Risk levels are totally ordered so that escalation can only ever move a
verdict upward (low < moderate < high < critical).
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple


class RiskLevel(Enum):
    """Risk classification levels for a check-in.

    Declaration order is severity order. Comparison operators follow it,
    so ``max(a, b)`` always yields the more urgent level.
    """
    LOW = "low"             # Normal daily emotions
    MODERATE = "moderate"   # Stress/anxiety that could benefit from attention
    HIGH = "high"           # Significant distress, crisis resources shown
    CRITICAL = "critical"   # Self-harm/suicide language: immediate attention

    @property
    def rank(self) -> int:
        return list(RiskLevel).index(self)

    def __lt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank < other.rank

    def __le__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __gt__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank > other.rank

    def __ge__(self, other):
        if not isinstance(other, RiskLevel):
            return NotImplemented
        return self.rank >= other.rank

    @classmethod
    def from_value(cls, value: Any) -> "RiskLevel":
        """Parse a raw value, defaulting to LOW for anything unrecognized."""
        if isinstance(value, RiskLevel):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.LOW

    @property
    def shows_crisis_resources(self) -> bool:
        return self >= RiskLevel.HIGH


class Sentiment(Enum):
    """Overall sentiment label of a check-in."""
    POSITIVE = "positive"
    NEGATIVE = "negative"
    NEUTRAL = "neutral"
    MIXED = "mixed"

    @classmethod
    def from_value(cls, value: Any) -> "Sentiment":
        """Parse a raw value, defaulting to NEUTRAL for anything unrecognized."""
        if isinstance(value, Sentiment):
            return value
        try:
            return cls(value)
        except ValueError:
            return cls.NEUTRAL


@dataclass(frozen=True)
class TopicResource:
    """Support resource attached to a sensitive topic."""
    name: str
    description: str
    url: str
    phone: Optional[str] = None
    text_instructions: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "phone": self.phone,
            "url": self.url,
            "text_instructions": self.text_instructions,
        }


@dataclass(frozen=True)
class TopicMatch:
    """A sensitive topic detected in check-in text."""
    topic_id: str
    topic_name: str
    resource: TopicResource

    def to_dict(self) -> Dict[str, Any]:
        return {
            "topic_id": self.topic_id,
            "topic_name": self.topic_name,
            "resource": self.resource.to_dict(),
        }


@dataclass(frozen=True)
class RiskAnalysis:
    """Final analysis of a single check-in.

    Immutable once returned - it is stored verbatim on the check-in record.
    Sequence fields are tuples so the returned verdict cannot be edited
    in place by a caller.
    """
    sentiment: Sentiment
    sentiment_score: float
    risk_level: RiskLevel
    supportive_message: str
    emotions: Tuple[str, ...] = field(default_factory=tuple)
    keywords: Tuple[str, ...] = field(default_factory=tuple)
    themes: Tuple[str, ...] = field(default_factory=tuple)
    suggestions: Tuple[str, ...] = field(default_factory=tuple)
    risk_indicators: Tuple[str, ...] = field(default_factory=tuple)
    detected_topics: Tuple[TopicMatch, ...] = field(default_factory=tuple)
    requires_immediate_attention: bool = False
    show_crisis_resources: bool = False
    is_fallback: bool = False

    def __post_init__(self):
        if not -1.0 <= self.sentiment_score <= 1.0:
            raise ValueError(
                f"Sentiment score must be -1.0-1.0, got {self.sentiment_score}"
            )
        if self.requires_immediate_attention and self.risk_level != RiskLevel.CRITICAL:
            raise ValueError("Immediate attention requires CRITICAL risk level")
        if self.show_crisis_resources and not self.risk_level.shows_crisis_resources:
            raise ValueError("Crisis resources require HIGH or CRITICAL risk level")

    @property
    def topic_ids(self) -> Tuple[str, ...]:
        return tuple(t.topic_id for t in self.detected_topics)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape stored on the check-in record."""
        return {
            "sentiment": self.sentiment.value,
            "sentiment_score": self.sentiment_score,
            "emotions": list(self.emotions),
            "keywords": list(self.keywords),
            "themes": list(self.themes),
            "suggestions": list(self.suggestions),
            "risk_level": self.risk_level.value,
            "risk_indicators": list(self.risk_indicators),
            "requires_immediate_attention": self.requires_immediate_attention,
            "show_crisis_resources": self.show_crisis_resources,
            "detected_topics": [t.to_dict() for t in self.detected_topics],
            "supportive_message": self.supportive_message,
            "is_fallback": self.is_fallback,
        }
