"""Coerce raw provider output into the canonical analysis schema."""
import math
from dataclasses import dataclass, field
from typing import Any, Mapping, Tuple

from soulbloom.shared.models import RiskLevel, Sentiment

MAX_LIST_ITEMS = 10
DEFAULT_SUPPORTIVE_MESSAGE = "Thank you for sharing. Your feelings are valid."


@dataclass(frozen=True)
class ProviderAnalysis:
    """Sanitized provider (or fallback) verdict, before escalation."""
    sentiment: Sentiment
    sentiment_score: float
    risk_level: RiskLevel
    supportive_message: str = DEFAULT_SUPPORTIVE_MESSAGE
    emotions: Tuple[str, ...] = field(default_factory=tuple)
    keywords: Tuple[str, ...] = field(default_factory=tuple)
    themes: Tuple[str, ...] = field(default_factory=tuple)
    suggestions: Tuple[str, ...] = field(default_factory=tuple)
    risk_indicators: Tuple[str, ...] = field(default_factory=tuple)
    is_fallback: bool = False


def _clamp_score(value: Any) -> float:
    # bool is an int subclass; "true" is not a score
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0.0
    if math.isnan(value):
        return 0.0
    return max(-1.0, min(1.0, float(value)))


def _string_list(value: Any) -> Tuple[str, ...]:
    if not isinstance(value, (list, tuple)):
        return ()
    items = [str(v).strip() for v in value if isinstance(v, (str, int, float)) and not isinstance(v, bool)]
    return tuple(i for i in items if i)[:MAX_LIST_ITEMS]


def sanitize_analysis(raw: Mapping[str, Any], is_fallback: bool = False) -> ProviderAnalysis:
    """Validate and sanitize a provider response.

    Never raises: anything unrecognized falls back to its safe default
    (neutral sentiment, score 0, low risk, empty lists).
    """
    if not isinstance(raw, Mapping):
        raw = {}

    message = raw.get("supportive_message")
    if not isinstance(message, str) or not message.strip():
        message = DEFAULT_SUPPORTIVE_MESSAGE

    return ProviderAnalysis(
        sentiment=Sentiment.from_value(raw.get("sentiment")),
        sentiment_score=_clamp_score(raw.get("sentiment_score")),
        risk_level=RiskLevel.from_value(raw.get("risk_level")),
        supportive_message=message.strip(),
        emotions=_string_list(raw.get("emotions")),
        keywords=_string_list(raw.get("keywords")),
        themes=_string_list(raw.get("themes")),
        suggestions=_string_list(raw.get("suggestions")),
        risk_indicators=_string_list(raw.get("risk_indicators")),
        is_fallback=is_fallback,
    )
