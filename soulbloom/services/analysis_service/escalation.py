"""Risk escalation: merge provider, keyword and topic signals.

The merge is a pure reduction over RiskSignal values. The final level is
the maximum of every contributing level, so adding a signal can raise
the verdict but never lower it.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Optional, Sequence, Tuple

from soulbloom.shared.models import RiskAnalysis, RiskLevel, TopicMatch
from soulbloom.services.safety_service import KeywordScanResult, SELF_HARM_TOPIC_ID
from .sanitizer import ProviderAnalysis

logger = logging.getLogger(__name__)

CRISIS_RESOURCES: Tuple[str, ...] = (
    "Please reach out to a crisis helpline: National Suicide Prevention Lifeline: 988 (US)",
    "Text HOME to 741741 to reach the Crisis Text Line",
    "Contact a trusted friend, family member, or mental health professional",
    "If you're in immediate danger, please call emergency services (911)",
)

SELF_HARM_TOPIC_INDICATOR = "Self-harm topic detected"


class SignalSource(Enum):
    PROVIDER = "provider"
    KEYWORD_SCANNER = "keyword_scanner"
    TOPIC = "topic"


@dataclass(frozen=True)
class RiskSignal:
    """One contribution to the final risk level."""
    source: SignalSource
    level: RiskLevel
    indicator: Optional[str] = None


def collect_signals(
    analysis: ProviderAnalysis,
    scan: KeywordScanResult,
    topics: Sequence[TopicMatch],
) -> List[RiskSignal]:
    """Translate every check's outcome into signals."""
    signals = [RiskSignal(SignalSource.PROVIDER, analysis.risk_level)]

    level = scan.level.as_risk_level()
    for indicator in scan.indicators:
        signals.append(RiskSignal(SignalSource.KEYWORD_SCANNER, level, indicator))

    if any(t.topic_id == SELF_HARM_TOPIC_ID for t in topics):
        signals.append(
            RiskSignal(SignalSource.TOPIC, RiskLevel.HIGH, SELF_HARM_TOPIC_INDICATOR)
        )
    return signals


def reduce_signals(signals: Iterable[RiskSignal]) -> Tuple[RiskLevel, Tuple[str, ...]]:
    """Fold signals into the final level and the indicators they carry.

    Returns:
        (maximum level, indicators in signal order without duplicates)
    """
    final = RiskLevel.LOW
    indicators: List[str] = []
    for signal in signals:
        final = max(final, signal.level)
        if signal.indicator and signal.indicator not in indicators:
            indicators.append(signal.indicator)
    return final, tuple(indicators)


def escalate(
    analysis: ProviderAnalysis,
    scan: KeywordScanResult,
    topics: Sequence[TopicMatch],
) -> RiskAnalysis:
    """Apply the deterministic overrides and build the final verdict.

    Cannot fail: every input is already local and validated.
    """
    final_level, override_indicators = reduce_signals(
        collect_signals(analysis, scan, topics)
    )

    indicators = list(analysis.risk_indicators)
    indicators.extend(i for i in override_indicators if i not in indicators)

    suggestions = list(analysis.suggestions)
    if final_level == RiskLevel.CRITICAL:
        missing = [r for r in CRISIS_RESOURCES if r not in suggestions]
        suggestions = missing + suggestions

    if final_level > analysis.risk_level:
        logger.warning(
            "RISK_ESCALATED",
            extra={
                "from_level": analysis.risk_level.value,
                "to_level": final_level.value,
                "override_count": len(override_indicators),
                "is_fallback": analysis.is_fallback,
            }
        )

    return RiskAnalysis(
        sentiment=analysis.sentiment,
        sentiment_score=analysis.sentiment_score,
        risk_level=final_level,
        supportive_message=analysis.supportive_message,
        emotions=analysis.emotions,
        keywords=analysis.keywords,
        themes=analysis.themes,
        suggestions=tuple(suggestions),
        risk_indicators=tuple(indicators),
        detected_topics=tuple(topics),
        requires_immediate_attention=final_level == RiskLevel.CRITICAL,
        show_crisis_resources=final_level.shows_crisis_resources,
        is_fallback=analysis.is_fallback,
    )
