"""Summaries over a user's stored check-in analyses."""
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, Union

from soulbloom.shared.models import RiskAnalysis, RiskLevel

TREND_THRESHOLD = 0.2
TOP_EMOTION_COUNT = 5


@dataclass(frozen=True)
class AggregateAnalysis:
    """Rollup of several analyses."""
    average_sentiment_score: float
    total_entries: int
    has_high_risk_entries: bool
    trend: str
    sentiment_distribution: Dict[str, int] = field(default_factory=dict)
    top_emotions: Tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "average_sentiment_score": self.average_sentiment_score,
            "sentiment_distribution": dict(self.sentiment_distribution),
            "top_emotions": list(self.top_emotions),
            "total_entries": self.total_entries,
            "has_high_risk_entries": self.has_high_risk_entries,
            "trend": self.trend,
        }


def aggregate_analyses(
    analyses: Iterable[Union[RiskAnalysis, Mapping[str, Any]]],
) -> Optional[AggregateAnalysis]:
    """Summarize analyses, accepting RiskAnalysis objects or stored dicts.

    Entries without a numeric sentiment score are skipped.

    Returns:
        AggregateAnalysis, or None when nothing usable was given
    """
    rows: List[Mapping[str, Any]] = []
    for analysis in analyses or ():
        row = analysis.to_dict() if isinstance(analysis, RiskAnalysis) else analysis
        if not isinstance(row, Mapping):
            continue
        score = row.get("sentiment_score")
        if isinstance(score, bool) or not isinstance(score, (int, float)):
            continue
        rows.append(row)

    if not rows:
        return None

    average = sum(r["sentiment_score"] for r in rows) / len(rows)
    distribution = Counter(str(r.get("sentiment")) for r in rows)
    emotions = Counter(e for r in rows for e in (r.get("emotions") or ()))
    high_risk = any(
        RiskLevel.from_value(r.get("risk_level")) >= RiskLevel.HIGH for r in rows
    )

    if average > TREND_THRESHOLD:
        trend = "positive"
    elif average < -TREND_THRESHOLD:
        trend = "negative"
    else:
        trend = "stable"

    return AggregateAnalysis(
        average_sentiment_score=round(average, 2),
        total_entries=len(rows),
        has_high_risk_entries=high_risk,
        trend=trend,
        sentiment_distribution=dict(distribution),
        top_emotions=tuple(e for e, _ in emotions.most_common(TOP_EMOTION_COUNT)),
    )
