"""Tests for aggregate analysis."""
from soulbloom.shared.models import RiskAnalysis, RiskLevel, Sentiment
from soulbloom.services.analysis_service.aggregate import aggregate_analyses


def stored(score, sentiment="neutral", risk="low", emotions=()):
    return {
        "sentiment_score": score,
        "sentiment": sentiment,
        "risk_level": risk,
        "emotions": list(emotions),
    }


class TestAggregateAnalyses:
    """Tests for aggregate_analyses."""

    def test_empty_returns_none(self):
        assert aggregate_analyses([]) is None
        assert aggregate_analyses(None) is None

    def test_entries_without_score_are_skipped(self):
        assert aggregate_analyses([{"sentiment": "neutral"}, None]) is None

    def test_negative_trend(self):
        summary = aggregate_analyses([
            stored(-0.5, "negative", emotions=["sad", "tired"]),
            stored(-0.4, "negative", emotions=["sad"]),
            stored(0.1, "neutral", emotions=["calm"]),
        ])

        assert summary.average_sentiment_score == -0.27
        assert summary.trend == "negative"
        assert summary.sentiment_distribution == {"negative": 2, "neutral": 1}
        assert summary.top_emotions[0] == "sad"
        assert summary.total_entries == 3
        assert summary.has_high_risk_entries is False

    def test_stable_trend_and_high_risk(self):
        summary = aggregate_analyses([stored(0.1, risk="high"), stored(0.0)])

        assert summary.trend == "stable"
        assert summary.has_high_risk_entries is True

    def test_accepts_risk_analysis_objects(self):
        analysis = RiskAnalysis(
            sentiment=Sentiment.POSITIVE,
            sentiment_score=0.8,
            risk_level=RiskLevel.LOW,
            supportive_message="Nice",
            emotions=("happy",),
        )

        summary = aggregate_analyses([analysis])

        assert summary.trend == "positive"
        assert summary.top_emotions == ("happy",)
