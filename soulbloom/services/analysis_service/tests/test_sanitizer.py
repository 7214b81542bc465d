"""Tests for provider output sanitization."""
import pytest

from soulbloom.shared.models import RiskLevel, Sentiment
from soulbloom.services.analysis_service.sanitizer import (
    DEFAULT_SUPPORTIVE_MESSAGE,
    sanitize_analysis,
)


class TestSanitizeAnalysis:
    """Tests for sanitize_analysis."""

    @pytest.mark.parametrize("raw_score,expected", [
        (0.4, 0.4),
        (5, 1.0),
        (-3.2, -1.0),
        ("0.7", 0.0),
        (None, 0.0),
        (True, 0.0),
        (float("nan"), 0.0),
        (float("inf"), 1.0),
    ])
    def test_score_is_always_in_range(self, raw_score, expected):
        assert sanitize_analysis({"sentiment_score": raw_score}).sentiment_score == expected

    def test_unknown_enums_default(self):
        result = sanitize_analysis({"sentiment": "ecstatic", "risk_level": "severe"})

        assert result.sentiment == Sentiment.NEUTRAL
        assert result.risk_level == RiskLevel.LOW

    def test_lists_are_truncated(self):
        result = sanitize_analysis({
            "emotions": [f"e{i}" for i in range(15)],
            "risk_indicators": [f"r{i}" for i in range(12)],
        })

        assert len(result.emotions) == 10
        assert len(result.risk_indicators) == 10

    def test_non_list_fields_become_empty(self):
        result = sanitize_analysis({"keywords": "work", "themes": None})

        assert result.keywords == ()
        assert result.themes == ()

    def test_missing_supportive_message(self):
        assert sanitize_analysis({}).supportive_message == DEFAULT_SUPPORTIVE_MESSAGE
        assert sanitize_analysis({"supportive_message": "  "}).supportive_message == DEFAULT_SUPPORTIVE_MESSAGE

    def test_non_mapping_input(self):
        result = sanitize_analysis(["not", "a", "dict"])

        assert result.risk_level == RiskLevel.LOW
        assert result.sentiment_score == 0.0
