"""Tests for the rule-based fallback analysis."""
import pytest

from soulbloom.shared.models import MoodRating, RiskLevel, Sentiment
from soulbloom.services.analysis_service.context import CheckinContext
from soulbloom.services.analysis_service.fallback import fallback_analysis


class TestMoodMapping:
    """Tests for mood rating to sentiment mapping."""

    @pytest.mark.parametrize("mood,sentiment,score", [
        (MoodRating.GREAT, Sentiment.POSITIVE, 0.9),
        (MoodRating.GOOD, Sentiment.POSITIVE, 0.6),
        (MoodRating.OKAY, Sentiment.NEUTRAL, 0.0),
        (MoodRating.NOT_GOOD, Sentiment.NEGATIVE, -0.5),
        (MoodRating.TERRIBLE, Sentiment.NEGATIVE, -0.8),
    ])
    def test_mood_only(self, mood, sentiment, score):
        result = fallback_analysis(CheckinContext(mood_rating=mood))

        assert result.sentiment == sentiment
        assert result.sentiment_score == score
        assert result.risk_level == RiskLevel.LOW
        assert result.is_fallback is True


class TestStressRules:
    """Tests for stress-driven risk."""

    def test_very_high_stress(self):
        result = fallback_analysis(CheckinContext(mood_rating=MoodRating.GOOD, stress_level=9))

        assert result.sentiment_score == -0.3
        assert result.risk_level == RiskLevel.HIGH
        assert "under a lot of stress" in result.supportive_message

    def test_elevated_stress(self):
        result = fallback_analysis(CheckinContext(mood_rating=MoodRating.GREAT, stress_level=6))

        assert result.sentiment_score == 0.0
        assert result.risk_level == RiskLevel.MODERATE

    def test_elevated_stress_with_terrible_mood(self):
        result = fallback_analysis(CheckinContext(mood_rating=MoodRating.TERRIBLE, stress_level=7))

        assert result.risk_level == RiskLevel.HIGH


class TestEmotionsAndText:
    """Tests for emotion and text adjustments."""

    def test_negative_emotions_cap_score(self):
        result = fallback_analysis(CheckinContext(
            mood_rating=MoodRating.OKAY,
            selected_emotions=("sad", "tired"),
        ))

        assert result.sentiment_score == -0.2
        assert result.emotions == ("sad", "tired")

    def test_mixed_emotions(self):
        result = fallback_analysis(CheckinContext(
            mood_rating=MoodRating.OKAY,
            selected_emotions=("happy", "anxious"),
        ))

        assert result.sentiment == Sentiment.MIXED

    def test_negative_words_nudge_down(self):
        result = fallback_analysis(CheckinContext(
            text="So lonely and exhausted lately",
            mood_rating=MoodRating.OKAY,
        ))

        assert result.sentiment_score == -0.2

    def test_positive_words_nudge_up(self):
        result = fallback_analysis(CheckinContext(
            text="Grateful and excited about the trip",
            mood_rating=MoodRating.OKAY,
        ))

        assert result.sentiment_score == 0.2

    @pytest.mark.parametrize("text", [
        "Goodbye greatcoat, hello lovely weather",
        "The crusade retired early",
    ])
    def test_words_inside_other_words_are_ignored(self, text):
        result = fallback_analysis(CheckinContext(text=text, mood_rating=MoodRating.OKAY))

        assert result.sentiment_score == 0.0
        assert result.sentiment == Sentiment.NEUTRAL

    def test_keywords_are_unique_and_limited(self):
        result = fallback_analysis(CheckinContext(
            text="work work meeting deadline project budget review",
        ))

        assert result.keywords == ("work", "meeting", "deadline", "project", "budget")


class TestSuggestions:
    """Tests for context suggestions."""

    def test_at_most_four(self):
        result = fallback_analysis(CheckinContext(
            stress_level=9,
            selected_emotions=("anxious", "sad", "angry", "tired", "stressed"),
        ))

        assert len(result.suggestions) == 4
        assert result.suggestions[0].startswith("Try a 5-minute breathing exercise")

    def test_sentiment_suggestions_fill_in(self):
        result = fallback_analysis(CheckinContext(mood_rating=MoodRating.GREAT))

        assert len(result.suggestions) >= 2
        assert "gratitude journal" in result.suggestions[0]
