"""Rule-based analysis used when the provider is unavailable.

Deterministic: the same check-in always yields the same verdict. Crisis
language is not handled here; the keyword scanner runs on every path.
"""
import logging
import re
from typing import List, Optional, Sequence

from soulbloom.shared.models import (
    MoodRating,
    RiskLevel,
    Sentiment,
    NEGATIVE_EMOTIONS,
    POSITIVE_EMOTIONS,
)
from .context import CheckinContext
from .sanitizer import ProviderAnalysis

logger = logging.getLogger(__name__)

MOOD_SENTIMENT = {
    MoodRating.GREAT: (Sentiment.POSITIVE, 0.9),
    MoodRating.GOOD: (Sentiment.POSITIVE, 0.6),
    MoodRating.OKAY: (Sentiment.NEUTRAL, 0.0),
    MoodRating.NOT_GOOD: (Sentiment.NEGATIVE, -0.5),
    MoodRating.TERRIBLE: (Sentiment.NEGATIVE, -0.8),
}

POSITIVE_WORDS = (
    "happy", "good", "great", "wonderful", "amazing", "grateful", "thankful",
    "excited", "peaceful", "calm", "better", "love", "joy",
)
NEGATIVE_WORDS = (
    "sad", "angry", "frustrated", "anxious", "worried", "stressed", "tired",
    "exhausted", "lonely", "depressed", "hopeless", "overwhelmed", "scared",
)

BREATHING_SUGGESTION = (
    "Try a 5-minute breathing exercise: breathe in for 4 counts, hold for 4, exhale for 6"
)

SENTIMENT_SUGGESTIONS = {
    Sentiment.POSITIVE: (
        "Continue your positive momentum with a gratitude journal entry",
        "Share your good feelings with someone you care about",
        "Take a moment to appreciate what's going well",
    ),
    Sentiment.NEGATIVE: (
        BREATHING_SUGGESTION,
        "Write down three things, no matter how small, that you're grateful for",
        "Consider reaching out to a friend or loved one for support",
        "Take a short walk outside if possible - nature can help shift your mood",
    ),
    Sentiment.NEUTRAL: (
        "Check in with your body - are you holding any tension?",
        "Set an intention for the rest of your day",
        "Take a mindful moment to notice five things around you",
    ),
    Sentiment.MIXED: (
        "Acknowledge that it's okay to feel multiple emotions at once",
        "Try journaling about what's causing these mixed feelings",
        "Practice self-compassion - you're doing your best",
    ),
}

EMOTION_SUGGESTIONS = (
    ("anxious", "Practice the 5-4-3-2-1 grounding technique: notice 5 things you see, "
                "4 you hear, 3 you feel, 2 you smell, 1 you taste"),
    ("sad", "Reach out to someone you trust - connection can help lift your spirits"),
    ("angry", "Try progressive muscle relaxation - tense and release each muscle group "
              "to release tension"),
    ("tired", "Consider a short power nap (15-20 min) or some gentle stretching to restore energy"),
    ("stressed", "Write down your worries to get them out of your head - it can reduce "
                 "their power over you"),
)

MOOD_MESSAGES = {
    MoodRating.GREAT: "It's wonderful to see you're feeling great! Cherish this positive energy.",
    MoodRating.GOOD: "Good to hear things are going well. Keep taking care of yourself!",
    MoodRating.OKAY: "Thank you for checking in. It's perfectly fine to have average days too.",
    MoodRating.NOT_GOOD: "I'm sorry to hear things aren't going well. Remember, tough times are temporary.",
    MoodRating.TERRIBLE: (
        "I hear that things are really hard right now. Please know that you're not alone, "
        "and it's okay to reach out for support."
    ),
}

_KEYWORD_PATTERN = re.compile(r"\b[a-zA-Z]{4,}\b")
_POSITIVE_PATTERN = re.compile(r"\b(?:" + "|".join(POSITIVE_WORDS) + r")\b")
_NEGATIVE_PATTERN = re.compile(r"\b(?:" + "|".join(NEGATIVE_WORDS) + r")\b")
MAX_FALLBACK_KEYWORDS = 5
MAX_FALLBACK_SUGGESTIONS = 4


def fallback_analysis(context: CheckinContext) -> ProviderAnalysis:
    """Build an analysis from the structured fields and simple text cues."""
    emotions = context.selected_emotions
    stress = context.stress_level
    lower_text = (context.text or "").lower()

    score = 0.0
    risk_level = RiskLevel.LOW
    if context.mood_rating is not None:
        _, score = MOOD_SENTIMENT[context.mood_rating]

    if stress is not None:
        if stress >= 8:
            score = min(score, -0.3)
            risk_level = RiskLevel.HIGH
        elif stress >= 6:
            score = min(score, 0.0)
            risk_level = (
                RiskLevel.HIGH if context.mood_rating is MoodRating.TERRIBLE
                else RiskLevel.MODERATE
            )

    negative_count = sum(1 for e in emotions if e in NEGATIVE_EMOTIONS)
    positive_count = sum(1 for e in emotions if e in POSITIVE_EMOTIONS)
    if negative_count > positive_count and negative_count >= 2:
        score = min(score, -0.2)

    if lower_text:
        positive_hits = len(set(_POSITIVE_PATTERN.findall(lower_text)))
        negative_hits = len(set(_NEGATIVE_PATTERN.findall(lower_text)))
        if negative_hits > positive_hits and negative_hits >= 2:
            score = max(-0.9, score - 0.2)
        elif positive_hits > negative_hits and positive_hits >= 2:
            score = min(0.9, score + 0.2)

    if score > 0.2:
        sentiment = Sentiment.POSITIVE
    elif score < -0.2:
        sentiment = Sentiment.NEGATIVE
    elif positive_count > 0 and negative_count > 0:
        sentiment = Sentiment.MIXED
    else:
        sentiment = Sentiment.NEUTRAL

    keywords = tuple(
        dict.fromkeys(_KEYWORD_PATTERN.findall(context.text or ""))
    )[:MAX_FALLBACK_KEYWORDS]

    analysis = ProviderAnalysis(
        sentiment=sentiment,
        sentiment_score=round(score, 2),
        risk_level=risk_level,
        supportive_message=supportive_message_for(context.mood_rating, stress, emotions),
        emotions=tuple(emotions),
        keywords=keywords,
        suggestions=tuple(suggestions_for(sentiment, stress, emotions)),
        is_fallback=True,
    )

    logger.info(
        "FALLBACK_ANALYSIS_BUILT",
        extra={
            "sentiment": analysis.sentiment.value,
            "risk_level": analysis.risk_level.value,
        }
    )
    return analysis


def suggestions_for(
    sentiment: Sentiment,
    stress_level: Optional[int],
    emotions: Sequence[str],
) -> List[str]:
    """Pick up to four suggestions for the stress level and emotions."""
    suggestions: List[str] = []

    if stress_level is not None and stress_level >= 7:
        suggestions.append(BREATHING_SUGGESTION)
        suggestions.append("Step away from stressors if possible - even a 5-minute break can help")

    for emotion, suggestion in EMOTION_SUGGESTIONS:
        if emotion in emotions:
            suggestions.append(suggestion)

    if any(e in POSITIVE_EMOTIONS for e in emotions):
        suggestions.append("Take a moment to savor this positive feeling - what contributed to it?")

    if len(suggestions) < 2:
        for s in SENTIMENT_SUGGESTIONS[sentiment]:
            if s not in suggestions and len(suggestions) < MAX_FALLBACK_SUGGESTIONS:
                suggestions.append(s)

    return suggestions[:MAX_FALLBACK_SUGGESTIONS]


def supportive_message_for(
    mood_rating: Optional[MoodRating],
    stress_level: Optional[int],
    emotions: Sequence[str],
) -> str:
    if stress_level is not None and stress_level >= 8:
        return (
            "I can see you're under a lot of stress right now. Remember to be gentle "
            "with yourself - you're doing the best you can."
        )
    if mood_rating is not None:
        return MOOD_MESSAGES[mood_rating]
    if "anxious" in emotions or "stressed" in emotions:
        return "Feeling anxious can be overwhelming. Take things one step at a time - you've got this."
    if "sad" in emotions:
        return "It's okay to feel sad. Your emotions are valid, and it's brave of you to acknowledge them."
    return (
        "Thank you for taking the time to check in with yourself. Self-awareness is an "
        "important part of wellbeing."
    )
