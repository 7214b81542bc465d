"""Safety Service: deterministic keyword and topic checks.

Model verdicts are never trusted alone. Every check-in passes through
the keyword scanner and topic detector, and their results can only
raise the final risk level.

Components:
- scanner.py: SafetyKeywordScanner for crisis and self-harm phrases
- topic_detector.py: TopicDetector mapping text to support resources
- topics.py: Topic keyword tables and resources
- handler.py: Flask HTTP endpoints (/health, /topics, /resources)

Usage:
    from soulbloom.services.safety_service import SafetyKeywordScanner, detect_topics
    result = SafetyKeywordScanner().scan(text)
    topics = detect_topics(text)
"""

from .config import SafetyConfig, CRITICAL_KEYWORDS, HIGH_RISK_KEYWORDS
from .scanner import (
    SafetyKeywordScanner,
    KeywordScanResult,
    KeywordRiskSignal,
    normalize_text,
)
from .topic_detector import TopicDetector, detect_topics, get_resource, all_topics
from .topics import TOPIC_DEFINITIONS, SELF_HARM_TOPIC_ID

__all__ = [
    "SafetyConfig",
    "CRITICAL_KEYWORDS",
    "HIGH_RISK_KEYWORDS",
    "SafetyKeywordScanner",
    "KeywordScanResult",
    "KeywordRiskSignal",
    "normalize_text",
    "TopicDetector",
    "detect_topics",
    "get_resource",
    "all_topics",
    "TOPIC_DEFINITIONS",
    "SELF_HARM_TOPIC_ID",
]
