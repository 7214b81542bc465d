"""Sensitive topic detection for check-in text.

Multi-word keywords match as substrings, single words only as whole words
so that "war" does not fire on "aware" or "gay" on "gayle".
"""
import logging
import re
from typing import List, Optional, Sequence, Tuple

from soulbloom.shared.models import TopicMatch, TopicResource
from .scanner import normalize_text
from .topics import TOPIC_DEFINITIONS, TOPICS_BY_ID, TopicDefinition

logger = logging.getLogger(__name__)


class TopicDetector:
    """Maps check-in text to sensitive topics and their resources.

    Pure and stateless after construction; safe to share across threads.
    """

    def __init__(self, definitions: Sequence[TopicDefinition] = TOPIC_DEFINITIONS):
        self._definitions = tuple(definitions)
        self._compiled: List[Tuple[TopicDefinition, Tuple[str, ...], Tuple[re.Pattern, ...]]] = []

        for definition in self._definitions:
            phrases = tuple(
                normalize_text(k) for k in definition.keywords if " " in k
            )
            words = tuple(
                re.compile(rf"\b{re.escape(normalize_text(k))}\b")
                for k in definition.keywords if " " not in k
            )
            self._compiled.append((definition, phrases, words))

    def detect(self, text) -> List[TopicMatch]:
        """Detect sensitive topics mentioned in text.

        Args:
            text: Check-in text; None, empty or non-string yields []

        Returns:
            Matches in topic declaration order, one per topic
        """
        if not text or not isinstance(text, str):
            return []

        normalized = normalize_text(text)
        matches = []
        for definition, phrases, words in self._compiled:
            if any(p in normalized for p in phrases) or any(w.search(normalized) for w in words):
                matches.append(_to_match(definition))

        if matches:
            logger.info(
                "TOPICS_DETECTED",
                extra={"topic_ids": [m.topic_id for m in matches]}
            )
        return matches

    def get_resource(self, topic_id: str) -> Optional[TopicResource]:
        definition = TOPICS_BY_ID.get(topic_id)
        return definition.resource if definition else None

    def all_topics(self) -> List[TopicMatch]:
        """Every known topic with its resource, for the resources listing."""
        return [_to_match(d) for d in self._definitions]


def _to_match(definition: TopicDefinition) -> TopicMatch:
    return TopicMatch(
        topic_id=definition.topic_id,
        topic_name=definition.display_name,
        resource=definition.resource,
    )


_default_detector: Optional[TopicDetector] = None


def _detector() -> TopicDetector:
    global _default_detector
    if _default_detector is None:
        _default_detector = TopicDetector()
    return _default_detector


def detect_topics(text) -> List[TopicMatch]:
    """Detect topics with the default topic table."""
    return _detector().detect(text)


def get_resource(topic_id: str) -> Optional[TopicResource]:
    return _detector().get_resource(topic_id)


def all_topics() -> List[TopicMatch]:
    return _detector().all_topics()
