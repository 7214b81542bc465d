"""Risk classifier - one check-in in, one trustworthy RiskAnalysis out.

Flow for a single request:

    REQUESTED -> PROVIDER_CALLED -> SANITIZED -> ESCALATED -> FINALIZED
                              \\-> (fallback) -> ESCALATED -> FALLBACK_FINALIZED

The keyword scanner and topic detector run on every path, so a provider
outage can degrade the sentiment reading but never skip crisis detection.
"""
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Sequence

from soulbloom.shared.models import RiskAnalysis, RiskLevel
from soulbloom.shared.utils import ensure_pii_salt, hash_pii, hash_text_for_audit
from soulbloom.services.safety_service import SafetyKeywordScanner, TopicDetector
from .config import AnalysisConfig
from .context import CheckinContext, build_context
from .errors import InvalidInput, ProviderAuthError, ProviderRateLimited
from .escalation import escalate
from .fallback import fallback_analysis
from .provider import AnalysisProvider, create_provider
from .sanitizer import ProviderAnalysis, sanitize_analysis

logger = logging.getLogger(__name__)


class ClassificationState(Enum):
    REQUESTED = "requested"
    PROVIDER_CALLED = "provider_called"
    SANITIZED = "sanitized"
    ESCALATED = "escalated"
    FINALIZED = "finalized"
    FALLBACK_FINALIZED = "fallback_finalized"


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of one entry in a batch classification."""
    index: int
    success: bool
    analysis: Optional[RiskAnalysis] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {"index": self.index, "success": self.success}
        if self.success:
            result["analysis"] = self.analysis.to_dict()
        else:
            result["error"] = self.error
        return result


class RiskClassifier:
    """Merges a provider verdict with deterministic safety overrides.

    Holds no per-request state; one instance can serve concurrent
    requests from many threads.
    """

    def __init__(
        self,
        provider: Optional[AnalysisProvider] = None,
        scanner: Optional[SafetyKeywordScanner] = None,
        topic_detector: Optional[TopicDetector] = None,
    ):
        """Initialize classifier.

        Args:
            provider: Language-model provider; None means fallback only
            scanner: Keyword scanner (default lists if omitted)
            topic_detector: Topic detector (default table if omitted)
        """
        self.provider = provider
        self.scanner = scanner or SafetyKeywordScanner()
        self.topic_detector = topic_detector or TopicDetector()
        ensure_pii_salt()

        logger.info(
            "RISK_CLASSIFIER_INITIALIZED",
            extra={"provider": provider.name if provider else None}
        )

    def classify(
        self,
        text: Optional[str] = None,
        structured: Optional[Mapping[str, Any]] = None,
        user_id: Optional[str] = None,
    ) -> RiskAnalysis:
        """Classify a single check-in.

        Args:
            text: Optional free text
            structured: mood_rating, stress_level, selected_emotions
            user_id: Only used (hashed) for log correlation

        Returns:
            Final, immutable RiskAnalysis

        Raises:
            InvalidInput: Neither text nor structured fields supplied,
                or a structured field is invalid
            ProviderAuthError: Provider rejected the credential
            ProviderRateLimited: Provider is throttling

        Logs:
            - CLASSIFICATION_REQUESTED
            - CLASSIFICATION_FALLBACK: Provider missing or failed
            - CLASSIFICATION_CRITICAL: Final level is critical
            - CLASSIFICATION_COMPLETED
        """
        user_id_hash = _correlation_hash(user_id)
        _log_state(ClassificationState.REQUESTED, user_id_hash)

        try:
            context = build_context(text, structured)
        except InvalidInput as e:
            logger.warning(
                "CLASSIFICATION_INVALID_INPUT",
                extra={"user_id_hash": user_id_hash, "reason": str(e)}
            )
            raise

        logger.info(
            "CLASSIFICATION_REQUESTED",
            extra={
                "user_id_hash": user_id_hash,
                "text_hash": hash_text_for_audit(context.text),
                "text_length": len(context.text or ""),
                "has_structured": context.has_structured,
            }
        )

        analysis = self._provider_analysis(context, user_id_hash)

        scan = self.scanner.scan(context.text)
        topics = self.topic_detector.detect(context.text)
        result = escalate(analysis, scan, topics)
        _log_state(ClassificationState.ESCALATED, user_id_hash)

        state = (
            ClassificationState.FALLBACK_FINALIZED if result.is_fallback
            else ClassificationState.FINALIZED
        )

        if result.risk_level == RiskLevel.CRITICAL:
            logger.critical(
                "CLASSIFICATION_CRITICAL",
                extra={
                    "user_id_hash": user_id_hash,
                    "keyword_level": scan.level.value,
                    "provider_level": analysis.risk_level.value,
                    "action": "SHOW_CRISIS_RESOURCES",
                }
            )

        logger.info(
            "CLASSIFICATION_COMPLETED",
            extra={
                "user_id_hash": user_id_hash,
                "state": state.value,
                "risk_level": result.risk_level.value,
                "sentiment": result.sentiment.value,
                "topic_ids": list(result.topic_ids),
                "is_fallback": result.is_fallback,
            }
        )
        return result

    def _provider_analysis(
        self,
        context: CheckinContext,
        user_id_hash: Optional[str],
    ) -> ProviderAnalysis:
        """Call the provider and sanitize, or fall back.

        Auth and rate-limit failures propagate; everything else falls back.
        """
        if self.provider is None:
            logger.warning(
                "CLASSIFICATION_FALLBACK",
                extra={"user_id_hash": user_id_hash, "reason": "no_provider"}
            )
            return fallback_analysis(context)

        try:
            raw = self.provider.analyze(context.text, context)
        except (ProviderAuthError, ProviderRateLimited):
            raise
        except Exception as e:
            logger.warning(
                "CLASSIFICATION_FALLBACK",
                extra={
                    "user_id_hash": user_id_hash,
                    "reason": "provider_error",
                    "error_type": type(e).__name__,
                }
            )
            return fallback_analysis(context)
        _log_state(ClassificationState.PROVIDER_CALLED, user_id_hash)

        analysis = sanitize_analysis(raw)
        _log_state(ClassificationState.SANITIZED, user_id_hash)
        return analysis

    def classify_batch(self, texts: Sequence[Any]) -> List[BatchItemResult]:
        """Classify several free-text check-ins independently.

        One failing entry does not affect the others.

        Raises:
            InvalidInput: If texts is not a non-empty list
        """
        if not isinstance(texts, (list, tuple)) or not texts:
            raise InvalidInput("Array of texts is required")

        results = []
        for index, text in enumerate(texts):
            try:
                results.append(BatchItemResult(index=index, success=True,
                                               analysis=self.classify(text)))
            except (InvalidInput, ProviderAuthError, ProviderRateLimited) as e:
                results.append(BatchItemResult(index=index, success=False, error=str(e)))
        return results


def _correlation_hash(user_id: Optional[str]) -> Optional[str]:
    """Hashed user id for log lines; a hashing failure never blocks classification."""
    if not user_id:
        return None
    try:
        return hash_pii(user_id)
    except RuntimeError:
        logger.warning("CLASSIFICATION_USER_HASH_UNAVAILABLE")
        return None


def _log_state(state: ClassificationState, user_id_hash: Optional[str]) -> None:
    logger.debug(
        "CLASSIFICATION_STATE",
        extra={"state": state.value, "user_id_hash": user_id_hash}
    )


_default_classifier: Optional[RiskClassifier] = None


def get_classifier() -> RiskClassifier:
    """Get or create the classifier configured from the environment."""
    global _default_classifier
    if _default_classifier is None:
        _default_classifier = RiskClassifier(
            provider=create_provider(AnalysisConfig.from_env())
        )
    return _default_classifier


def classify(
    text: Optional[str] = None,
    structured: Optional[Mapping[str, Any]] = None,
    user_id: Optional[str] = None,
) -> RiskAnalysis:
    """Classify a check-in with the environment-configured classifier."""
    return get_classifier().classify(text, structured, user_id=user_id)
