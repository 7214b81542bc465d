"""Safety keyword scanner - deterministic override for model verdicts.

Phrases are matched as plain substrings of the normalized text rather than
on word boundaries, so "suicidal" and "thinking about suicide" both hit.
A false positive shows crisis resources to someone who did not need them;
a false negative is the failure this module exists to prevent.
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional

from soulbloom.shared.models import RiskLevel
from soulbloom.shared.utils import hash_text_for_audit
from .config import CRITICAL_KEYWORDS, HIGH_RISK_KEYWORDS, SafetyConfig

logger = logging.getLogger(__name__)

# Typographic apostrophes and quotes produced by mobile keyboards
_APOSTROPHES = str.maketrans({
    "‘": "'",
    "’": "'",
    "ʼ": "'",
    "`": "'",
    "´": "'",
})

CRITICAL_INDICATOR = "Critical keyword detected"
HIGH_RISK_INDICATOR = "High-risk keyword detected"


class KeywordRiskSignal(Enum):
    """Outcome of a keyword scan."""
    NONE = "none"
    HIGH = "high"
    CRITICAL = "critical"

    def as_risk_level(self) -> RiskLevel:
        return _SIGNAL_TO_RISK[self]


_SIGNAL_TO_RISK = {
    KeywordRiskSignal.NONE: RiskLevel.LOW,
    KeywordRiskSignal.HIGH: RiskLevel.HIGH,
    KeywordRiskSignal.CRITICAL: RiskLevel.CRITICAL,
}


@dataclass(frozen=True)
class KeywordScanResult:
    """Result of a keyword scan.

    ``indicators`` carries one human-readable entry per matched phrase
    at the winning level.
    """
    level: KeywordRiskSignal
    indicators: List[str] = field(default_factory=list)
    matched_keywords: List[str] = field(default_factory=list)

    @property
    def flagged(self) -> bool:
        return self.level is not KeywordRiskSignal.NONE

    def to_dict(self) -> Dict[str, Any]:
        return {
            "level": self.level.value,
            "indicators": list(self.indicators),
        }


def normalize_text(text: str) -> str:
    """Lowercase, unify apostrophes and collapse whitespace."""
    return " ".join(text.translate(_APOSTROPHES).lower().split())


class SafetyKeywordScanner:
    """Scans check-in text for crisis and self-harm phrases.

    Critical phrases take precedence: when any critical phrase matches,
    high-risk matches are not reported.
    """

    def __init__(
        self,
        config: Optional[SafetyConfig] = None,
        critical_keywords: FrozenSet[str] = CRITICAL_KEYWORDS,
        high_risk_keywords: FrozenSet[str] = HIGH_RISK_KEYWORDS,
    ):
        self.config = config or SafetyConfig()
        # Sorted so indicators come out in a stable order
        self._critical = sorted(normalize_text(k) for k in critical_keywords)
        self._high = sorted(normalize_text(k) for k in high_risk_keywords)

        logger.info(
            "KEYWORD_SCANNER_INITIALIZED",
            extra={
                "pattern_version": self.config.pattern_version,
                "critical_pattern_count": len(self._critical),
                "high_pattern_count": len(self._high),
            }
        )

    def scan(self, text: Optional[str]) -> KeywordScanResult:
        """Scan text for listed phrases.

        Args:
            text: Raw check-in text; None or empty is a clean scan

        Returns:
            KeywordScanResult with level none, high or critical

        Logs:
            - KEYWORD_SCAN_CRITICAL: critical phrase matched (CRITICAL level)
            - KEYWORD_SCAN_HIGH: high-risk phrase matched
        """
        if not text or not isinstance(text, str):
            return KeywordScanResult(level=KeywordRiskSignal.NONE)

        normalized = normalize_text(text)

        critical_matches = [k for k in self._critical if k in normalized]
        if critical_matches:
            logger.critical(
                "KEYWORD_SCAN_CRITICAL",
                extra={
                    "text_hash": hash_text_for_audit(text),
                    "text_length": len(text),
                    "match_count": len(critical_matches),
                    "pattern_version": self.config.pattern_version,
                }
            )
            return KeywordScanResult(
                level=KeywordRiskSignal.CRITICAL,
                indicators=[f"{CRITICAL_INDICATOR}: {k}" for k in critical_matches],
                matched_keywords=critical_matches,
            )

        high_matches = [k for k in self._high if k in normalized]
        if high_matches:
            logger.warning(
                "KEYWORD_SCAN_HIGH",
                extra={
                    "text_hash": hash_text_for_audit(text),
                    "match_count": len(high_matches),
                    "pattern_version": self.config.pattern_version,
                }
            )
            return KeywordScanResult(
                level=KeywordRiskSignal.HIGH,
                indicators=[f"{HIGH_RISK_INDICATOR}: {k}" for k in high_matches],
                matched_keywords=high_matches,
            )

        return KeywordScanResult(level=KeywordRiskSignal.NONE)
