"""Analysis Service: check-in risk classification.

Merges a language-model sentiment judgment with the deterministic
keyword and topic checks of the safety service into one RiskAnalysis.

Components:
- classifier.py: RiskClassifier (validate, call provider, sanitize, escalate)
- provider.py: AnalysisProvider interface and the OpenAI implementation
- fallback.py: Rule-based analysis when the provider is unavailable
- escalation.py: Pure reducer over risk signals
- aggregate.py: Rollups over stored analyses
- handler.py: Flask HTTP endpoints (/health, /analyze)
"""

from .aggregate import AggregateAnalysis, aggregate_analyses
from .classifier import (
    RiskClassifier,
    ClassificationState,
    BatchItemResult,
    classify,
    get_classifier,
)
from .config import AnalysisConfig
from .context import CheckinContext, build_context
from .errors import (
    InvalidInput,
    ProviderError,
    ProviderAuthError,
    ProviderRateLimited,
    ProviderUnavailable,
)
from .escalation import CRISIS_RESOURCES, RiskSignal, SignalSource, escalate, reduce_signals
from .fallback import fallback_analysis
from .provider import AnalysisProvider, OpenAIAnalysisProvider, create_provider
from .sanitizer import ProviderAnalysis, sanitize_analysis

__all__ = [
    "AggregateAnalysis",
    "aggregate_analyses",
    "RiskClassifier",
    "ClassificationState",
    "BatchItemResult",
    "classify",
    "get_classifier",
    "AnalysisConfig",
    "CheckinContext",
    "build_context",
    "InvalidInput",
    "ProviderError",
    "ProviderAuthError",
    "ProviderRateLimited",
    "ProviderUnavailable",
    "CRISIS_RESOURCES",
    "RiskSignal",
    "SignalSource",
    "escalate",
    "reduce_signals",
    "fallback_analysis",
    "AnalysisProvider",
    "OpenAIAnalysisProvider",
    "create_provider",
    "ProviderAnalysis",
    "sanitize_analysis",
]
