"""Language-model analysis providers.

A provider turns one check-in into a raw analysis dict. It does no
sanitizing or escalation of its own; the classifier never trusts the
provider's output as-is.
"""
import json
import logging
import re
import time
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import openai

from .config import AnalysisConfig
from .context import CheckinContext
from .errors import ProviderAuthError, ProviderRateLimited, ProviderUnavailable

logger = logging.getLogger(__name__)


ANALYSIS_PROMPT = """You are a mental health analysis assistant for a wellness app. \
Analyze the check-in below and return a structured, compassionate and \
non-judgmental assessment.

Return a JSON object with exactly these fields:
{
  "sentiment": "positive" | "negative" | "neutral" | "mixed",
  "sentiment_score": <number from -1 (most negative) to 1 (most positive)>,
  "emotions": [<emotions selected by the user or detected in the text>],
  "keywords": [<significant words or phrases from the text>],
  "themes": [<themes such as "work stress", "relationships", "self-care">],
  "suggestions": [<2-4 specific, actionable mindfulness suggestions>],
  "risk_level": "low" | "moderate" | "high" | "critical",
  "risk_indicators": [<concerning phrases or patterns, empty if none>],
  "supportive_message": "<a brief message acknowledging their feelings>"
}

Risk levels:
- "low": normal daily emotions, nothing concerning
- "moderate": stress, anxiety or low mood that could use attention (stress 6-7, negative mood)
- "high": significant distress, isolation or hopelessness without immediate danger (stress 8-10, terrible mood)
- "critical": any mention of self-harm, suicide or harming others

Mood scale: great, good, okay, not_good, terrible. Stress scale: 1-10.
Weight the structured inputs heavily, especially when the text is short.
Respond with valid JSON only."""


def format_checkin(context: CheckinContext) -> str:
    """Render a check-in as the user message for the model."""
    lines = []
    if context.mood_rating is not None:
        lines.append(f"Mood Rating: {context.mood_rating.label}")
    if context.stress_level is not None:
        lines.append(f"Stress Level: {context.stress_level}/10")
    if context.selected_emotions:
        lines.append(f"Selected Emotions: {', '.join(context.selected_emotions)}")

    if context.has_text:
        lines.append(f'\nAdditional Thoughts:\n"{context.text}"')
    else:
        lines.append("\nAdditional Thoughts: (none provided)")
    return "\n".join(lines)


_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def extract_json(response_text: str) -> Dict[str, Any]:
    """Parse a JSON object from model output, tolerating surrounding prose.

    Raises:
        ValueError: If no JSON object can be parsed
    """
    try:
        parsed = json.loads(response_text)
    except (TypeError, ValueError):
        match = _JSON_OBJECT.search(response_text or "")
        if not match:
            raise ValueError("No JSON object in provider response")
        parsed = json.loads(match.group(0))

    if not isinstance(parsed, dict):
        raise ValueError("Provider response is not a JSON object")
    return parsed


class AnalysisProvider(ABC):
    """Abstract base class for check-in analysis providers."""

    name: str = "abstract"

    @abstractmethod
    def analyze(self, text: Optional[str], context: CheckinContext) -> Dict[str, Any]:
        """Analyze a check-in.

        Args:
            text: Free text, may be None
            context: Validated structured check-in fields

        Returns:
            Raw analysis dict as produced by the model

        Raises:
            ProviderAuthError: Credential rejected
            ProviderRateLimited: Provider throttling
            ProviderUnavailable: Any other failure, including timeouts
                and unparseable responses
        """
        pass


class OpenAIAnalysisProvider(AnalysisProvider):
    """OpenAI chat completions implementation."""

    name = "openai"

    def __init__(self, config: AnalysisConfig, client: Optional[Any] = None):
        """Initialize OpenAI provider.

        Args:
            config: Analysis configuration with API key
            client: Pre-built client (tests inject a mock here)
        """
        if client is None and not config.has_credential:
            raise ValueError("OpenAI API key required")

        self.config = config
        self.client = client or openai.OpenAI(
            api_key=config.api_key,
            timeout=config.timeout_seconds,
            max_retries=0,
        )

        logger.info(
            "ANALYSIS_PROVIDER_INITIALIZED",
            extra={"provider": self.name, "model": config.model}
        )

    def analyze(self, text: Optional[str], context: CheckinContext) -> Dict[str, Any]:
        start_time = time.time()

        try:
            response = self.client.chat.completions.create(
                model=self.config.model,
                messages=[
                    {"role": "system", "content": ANALYSIS_PROMPT},
                    {"role": "user", "content": format_checkin(context)},
                ],
                max_tokens=self.config.max_tokens,
                temperature=self.config.temperature,
                response_format={"type": "json_object"},
                timeout=self.config.timeout_seconds,
            )
        except openai.AuthenticationError as e:
            logger.error(
                "ANALYSIS_PROVIDER_AUTH_FAILED",
                extra={"provider": self.name, "error": str(e)}
            )
            raise ProviderAuthError("Invalid OpenAI API key") from e
        except openai.RateLimitError as e:
            logger.warning(
                "ANALYSIS_PROVIDER_RATE_LIMITED",
                extra={"provider": self.name}
            )
            raise ProviderRateLimited("Rate limit exceeded. Please try again later.") from e
        except openai.OpenAIError as e:
            logger.error(
                "ANALYSIS_PROVIDER_FAILED",
                extra={
                    "provider": self.name,
                    "error": str(e),
                    "error_type": type(e).__name__,
                }
            )
            raise ProviderUnavailable(str(e)) from e

        latency_ms = (time.time() - start_time) * 1000

        try:
            content = response.choices[0].message.content
            analysis = extract_json(content)
        except (AttributeError, IndexError, ValueError) as e:
            logger.error(
                "ANALYSIS_PROVIDER_UNPARSEABLE",
                extra={"provider": self.name, "error": str(e), "latency_ms": latency_ms}
            )
            raise ProviderUnavailable("Failed to parse provider response") from e

        logger.info(
            "ANALYSIS_PROVIDER_COMPLETED",
            extra={
                "provider": self.name,
                "model": self.config.model,
                "latency_ms": latency_ms,
            }
        )
        return analysis


def create_provider(config: AnalysisConfig) -> Optional[AnalysisProvider]:
    """Build the configured provider, or None when no credential is set."""
    if not config.has_credential:
        logger.warning(
            "ANALYSIS_PROVIDER_NOT_CONFIGURED",
            extra={"action": "FALLBACK_ANALYSIS_ONLY"}
        )
        return None
    return OpenAIAnalysisProvider(config)
