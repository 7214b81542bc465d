"""Analysis Service configuration."""
import os
from dataclasses import dataclass
from typing import Optional

# Value shipped in .env templates; treated the same as no key at all
PLACEHOLDER_API_KEY = "your_openai_api_key_here"


@dataclass(frozen=True)
class AnalysisConfig:
    """Configuration for the language-model analysis provider."""
    api_key: Optional[str] = None
    model: str = "gpt-4o-mini"
    timeout_seconds: float = 15.0
    max_tokens: int = 1024
    temperature: float = 0.3

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key) and self.api_key != PLACEHOLDER_API_KEY

    @classmethod
    def from_env(cls) -> "AnalysisConfig":
        """Create config from environment variables.

        Environment variables:
            OPENAI_API_KEY: Provider credential (missing = fallback analysis only)
            ANALYSIS_MODEL: Chat model name
            ANALYSIS_TIMEOUT_SECONDS: Per-request timeout
            ANALYSIS_MAX_TOKENS: Completion token limit
        """
        return cls(
            api_key=os.getenv("OPENAI_API_KEY"),
            model=os.getenv("ANALYSIS_MODEL", "gpt-4o-mini"),
            timeout_seconds=float(os.getenv("ANALYSIS_TIMEOUT_SECONDS", "15")),
            max_tokens=int(os.getenv("ANALYSIS_MAX_TOKENS", "1024")),
        )
