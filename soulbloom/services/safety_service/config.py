"""Safety Service configuration and keyword lists.

The keyword lists are a deterministic safety net under the language-model
analysis: a listed phrase always escalates, whatever the model said.
"""
import os
from dataclasses import dataclass
from typing import FrozenSet


@dataclass(frozen=True)
class SafetyConfig:
    """Configuration for safety scanning behavior."""

    # Version tracking for audit trail
    pattern_version: str = "2024.12.24"

    @classmethod
    def from_env(cls) -> "SafetyConfig":
        return cls(
            pattern_version=os.getenv("SAFETY_PATTERN_VERSION", cls.pattern_version),
        )


# Explicit self-destructive intent. Any match makes the check-in CRITICAL.
# Conjugated forms are listed explicitly since matching is plain substring.
CRITICAL_KEYWORDS: FrozenSet[str] = frozenset({
    "suicide",
    "suicidal",
    "kill myself",
    "killing myself",
    "end my life",
    "ending my life",
    "take my own life",
    "want to die",
    "wanna die",
    "better off dead",
    "better off without me",
    "no reason to live",
    "wish i wasn't here",
    "wish i was dead",
})

# Self-harm behavior and exhaustion references. Escalate to at least HIGH.
HIGH_RISK_KEYWORDS: FrozenSet[str] = frozenset({
    "self-harm",
    "self harm",
    "cutting",
    "cut myself",
    "hurt myself",
    "hurting myself",
    "harming myself",
    "burning myself",
    "tired of living",
    "can't take it anymore",
    "can't go on",
})
