"""PII handling utilities: no raw user identifiers or check-in text in logs.

User identifiers are hashed with a secret salt before they reach any log
line. Check-in text is only ever logged as an unsalted fingerprint.
"""
import hashlib
import logging
import os
from typing import Optional, Union

logger = logging.getLogger(__name__)

MIN_SALT_LENGTH = 32

# Loaded from PII_HASH_SALT (Secrets Manager injects it in production)
_PII_SALT: Optional[str] = None


def configure_pii_salt(salt: str) -> None:
    """Configure the PII hashing salt.

    Must be called during application startup before any PII hashing.

    Args:
        salt: Secret salt value

    Raises:
        ValueError: If salt is empty or too short
    """
    global _PII_SALT
    if not salt or len(salt) < MIN_SALT_LENGTH:
        logger.critical(
            "PII_SALT_CONFIGURATION_FAILED",
            extra={"reason": "Salt too short or empty", "min_length": MIN_SALT_LENGTH}
        )
        raise ValueError(f"PII salt must be at least {MIN_SALT_LENGTH} characters")

    _PII_SALT = salt
    logger.info("PII_SALT_CONFIGURED", extra={"salt_length": len(salt)})


def configure_pii_salt_from_env(
    default: str = "default_dev_salt_change_in_production_32chars",
) -> None:
    """Configure the salt from PII_HASH_SALT, falling back to a dev default."""
    configure_pii_salt(os.getenv("PII_HASH_SALT", default))


def ensure_pii_salt() -> None:
    """Configure the salt from the environment unless already configured.

    Called when services are built outside their HTTP handlers, such as
    from scheduler jobs, so hashing never finds it unset.
    """
    if _PII_SALT is None:
        configure_pii_salt_from_env()


def hash_pii(value: Union[str, int]) -> str:
    """Hash a user identifier for safe logging.

    Args:
        value: User id, email or device token

    Returns:
        64-char hex SHA-256 digest of salt + value

    Raises:
        RuntimeError: If PII salt has not been configured
    """
    if _PII_SALT is None:
        logger.critical(
            "PII_HASH_FAILED",
            extra={"reason": "Salt not configured", "action": "call configure_pii_salt()"}
        )
        raise RuntimeError("PII salt not configured. Call configure_pii_salt() first.")

    salted = f"{_PII_SALT}{value}"
    return hashlib.sha256(salted.encode()).hexdigest()


def hash_text_for_audit(text: Optional[str]) -> str:
    """Fingerprint check-in text so log lines never carry its content."""
    return hashlib.sha256((text or "").encode()).hexdigest()
