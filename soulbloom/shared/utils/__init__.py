"""Shared utilities for SoulBloom platform."""
from .pii import (
    hash_pii,
    hash_text_for_audit,
    configure_pii_salt,
    configure_pii_salt_from_env,
    ensure_pii_salt,
)

__all__ = [
    "hash_pii",
    "hash_text_for_audit",
    "configure_pii_salt",
    "configure_pii_salt_from_env",
    "ensure_pii_salt",
]
