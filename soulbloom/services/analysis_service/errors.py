"""Exceptions raised by the analysis service."""


class InvalidInput(ValueError):
    """Check-in is missing both text and structured fields, or has bad values."""
    pass


class ProviderError(Exception):
    """Base exception for analysis provider failures."""
    pass


class ProviderAuthError(ProviderError):
    """Provider rejected the configured credential."""
    pass


class ProviderRateLimited(ProviderError):
    """Provider is throttling requests."""
    pass


class ProviderUnavailable(ProviderError):
    """Provider failed, timed out or returned an unusable response."""
    pass
