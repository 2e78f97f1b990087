"""
Error taxonomy for the pricing engine.

ProviderUnavailable is permanent (no credential) and must reach the caller
as a distinct retry-later signal. ProviderResponseInvalid is transient and
is absorbed per line item. StorageUnavailable only ever affects learning.
"""


class PricingError(Exception):
    """Base class for pricing engine errors."""


class ProviderUnavailable(PricingError):
    """The AI assessment provider has no credential or configuration."""

    def __init__(self, message: str = "AI not configured on the server. Set AI_API_KEY."):
        super().__init__(message)


class ProviderResponseInvalid(PricingError):
    """The provider timed out or returned empty or malformed output."""

    def __init__(self, reason: str):
        super().__init__(f"AI response invalid: {reason}")
        self.reason = reason


class ValidationError(PricingError):
    """Bad input rejected before any processing."""

    def __init__(self, field: str, message: str):
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class StorageUnavailable(PricingError):
    """The catalog persistence layer failed."""
