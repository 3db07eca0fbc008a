"""
Error taxonomy for the availability engine.

Only the orchestrator and the OAuth flow raise AuthError and
IntegrationMissingError. The reconciliation engine never raises
provider errors.
"""


class AvailNowError(Exception):
    """Base class for every error raised by availnow."""


class IntegrationMissingError(AvailNowError):
    """No credential is stored for the requested user and provider."""

    def __init__(self, user_id: str, provider: str):
        self.user_id = user_id
        self.provider = provider
        super().__init__(f"No {provider} integration connected for user {user_id}")


class AuthError(AvailNowError):
    """The provider rejected our credentials (refresh failure or 401)."""

    def __init__(self, message: str = "Reconnect your calendar", provider: str | None = None):
        self.provider = provider
        super().__init__(message)


class InterruptedFlowError(AuthError):
    """The pending authorization for a callback is missing or expired."""


class TransientFetchError(AvailNowError):
    """Network failure, timeout, throttling or provider 5xx."""

    def __init__(self, message: str, status: int | None = None):
        self.status = status
        super().__init__(message)


class ProviderError(AvailNowError):
    """Non-retryable provider response, carrying the upstream description."""

    def __init__(self, message: str, status: int | None = None, provider: str | None = None):
        self.status = status
        self.provider = provider
        super().__init__(message)


class UnsupportedProviderError(AvailNowError):
    """A provider tag that has no adapter (apple, calendly, unknown)."""


class ValidationError(AvailNowError):
    """Malformed input. Never silently corrected."""


class NotFoundError(AvailNowError):
    """A referenced record does not exist for this user."""


class PersistenceError(AvailNowError):
    """The backing store is unavailable or rejected the operation."""


__all__ = [
    "AvailNowError",
    "AuthError",
    "IntegrationMissingError",
    "InterruptedFlowError",
    "NotFoundError",
    "PersistenceError",
    "ProviderError",
    "TransientFetchError",
    "UnsupportedProviderError",
    "ValidationError",
]
