"""
Relay error taxonomy.
Every failure that can reach a caller carries an HTTP status and a fixed,
user-facing message. Raw provider errors and credentials never leave here.
"""

from typing import Optional


class RelayError(Exception):
    """Base class for failures translated into an HTTP response."""

    status_code = 500
    default_message = "The coach is taking a break, please try again later."

    def __init__(self, message: Optional[str] = None, detail: Optional[str] = None):
        self.message = message or self.default_message
        # Internal diagnostics for logs only
        self.detail = detail
        super().__init__(self.message)


class ValidationError(RelayError):
    status_code = 400
    default_message = "Message content cannot be empty."


class ProviderTimeoutError(RelayError):
    status_code = 500
    default_message = "The request timed out, the network may be slow. Please try again."


class AuthError(RelayError):
    status_code = 401
    default_message = "The service is misconfigured (invalid API key)."


class RateLimitError(RelayError):
    status_code = 429
    default_message = "Too many questions at once, take a short break and try again."


class ProviderError(RelayError):
    status_code = 500

    @classmethod
    def from_provider_text(cls, provider_text: Optional[str], detail: Optional[str] = None) -> "ProviderError":
        if provider_text:
            return cls(f"The coach could not answer: {provider_text}", detail=detail)
        return cls(detail=detail)


class StorageError(Exception):
    """Memory store failure. Logged, never returned to the caller."""

    def __init__(self, operation: str, user_key: str, cause: Exception):
        self.operation = operation
        self.user_key = user_key
        self.cause = cause
        super().__init__(f"{operation} failed for {user_key}: {cause}")
