"""Gatekeeper exceptions.

Credential operations report domain failures through ``AuthResult`` and
``AuthErrorKind``. The exceptions here cover what does not fit a result:
bearer-token verification failures, store-level constraint violations and
infrastructure problems that the caller must treat as fatal or retryable.
"""

from enum import Enum


class AuthErrorKind(str, Enum):
    """Domain failure kinds returned by the credential service."""

    INVALID_INPUT = "invalid_input"
    CONFLICT = "conflict"
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_DEACTIVATED = "account_deactivated"
    INVALID_TOKEN = "invalid_token"
    TOKEN_EXPIRED = "token_expired"
    NOT_FOUND = "not_found"


class GatekeeperError(Exception):
    """Base exception for all Gatekeeper errors."""

    def __init__(self, message: str = "Gatekeeper error"):
        self.message = message
        super().__init__(self.message)


class BearerTokenError(GatekeeperError):
    """Raised when a bearer token cannot be accepted."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class MalformedBearerTokenError(BearerTokenError):
    """Raised when a bearer token has a bad signature, structure or claims."""

    def __init__(self, message: str = "Invalid token"):
        super().__init__(message)


class BearerTokenExpiredError(BearerTokenError):
    """Raised when a bearer token is well-formed but past its expiry."""

    def __init__(self, message: str = "Token expired"):
        super().__init__(message)


class EmailAlreadyExistsError(GatekeeperError):
    """Raised by the store when a write violates email uniqueness."""

    def __init__(self, email: str):
        self.email = email
        super().__init__("Email is already registered")


class InfrastructureError(GatekeeperError):
    """Raised when the store or another backing service is unavailable."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)


class ConfigurationError(InfrastructureError):
    """Raised when required configuration is missing at startup."""

    def __init__(self, message: str = "Service is misconfigured"):
        super().__init__(message)


class ResetTokenConflictError(InfrastructureError):
    """Raised by the store when another transaction stored a reset token for the same user first."""

    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__("Concurrent password reset request, please retry")
