"""
Error taxonomy shared by services, handlers and the request wrapper.

Every error carries the HTTP status and the machine-readable type that the
request wrapper puts in the JSON body. Messages of client-facing errors are
safe to show to the caller.
"""
from typing import Any


class ApiError(Exception):
    """Base class for errors that map to a JSON error response."""

    status_code = 500
    error_type = "INTERNAL_ERROR"
    code = "INTERNAL_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        self.message = message
        self.details = details
        super().__init__(message)


class ValidationError(ApiError):
    """Client-fixable input problem."""

    status_code = 400
    error_type = "VALIDATION_ERROR"
    code = "VALIDATION_FAILED"


class AuthenticationError(ApiError):
    """Missing, invalid or expired session token."""

    status_code = 401
    error_type = "AUTHENTICATION_ERROR"
    code = "AUTH_REQUIRED"


class InvalidTokenError(AuthenticationError):
    """Raised by the token verifier for bad signature, wrong issuer or expiry."""


class AuthorizationError(ApiError):
    """Authenticated, but the role or ownership check failed."""

    status_code = 403
    error_type = "AUTHORIZATION_ERROR"
    code = "ACCESS_DENIED"


class NotFoundError(ApiError):
    """Requested resource does not exist or is not visible to the caller."""

    status_code = 404
    error_type = "NOT_FOUND_ERROR"
    code = "NOT_FOUND"


class ConflictError(ApiError):
    """Request conflicts with current state (e.g., insufficient inventory)."""

    status_code = 409
    error_type = "CONFLICT_ERROR"
    code = "CONFLICT"


class RateLimitError(ApiError):
    """Rate limit bucket exhausted for this client."""

    status_code = 429
    error_type = "RATE_LIMIT_ERROR"
    code = "RATE_LIMIT_EXCEEDED"

    def __init__(
        self,
        message: str,
        *,
        limit: int,
        reset: int,
        retry_after: int,
    ) -> None:
        self.limit = limit
        self.reset = reset
        self.retry_after = retry_after
        super().__init__(message)


class InternalError(ApiError):
    """Unexpected server-side failure (misconfiguration, broken invariant)."""
