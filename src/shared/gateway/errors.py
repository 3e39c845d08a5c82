"""Error taxonomy for the request pipeline.

Every failure that is expected to reach a client is expressed as an
``ApiError`` carrying an ``ErrorKind``. Status codes are chosen from the
kind, never by inspecting the message text.
"""

from enum import Enum
from typing import Optional


class ErrorKind(Enum):
    """Tagged error kinds and the HTTP status each maps to."""

    VALIDATION = 400
    AUTHENTICATION = 401
    AUTHORIZATION = 403
    NOT_FOUND = 404
    CONFLICT = 409
    PAYLOAD_TOO_LARGE = 413
    RATE_LIMITED = 429
    INTERNAL = 500

    @property
    def status_code(self) -> int:
        return self.value


class ApiError(Exception):
    """Base error rendered into the standard response envelope."""

    kind = ErrorKind.INTERNAL

    def __init__(
        self,
        message: str,
        details: Optional[str] = None,
        kind: Optional[ErrorKind] = None,
        retry_after: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details
        self.retry_after = retry_after
        if kind is not None:
            self.kind = kind

    @property
    def status_code(self) -> int:
        return self.kind.status_code


class ValidationError(ApiError):
    """Malformed body or missing/invalid fields."""

    kind = ErrorKind.VALIDATION


class AuthenticationError(ApiError):
    """Missing, malformed, invalid or expired credential, or inactive account."""

    kind = ErrorKind.AUTHENTICATION


class AuthorizationError(ApiError):
    """Valid identity trying to reach a resource it does not own."""

    kind = ErrorKind.AUTHORIZATION


class NotFoundError(ApiError):
    kind = ErrorKind.NOT_FOUND


class ConflictError(ApiError):
    kind = ErrorKind.CONFLICT


class PayloadTooLargeError(ApiError):
    kind = ErrorKind.PAYLOAD_TOO_LARGE


class RateLimitError(ApiError):
    """Raised when a client has used up its window."""

    kind = ErrorKind.RATE_LIMITED

    def __init__(self, retry_after: int, message: str = "Too many requests. Please try again later."):
        super().__init__(message, retry_after=retry_after)


class ConfigurationError(ApiError):
    """Server-side misconfiguration (missing secret, table name, ...)."""

    kind = ErrorKind.INTERNAL
