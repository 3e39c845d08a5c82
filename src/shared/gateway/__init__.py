"""Request pipeline, routing and dispatch for the auth API.

Only leaf modules are re-exported here; import the pipeline, router and
dispatcher from their own modules.
"""

from .config import GatewayConfig
from .errors import (
    ErrorKind,
    ApiError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    NotFoundError,
    ConflictError,
    PayloadTooLargeError,
    RateLimitError,
    ConfigurationError,
)
from .models import InboundRequest, IdentityClaim, RequestContext

__all__ = [
    "GatewayConfig",
    # Errors
    "ErrorKind",
    "ApiError",
    "ValidationError",
    "AuthenticationError",
    "AuthorizationError",
    "NotFoundError",
    "ConflictError",
    "PayloadTooLargeError",
    "RateLimitError",
    "ConfigurationError",
    # Models
    "InboundRequest",
    "IdentityClaim",
    "RequestContext",
]
