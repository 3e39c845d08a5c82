"""Authentication, authorization, CORS, and rate limiting utilities for the auth API."""

from .middleware import (
    Authenticator,
    extract_bearer_token,
    validate_user_access,
)

from .tokens import TokenService

from .passwords import (
    hash_password,
    verify_password,
)

from .cors import (
    get_allowed_origins,
    get_cors_origin,
    get_cors_headers,
    cors_preflight_response,
    add_cors_headers,
    is_preflight,
)

from .rate_limiter import (
    RateLimitPolicy,
    RateLimitDecision,
    RateLimitBackend,
    InMemoryRateLimitBackend,
    DynamoDBRateLimitBackend,
    RateLimiter,
    get_rate_limiter,
)

__all__ = [
    # Authentication
    "Authenticator",
    "extract_bearer_token",
    "validate_user_access",
    "TokenService",
    # Passwords
    "hash_password",
    "verify_password",
    # CORS
    "get_allowed_origins",
    "get_cors_origin",
    "get_cors_headers",
    "cors_preflight_response",
    "add_cors_headers",
    "is_preflight",
    # Rate Limiting
    "RateLimitPolicy",
    "RateLimitDecision",
    "RateLimitBackend",
    "InMemoryRateLimitBackend",
    "DynamoDBRateLimitBackend",
    "RateLimiter",
    "get_rate_limiter",
]
