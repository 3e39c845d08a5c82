"""Environment-driven configuration for the auth API gateway."""

import logging
import os
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

MAX_BODY_SIZE_BYTES = 524288000  # 500 MB
DEFAULT_WINDOW_MS = 60000
DEFAULT_MAX_REQUESTS = 50

DEV_JWT_SECRET = 'dev-only-secret-do-not-use-in-production'


@dataclass
class GatewayConfig:
    """Runtime settings for the request pipeline and its collaborators."""

    max_body_size: int = MAX_BODY_SIZE_BYTES
    default_window_ms: int = DEFAULT_WINDOW_MS
    default_max_requests: int = DEFAULT_MAX_REQUESTS
    jwt_secret: Optional[str] = None
    jwt_issuer: str = 'user-auth-service'
    jwt_audience: str = 'user-auth-clients'
    jwt_expires_in: int = 86400
    users_table: Optional[str] = None
    rate_limit_backend: str = 'memory'
    rate_limit_table: str = 'user-auth-rate-limits'
    dev_mode: bool = False
    version: str = '1.0.0'

    @classmethod
    def from_environment(cls) -> "GatewayConfig":
        """Create config from environment variables."""
        dev_mode = os.environ.get('AUTH_DEV_MODE', '').lower() == 'true'

        jwt_secret = os.environ.get('JWT_SECRET') or None
        if not jwt_secret and dev_mode:
            logger.warning("JWT_SECRET not set - using development secret")
            jwt_secret = DEV_JWT_SECRET

        return cls(
            max_body_size=int(os.environ.get('MAX_BODY_SIZE_BYTES', str(MAX_BODY_SIZE_BYTES))),
            default_window_ms=int(os.environ.get('DEFAULT_RATE_LIMIT_WINDOW_MS', str(DEFAULT_WINDOW_MS))),
            default_max_requests=int(
                os.environ.get('DEFAULT_RATE_LIMIT_MAX_REQUESTS', str(DEFAULT_MAX_REQUESTS))
            ),
            jwt_secret=jwt_secret,
            jwt_issuer=os.environ.get('JWT_ISSUER', 'user-auth-service'),
            jwt_audience=os.environ.get('JWT_AUDIENCE', 'user-auth-clients'),
            jwt_expires_in=int(os.environ.get('JWT_EXPIRES_IN_SECONDS', '86400')),
            users_table=os.environ.get('DYNAMODB_TABLE_NAME') or None,
            rate_limit_backend=os.environ.get('RATE_LIMIT_BACKEND', 'memory').lower(),
            rate_limit_table=os.environ.get('RATE_LIMIT_TABLE', 'user-auth-rate-limits'),
            dev_mode=dev_mode,
            version=os.environ.get('SERVICE_VERSION', '1.0.0'),
        )
