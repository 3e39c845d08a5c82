"""Bearer token issuance and verification (HS256 JWT via PyJWT)."""

import logging
import time
from typing import Any, Callable, Dict, Optional

import jwt

from ..gateway.config import GatewayConfig
from ..gateway.errors import AuthenticationError, ConfigurationError
from ..gateway.models import IdentityClaim

logger = logging.getLogger(__name__)

ALGORITHM = 'HS256'
INVALID_TOKEN_MESSAGE = 'Invalid or expired token'


class TokenService:
    """Issues and verifies signed identity tokens."""

    def __init__(
        self,
        secret: Optional[str],
        issuer: str = 'user-auth-service',
        audience: str = 'user-auth-clients',
        expires_in: int = 86400,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._secret = secret
        self.issuer = issuer
        self.audience = audience
        self.expires_in = expires_in
        self._clock = clock or time.time

    @classmethod
    def from_config(cls, config: GatewayConfig) -> "TokenService":
        return cls(
            secret=config.jwt_secret,
            issuer=config.jwt_issuer,
            audience=config.jwt_audience,
            expires_in=config.jwt_expires_in,
        )

    def _require_secret(self) -> str:
        if not self._secret:
            logger.error("JWT_SECRET environment variable not set")
            raise ConfigurationError('Server configuration error')
        return self._secret

    def issue(
        self,
        user_id: str,
        email: str,
        name: Optional[str] = None,
        role: Optional[str] = None,
    ) -> str:
        """Sign a token for a user."""
        now = int(self._clock())
        payload: Dict[str, Any] = {
            'sub': user_id,
            'email': email,
            'role': role or 'user',
            'iat': now,
            'exp': now + self.expires_in,
            'iss': self.issuer,
            'aud': self.audience,
        }
        if name:
            payload['name'] = name
        return jwt.encode(payload, self._require_secret(), algorithm=ALGORITHM)

    def verify(self, token: str) -> IdentityClaim:
        """Verify signature, issuer, audience and expiry.

        Raises:
            AuthenticationError: with one generic message for every failure
        """
        secret = self._require_secret()
        try:
            payload = jwt.decode(
                token,
                secret,
                algorithms=[ALGORITHM],
                audience=self.audience,
                issuer=self.issuer,
                options={'require': ['exp', 'iat', 'sub']},
            )
        except jwt.ExpiredSignatureError:
            logger.warning("Token verification failed: token has expired")
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        except jwt.InvalidAudienceError:
            logger.warning("Token verification failed: invalid audience")
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        except jwt.InvalidIssuerError:
            logger.warning("Token verification failed: invalid issuer")
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        except jwt.InvalidTokenError as e:
            logger.warning(f"Token verification failed: {e}")
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)

        claim = IdentityClaim.from_payload(payload)
        if not claim.subject:
            logger.warning("Token verification failed: empty subject")
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        return claim
