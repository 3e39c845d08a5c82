"""Authentication middleware for the auth API Lambda.

Extracts a bearer credential from the Authorization header and verifies
it through the token service.

Security Features:
- Every verification failure collapses to one generic error, so clients
  cannot tell an expired token from a forged one
- Users can only access their own resources (validate_user_access)
"""

import logging
from typing import Optional

from ..gateway.errors import AuthenticationError, AuthorizationError
from ..gateway.models import IdentityClaim, InboundRequest
from .tokens import TokenService

logger = logging.getLogger(__name__)

BEARER_PREFIX = 'Bearer '
MISSING_TOKEN_MESSAGE = 'Authorization token required'


def extract_bearer_token(request: InboundRequest) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        AuthenticationError: If the header is missing or not a bearer credential
    """
    auth_header = request.headers.get('authorization') or request.header('Authorization')

    if not auth_header or not auth_header.startswith(BEARER_PREFIX):
        raise AuthenticationError(MISSING_TOKEN_MESSAGE)

    token = auth_header[len(BEARER_PREFIX):].strip()
    if not token:
        raise AuthenticationError(MISSING_TOKEN_MESSAGE)

    return token


class Authenticator:
    """Turns an inbound request into a verified IdentityClaim."""

    def __init__(self, token_service: TokenService):
        self.token_service = token_service

    def authenticate(self, request: InboundRequest) -> IdentityClaim:
        """Authenticate a request.

        Raises:
            AuthenticationError: Missing credential, or invalid/expired token
        """
        token = extract_bearer_token(request)

        try:
            claim = self.token_service.verify(token)
        except AuthenticationError:
            logger.warning(f"Token verification failed for source {request.source_ip}")
            raise

        logger.debug(f"Authenticated user: {claim.subject}")
        return claim


def validate_user_access(
    user: Optional[IdentityClaim],
    requested_user_id: Optional[str] = None
) -> IdentityClaim:
    """Validate that the authenticated user can access the requested resource.

    Args:
        user: Identity attached to the request, if any
        requested_user_id: Owner of the requested resource. If provided,
            must match the authenticated subject.

    Returns:
        The authenticated identity

    Raises:
        AuthenticationError: If the request carries no identity
        AuthorizationError: If user tries to access another user's resources
    """
    if user is None:
        raise AuthenticationError('Authentication required')

    if requested_user_id is not None and requested_user_id != user.subject:
        logger.warning(
            f"Authorization failed: user {user.subject} "
            f"attempted to access resources of user {requested_user_id}"
        )
        raise AuthorizationError('Access denied. You can only access your own profile.')

    return user
