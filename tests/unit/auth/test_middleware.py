"""Unit tests for authentication middleware.

Tests cover:
- Bearer token extraction from either header casing
- Authenticator success and generic failure message
- Authorization verification for resource access
"""

import time

import pytest

from src.shared.auth.middleware import (
    Authenticator,
    extract_bearer_token,
    validate_user_access,
)
from src.shared.auth.tokens import TokenService
from src.shared.gateway.errors import AuthenticationError, AuthorizationError
from src.shared.gateway.models import IdentityClaim, InboundRequest


def make_request(headers=None):
    return InboundRequest(method='GET', path='/api/user/42', headers=headers or {}, source_ip='10.0.0.1')


class TestExtractBearerToken:
    """Tests for extract_bearer_token function."""

    def test_extracts_token_from_capitalized_header(self):
        """Should read the token from 'Authorization'."""
        token = extract_bearer_token(make_request({'Authorization': 'Bearer abc.def.ghi'}))

        assert token == 'abc.def.ghi'

    def test_extracts_token_from_lowercase_header(self):
        """Should read the token from 'authorization' (HTTP API lowercases headers)."""
        token = extract_bearer_token(make_request({'authorization': 'Bearer abc.def.ghi'}))

        assert token == 'abc.def.ghi'

    def test_raises_when_header_missing(self):
        """Should raise AuthenticationError when no header is present."""
        with pytest.raises(AuthenticationError) as exc_info:
            extract_bearer_token(make_request())

        assert exc_info.value.message == 'Authorization token required'

    @pytest.mark.parametrize('value', ['Basic dXNlcjpwYXNz', 'bearer abc', 'Bearer', 'Bearer    ', 'abc'])
    def test_raises_on_malformed_header(self, value):
        """Should reject anything that is not 'Bearer <token>'."""
        with pytest.raises(AuthenticationError) as exc_info:
            extract_bearer_token(make_request({'Authorization': value}))

        assert exc_info.value.status_code == 401


class TestAuthenticator:
    """Tests for Authenticator class."""

    def test_returns_identity_for_valid_token(self, token_service):
        """Should return the verified identity claim."""
        token = token_service.issue('42', 'user42@example.com', name='Ada', role='admin')
        authenticator = Authenticator(token_service)

        claim = authenticator.authenticate(make_request({'Authorization': f'Bearer {token}'}))

        assert claim.subject == '42'
        assert claim.email == 'user42@example.com'
        assert claim.name == 'Ada'
        assert claim.role == 'admin'
        assert claim.expires_at > claim.issued_at

    def test_invalid_token_gives_generic_error(self, token_service):
        """Should collapse verification failures to one message."""
        authenticator = Authenticator(token_service)

        with pytest.raises(AuthenticationError) as exc_info:
            authenticator.authenticate(make_request({'Authorization': 'Bearer not-a-jwt'}))

        assert exc_info.value.message == 'Invalid or expired token'

    def test_expired_token_gives_same_generic_error(self, token_service):
        """Expired tokens are indistinguishable from forged ones."""
        issuer = TokenService(
            secret='test-secret-key-with-enough-entropy-1234',
            expires_in=60,
            clock=lambda: time.time() - 3600,
        )
        token = issuer.issue('42', 'user42@example.com')

        with pytest.raises(AuthenticationError) as exc_info:
            Authenticator(token_service).authenticate(
                make_request({'Authorization': f'Bearer {token}'})
            )

        assert exc_info.value.message == 'Invalid or expired token'


class TestValidateUserAccess:
    """Tests for validate_user_access function."""

    def test_allows_own_resource(self):
        """Should allow access when subjects match."""
        user = IdentityClaim(subject='42', email='user42@example.com')

        assert validate_user_access(user, '42') is user

    def test_allows_when_no_specific_user_requested(self):
        """Should pass when no owner is requested."""
        user = IdentityClaim(subject='42', email='user42@example.com')

        assert validate_user_access(user, None) is user

    def test_denies_other_users_resource(self):
        """Should raise AuthorizationError for another user's resource."""
        user = IdentityClaim(subject='99', email='user99@example.com')

        with pytest.raises(AuthorizationError) as exc_info:
            validate_user_access(user, '42')

        assert exc_info.value.status_code == 403

    def test_denies_empty_owner_id(self):
        """An empty path segment is not the caller's id."""
        user = IdentityClaim(subject='42', email='user42@example.com')

        with pytest.raises(AuthorizationError):
            validate_user_access(user, '')

    def test_requires_identity(self):
        """Should raise AuthenticationError without an identity."""
        with pytest.raises(AuthenticationError):
            validate_user_access(None, '42')
