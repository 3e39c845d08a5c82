"""User registration, login and profile updates."""

import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..auth.passwords import hash_password, verify_password
from ..auth.tokens import TokenService
from ..gateway.errors import ApiError, AuthenticationError, ConflictError, ValidationError
from .store import DynamoDBUserStore, UserRecord

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')
MIN_PASSWORD_LENGTH = 6

INVALID_CREDENTIALS_MESSAGE = 'Invalid email or password'
INACTIVE_ACCOUNT_MESSAGE = 'Account is inactive. Please contact support.'


@dataclass(frozen=True)
class RegistrationData:
    email: str
    password: str
    name: Optional[str] = None


@dataclass(frozen=True)
class LoginData:
    email: str
    password: str


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


def _raise_if_errors(errors: List[str]) -> None:
    if errors:
        raise ValidationError('Validation error', details=', '.join(errors))


def _validate_email(value: Any, errors: List[str]) -> str:
    if not isinstance(value, str) or not EMAIL_PATTERN.match(value.strip()):
        errors.append('Invalid email format')
        return ''
    return value.strip().lower()


def _validate_name(value: Any, errors: List[str]) -> Optional[str]:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        errors.append('Name is required')
        return None
    return value.strip()


def validate_registration(data: Dict[str, Any]) -> RegistrationData:
    errors: List[str] = []
    email = _validate_email(data.get('email'), errors)

    password = data.get('password')
    if not isinstance(password, str) or len(password) < MIN_PASSWORD_LENGTH:
        errors.append(f'Password must be at least {MIN_PASSWORD_LENGTH} characters long')

    name = _validate_name(data.get('name'), errors)
    _raise_if_errors(errors)
    return RegistrationData(email=email, password=password, name=name)


def validate_login(data: Dict[str, Any]) -> LoginData:
    errors: List[str] = []
    email = _validate_email(data.get('email'), errors)

    password = data.get('password')
    if not isinstance(password, str) or not password:
        errors.append('Password is required')

    _raise_if_errors(errors)
    return LoginData(email=email, password=password)


class UserService:
    """Account operations backed by the user store and token service."""

    def __init__(self, store: DynamoDBUserStore, tokens: TokenService):
        self.store = store
        self.tokens = tokens

    def register_user(self, data: Dict[str, Any]) -> Dict[str, str]:
        registration = validate_registration(data)
        logger.info(f"User registration attempt: {registration.email}")

        try:
            if self.store.get_user(registration.email) is not None:
                logger.warning(f"Registration attempt for existing user: {registration.email}")
                raise ConflictError('User with this email already exists')

            now = _utcnow()
            user = UserRecord(
                user_id=str(uuid.uuid4()),
                email=registration.email,
                password_hash=hash_password(registration.password),
                created_at=now,
                updated_at=now,
                name=registration.name,
            )
            self.store.create_user(user)

        except ApiError:
            raise
        except Exception as e:
            logger.error(f"Registration error for {registration.email}: {e}", exc_info=True)
            raise ApiError('Registration failed. Please try again.')

        logger.info(f"User registered successfully: {user.user_id}")
        return {'userId': user.user_id, 'message': 'User registered successfully'}

    def login_user(self, data: Dict[str, Any]) -> Dict[str, Any]:
        credentials = validate_login(data)
        logger.info(f"User login attempt: {credentials.email}")

        try:
            user = self.store.get_user(credentials.email)

            if user is None:
                logger.warning(f"Login attempt for non-existent user: {credentials.email}")
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

            if user.is_active is False:
                logger.warning(f"Login attempt for inactive user: {user.user_id}")
                raise AuthenticationError(INACTIVE_ACCOUNT_MESSAGE)

            if not verify_password(credentials.password, user.password_hash):
                logger.warning(f"Invalid password attempt for user: {user.user_id}")
                raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

            self.store.record_login(user.email, _utcnow())
            token = self.tokens.issue(user.user_id, user.email, name=user.name, role=user.role)

        except ApiError:
            raise
        except Exception as e:
            logger.error(f"Login error for {credentials.email}: {e}", exc_info=True)
            raise ApiError('Login failed. Please try again.')

        logger.info(f"User logged in successfully: {user.user_id}")
        return {
            'token': token,
            'message': 'Login successful',
            'expiresIn': self.tokens.expires_in,
        }

    def update_profile(self, email: str, data: Dict[str, Any]) -> Dict[str, Any]:
        errors: List[str] = []
        name = _validate_name(data.get('name'), errors)
        if name is None and not errors:
            errors.append('Nothing to update')
        _raise_if_errors(errors)

        user = self.store.update_name(email, name, _utcnow())
        logger.info(f"Profile updated for user: {user.user_id}")
        return user.public_profile()
