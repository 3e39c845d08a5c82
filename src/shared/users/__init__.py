"""User account storage and account operations."""

from .store import UserRecord, DynamoDBUserStore
from .service import (
    UserService,
    RegistrationData,
    LoginData,
    validate_registration,
    validate_login,
)

__all__ = [
    "UserRecord",
    "DynamoDBUserStore",
    "UserService",
    "RegistrationData",
    "LoginData",
    "validate_registration",
    "validate_login",
]
