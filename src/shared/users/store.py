"""DynamoDB persistence for user accounts.

Table layout: partition key ``email`` (string). One item per user.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..gateway.errors import ConfigurationError, ConflictError, NotFoundError

logger = logging.getLogger(__name__)


@dataclass
class UserRecord:
    """A stored user account."""

    user_id: str
    email: str
    password_hash: str
    created_at: str
    updated_at: str
    is_active: bool = True
    name: Optional[str] = None
    role: str = 'user'
    last_login: Optional[str] = None

    def to_item(self) -> Dict[str, Any]:
        item = {
            'userId': self.user_id,
            'email': self.email,
            'passwordHash': self.password_hash,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'isActive': self.is_active,
            'role': self.role,
        }
        if self.name:
            item['name'] = self.name
        if self.last_login:
            item['lastLogin'] = self.last_login
        return item

    @classmethod
    def from_item(cls, item: Dict[str, Any]) -> "UserRecord":
        return cls(
            user_id=item['userId'],
            email=item['email'],
            password_hash=item.get('passwordHash', ''),
            created_at=item.get('createdAt', ''),
            updated_at=item.get('updatedAt', ''),
            is_active=item.get('isActive', True),
            name=item.get('name'),
            role=item.get('role') or 'user',
            last_login=item.get('lastLogin'),
        )

    def public_profile(self) -> Dict[str, Any]:
        """Profile fields safe to return to clients."""
        return {
            'userId': self.user_id,
            'email': self.email,
            'name': self.name,
            'role': self.role,
            'createdAt': self.created_at,
            'updatedAt': self.updated_at,
            'lastLogin': self.last_login,
        }


class DynamoDBUserStore:
    """User table access with lazily-initialized DynamoDB resources."""

    def __init__(self, table_name: Optional[str], dynamodb=None):
        self.table_name = table_name
        self._dynamodb = dynamodb
        self._table = None

    def _get_dynamodb(self):
        if self._dynamodb is None:
            import boto3
            self._dynamodb = boto3.resource('dynamodb')
        return self._dynamodb

    def _get_table(self):
        if self._table is None:
            if not self.table_name:
                logger.error("DYNAMODB_TABLE_NAME environment variable not set")
                raise ConfigurationError('Server configuration error')
            self._table = self._get_dynamodb().Table(self.table_name)
        return self._table

    def get_user(self, email: str) -> Optional[UserRecord]:
        response = self._get_table().get_item(Key={'email': email})
        item = response.get('Item')
        return UserRecord.from_item(item) if item else None

    def create_user(self, user: UserRecord) -> UserRecord:
        """Insert a new user.

        Raises:
            ConflictError: If a user with the same email already exists
        """
        from botocore.exceptions import ClientError

        try:
            self._get_table().put_item(
                Item=user.to_item(),
                ConditionExpression='attribute_not_exists(email)',
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                logger.warning(f"Race condition in user registration for {user.email}")
                raise ConflictError('User with this email already exists')
            raise
        return user

    def record_login(self, email: str, timestamp: str) -> None:
        self._get_table().update_item(
            Key={'email': email},
            UpdateExpression='SET updatedAt = :timestamp, lastLogin = :timestamp',
            ExpressionAttributeValues={':timestamp': timestamp},
        )

    def update_name(self, email: str, name: str, timestamp: str) -> UserRecord:
        """Update a user's display name.

        Raises:
            NotFoundError: If no user exists for the email
        """
        from botocore.exceptions import ClientError

        try:
            response = self._get_table().update_item(
                Key={'email': email},
                UpdateExpression='SET #name = :name, updatedAt = :timestamp',
                ExpressionAttributeNames={'#name': 'name'},
                ExpressionAttributeValues={':name': name, ':timestamp': timestamp},
                ConditionExpression='attribute_exists(email)',
                ReturnValues='ALL_NEW',
            )
        except ClientError as e:
            if e.response['Error']['Code'] == 'ConditionalCheckFailedException':
                raise NotFoundError('User not found')
            raise
        return UserRecord.from_item(response['Attributes'])
