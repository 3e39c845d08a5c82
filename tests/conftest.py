"""
User Auth Service - Root Test Configuration

Pytest fixtures and configuration for all tests.
"""

import sys
from pathlib import Path

# Add repository root to Python path for `src.*` imports
ROOT_DIR = Path(__file__).parent.parent
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import pytest
import boto3
from moto import mock_aws

from src.shared.auth.rate_limiter import InMemoryRateLimitBackend, RateLimiter
from src.shared.auth.tokens import TokenService

TEST_JWT_SECRET = 'test-secret-key-with-enough-entropy-1234'
USERS_TABLE = 'test-users'


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start_ms: float = 1_700_000_000_000.0):
        self.now = start_ms

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms


@pytest.fixture
def fake_clock():
    """Controllable clock for rate limit windows"""
    return FakeClock()


@pytest.fixture
def memory_backend(fake_clock):
    """In-memory rate limit backend driven by the fake clock"""
    return InMemoryRateLimitBackend(clock=fake_clock)


@pytest.fixture
def rate_limiter(memory_backend):
    """Rate limiter over an isolated in-memory store"""
    return RateLimiter(memory_backend)


@pytest.fixture
def token_service():
    """Token service with a fixed test secret"""
    return TokenService(secret=TEST_JWT_SECRET)


@pytest.fixture
def mock_aws_credentials(monkeypatch):
    """Mock AWS credentials for testing"""
    monkeypatch.setenv('AWS_ACCESS_KEY_ID', 'testing')
    monkeypatch.setenv('AWS_SECRET_ACCESS_KEY', 'testing')
    monkeypatch.setenv('AWS_SECURITY_TOKEN', 'testing')
    monkeypatch.setenv('AWS_SESSION_TOKEN', 'testing')
    monkeypatch.setenv('AWS_DEFAULT_REGION', 'us-east-1')


@pytest.fixture
def dynamodb_resource(mock_aws_credentials):
    """Mock DynamoDB resource"""
    with mock_aws():
        yield boto3.resource('dynamodb', region_name='us-east-1')


@pytest.fixture
def users_table(dynamodb_resource):
    """Users table keyed by email"""
    table = dynamodb_resource.create_table(
        TableName=USERS_TABLE,
        KeySchema=[{'AttributeName': 'email', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'email', 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST',
    )
    table.wait_until_exists()
    return table


@pytest.fixture
def rate_limit_table(dynamodb_resource):
    """Rate limit table keyed by pk"""
    table = dynamodb_resource.create_table(
        TableName='test-rate-limits',
        KeySchema=[{'AttributeName': 'pk', 'KeyType': 'HASH'}],
        AttributeDefinitions=[{'AttributeName': 'pk', 'AttributeType': 'S'}],
        BillingMode='PAY_PER_REQUEST',
    )
    table.wait_until_exists()
    return table
