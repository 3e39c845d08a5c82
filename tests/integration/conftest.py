"""
User Auth Service - Integration Test Configuration

Loads the Lambda entrypoint against a moto-backed users table.
"""

import importlib.util
import os
from types import SimpleNamespace

import pytest

from src.aws.api import auth_api

HANDLER_PATH = os.path.join(
    os.path.dirname(__file__), '../../src/aws/lambda/auth_api_handler.py'
)
INTEGRATION_JWT_SECRET = 'integration-secret-key-with-enough-entropy'


@pytest.fixture
def handler_module(monkeypatch, users_table):
    """Fresh auth API handler module (loaded by path: 'lambda' is a keyword)"""
    monkeypatch.setenv('JWT_SECRET', INTEGRATION_JWT_SECRET)
    monkeypatch.setenv('DYNAMODB_TABLE_NAME', users_table.name)
    monkeypatch.delenv('CORS_ALLOWED_ORIGINS', raising=False)
    monkeypatch.delenv('RATE_LIMIT_BACKEND', raising=False)
    monkeypatch.setattr(auth_api, '_user_service', None)

    spec = importlib.util.spec_from_file_location('auth_api_handler', HANDLER_PATH)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def lambda_context():
    """Minimal Lambda context object"""
    return SimpleNamespace(aws_request_id='req-integration', function_name='user-auth')
