"""
Auth API controllers

Handlers for registration, login, health and the caller's own profile.
Every handler takes the enriched request context plus the request id and
start time, and returns an API Gateway proxy response.
"""

import logging
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ...shared.auth.middleware import validate_user_access
from ...shared.auth.tokens import TokenService
from ...shared.gateway.config import GatewayConfig
from ...shared.gateway.errors import ApiError
from ...shared.gateway.models import RequestContext
from ...shared.gateway.responses import error_response, internal_error_response, success_response
from ...shared.users.service import UserService
from ...shared.users.store import DynamoDBUserStore

logger = logging.getLogger(__name__)

SERVICE_NAME = 'user-auth-service'
_PROCESS_START = time.time()

# Lazy-initialized service
_user_service: Optional[UserService] = None


def _get_user_service() -> UserService:
    """Get lazily-initialized user service."""
    global _user_service
    if _user_service is None:
        config = GatewayConfig.from_environment()
        _user_service = UserService(
            store=DynamoDBUserStore(config.users_table),
            tokens=TokenService.from_config(config),
        )
    return _user_service


def _duration_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def _fail(
    error: ApiError,
    request: RequestContext,
    fallback_message: str,
) -> Dict[str, Any]:
    return error_response(
        error,
        request_id=request.request_id,
        event=request.request.event,
        fallback_message=fallback_message,
    )


def register(request: RequestContext, request_id: str, start_time: float) -> Dict[str, Any]:
    """POST /api/register"""
    try:
        result = _get_user_service().register_user(request.parsed_body)
    except ApiError as e:
        logger.warning(f"Registration failed: request={request_id} error={e}")
        return _fail(e, request, 'Registration failed. Please try again.')
    except Exception as e:
        logger.error(f"Registration failed: request={request_id} error={e}", exc_info=True)
        return internal_error_response(
            'Registration failed. Please try again.', request_id=request_id, event=request.request.event
        )

    logger.info(
        f"Registration successful: request={request_id} user={result['userId']} "
        f"duration_ms={_duration_ms(start_time)}"
    )
    return success_response(
        201,
        message=result['message'],
        data={'userId': result['userId']},
        event=request.request.event,
    )


def login(request: RequestContext, request_id: str, start_time: float) -> Dict[str, Any]:
    """POST /api/login"""
    try:
        result = _get_user_service().login_user(request.parsed_body)
    except ApiError as e:
        logger.warning(f"Login failed: request={request_id} error={e}")
        return _fail(e, request, 'Login failed. Please try again.')
    except Exception as e:
        logger.error(f"Login failed: request={request_id} error={e}", exc_info=True)
        return internal_error_response(
            'Login failed. Please try again.', request_id=request_id, event=request.request.event
        )

    logger.info(f"Login successful: request={request_id} duration_ms={_duration_ms(start_time)}")
    return success_response(
        200,
        message=result['message'],
        data={'token': result['token'], 'expiresIn': result['expiresIn']},
        event=request.request.event,
    )


def health_check(request: RequestContext, request_id: str, start_time: float) -> Dict[str, Any]:
    """GET /api/health"""
    return success_response(
        200,
        message='Service is healthy',
        data={
            'service': SERVICE_NAME,
            'version': GatewayConfig.from_environment().version,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'uptime': round(time.time() - _PROCESS_START, 3),
        },
        event=request.request.event,
    )


def get_profile(request: RequestContext, request_id: str, start_time: float) -> Dict[str, Any]:
    """GET /api/user/{id} - answered from the verified identity, no storage access."""
    try:
        user = validate_user_access(request.user, request.path_parameters.get('id'))
    except ApiError as e:
        return _fail(e, request, 'Failed to retrieve user profile')

    profile = {
        **user.to_dict(),
        'lastLogin': datetime.now(timezone.utc).isoformat(),
    }

    logger.info(f"User profile retrieved: request={request_id} user={user.subject}")
    return success_response(
        200,
        message='User profile retrieved successfully',
        data=profile,
        event=request.request.event,
    )


def update_profile(request: RequestContext, request_id: str, start_time: float) -> Dict[str, Any]:
    """PUT /api/user/{id}"""
    try:
        user = validate_user_access(request.user, request.path_parameters.get('id'))
        profile = _get_user_service().update_profile(user.email, request.parsed_body)
    except ApiError as e:
        logger.warning(f"Update profile failed: request={request_id} error={e}")
        return _fail(e, request, 'Failed to update user profile')
    except Exception as e:
        logger.error(f"Update profile error: request={request_id} error={e}", exc_info=True)
        return internal_error_response(
            'Failed to update user profile', request_id=request_id, event=request.request.event
        )

    return success_response(
        200,
        message='User profile updated successfully',
        data=profile,
        event=request.request.event,
    )
