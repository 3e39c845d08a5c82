"""
Auth API Handler

Lambda entrypoint for the user auth API (API Gateway HTTP API or REST
API proxy integration). Every invocation goes through the shared
dispatcher: CORS preflight, body size limit, per-route rate limiting,
JSON body parsing, bearer authentication and route dispatch.
"""

import logging
import os
import sys
from typing import Any, Dict, Optional

# Make the repository root importable when deployed as a flat Lambda bundle
sys.path.insert(0, '/opt/python')
sys.path.insert(0, os.path.join(os.path.dirname(__file__), '../../..'))

from src.aws.api.routes import build_route_table
from src.shared.auth.middleware import Authenticator
from src.shared.auth.rate_limiter import get_rate_limiter
from src.shared.auth.tokens import TokenService
from src.shared.gateway.config import GatewayConfig
from src.shared.gateway.dispatcher import Dispatcher
from src.shared.gateway.responses import internal_error_response
from src.shared.gateway.router import Router

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)

# Built once per container; the rate limit store is shared by every
# invocation this container serves
_dispatcher: Optional[Dispatcher] = None


def _get_dispatcher() -> Dispatcher:
    """Get lazily-initialized dispatcher."""
    global _dispatcher
    if _dispatcher is None:
        config = GatewayConfig.from_environment()
        _dispatcher = Dispatcher(
            router=Router(build_route_table()),
            rate_limiter=get_rate_limiter(config.rate_limit_backend, config.rate_limit_table),
            authenticator=Authenticator(TokenService.from_config(config)),
            config=config,
        )
    return _dispatcher


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """Main Lambda handler for the auth API."""
    try:
        dispatcher = _get_dispatcher()
    except Exception as e:
        logger.error(f"Failed to initialize auth API: {e}", exc_info=True)
        return internal_error_response(event=event if isinstance(event, dict) else None)

    response = dispatcher.handle(event, context)

    request_id = getattr(context, 'aws_request_id', None)
    if request_id:
        response.setdefault('headers', {})['X-Request-Id'] = request_id

    return response
