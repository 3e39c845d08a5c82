"""Per-request orchestration of CORS, pipeline, parsing, auth and routing.

Flow for one invocation (each step may end the request):

    received -> CORS preflight? -> route resolved -> pipeline passed
             -> body parsed -> (authenticated) -> handler invoked

The dispatcher always produces exactly one response. Expected failures
are ``ApiError``s rendered by kind; anything else is logged with its stack
trace and answered with a generic 500.
"""

import logging
import time
import uuid
from typing import Any, Dict, Optional

from ..auth.cors import cors_preflight_response, is_preflight
from ..auth.middleware import Authenticator
from ..auth.rate_limiter import RateLimiter, RateLimitPolicy
from .config import GatewayConfig
from .errors import ApiError, ErrorKind
from .models import InboundRequest, RequestContext
from .pipeline import BodySizeLimitStage, MiddlewarePipeline, RateLimitStage, parse_body
from .responses import error_response, internal_error_response
from .router import RouteMatch, Router

logger = logging.getLogger(__name__)


class Dispatcher:
    """Entry orchestrator shared by every invocation of the Lambda."""

    def __init__(
        self,
        router: Router,
        rate_limiter: RateLimiter,
        authenticator: Authenticator,
        config: Optional[GatewayConfig] = None,
    ):
        self.router = router
        self.rate_limiter = rate_limiter
        self.authenticator = authenticator
        self.config = config or GatewayConfig()
        self.default_policy = RateLimitPolicy(
            window_ms=self.config.default_window_ms,
            max_requests=self.config.default_max_requests,
        )

    def policy_for(self, match: Optional[RouteMatch]) -> RateLimitPolicy:
        if match is not None and match.route.rate_limit is not None:
            return match.route.rate_limit
        return self.default_policy

    def build_pipeline(self, policy: RateLimitPolicy) -> MiddlewarePipeline:
        return MiddlewarePipeline([
            BodySizeLimitStage(self.config.max_body_size),
            RateLimitStage(self.rate_limiter, policy),
        ])

    def handle(self, event: Dict[str, Any], context: Any = None) -> Dict[str, Any]:
        """Process one API Gateway event into one proxy response."""
        request_id = getattr(context, 'aws_request_id', None) or str(uuid.uuid4())
        start_time = time.time()
        cors_event = event if isinstance(event, dict) else None

        try:
            request = InboundRequest.from_event(event)

            logger.info(
                f"Request started: id={request_id} method={request.method} "
                f"path={request.path} source={request.source_ip} "
                f"user_agent={request.header('User-Agent')}"
            )

            if is_preflight(request.method):
                return cors_preflight_response(cors_event)

            match = self.router.resolve(request.method, request.path)

            rejection = self.build_pipeline(self.policy_for(match)).run(request, request_id)
            if rejection is not None:
                return rejection

            parsed_body = parse_body(request)

            user = None
            if match is not None and match.route.requires_auth:
                user = self.authenticator.authenticate(request)

            request_context = RequestContext(
                request=request,
                request_id=request_id,
                start_time=start_time,
                parsed_body=parsed_body,
                user=user,
            )

            return self.router.dispatch(request_context, match)

        except ApiError as e:
            if e.kind is ErrorKind.INTERNAL:
                logger.error(f"Request {request_id} failed: {e}", exc_info=True)
                return internal_error_response(request_id=request_id, event=cors_event)
            return error_response(e, request_id=request_id, event=cors_event)

        except Exception as e:
            logger.error(f"Unhandled error in request {request_id}: {e}", exc_info=True)
            return internal_error_response(request_id=request_id, event=cors_event)

        finally:
            duration_ms = int((time.time() - start_time) * 1000)
            logger.info(f"Request completed: id={request_id} duration_ms={duration_ms}")
