"""Short-circuiting middleware pipeline.

Stages run in declared order. Each returns a ``StageOutcome``: either
continue to the next stage, or respond with a final response. The first
stage that responds ends the chain.

Stage order used by the dispatcher:
1. BodySizeLimitStage - 413 when the body exceeds the configured maximum
2. RateLimitStage - 429 when the client has used up its window
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

from ..auth.rate_limiter import RateLimiter, RateLimitPolicy
from .config import MAX_BODY_SIZE_BYTES
from .errors import ApiError, PayloadTooLargeError, RateLimitError, ValidationError
from .models import InboundRequest
from .responses import error_response

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StageOutcome:
    """Continue (response is None) or Respond(response)."""

    response: Optional[Dict[str, Any]] = None

    @classmethod
    def proceed(cls) -> "StageOutcome":
        return _CONTINUE

    @classmethod
    def respond(cls, response: Dict[str, Any]) -> "StageOutcome":
        return cls(response=response)

    @classmethod
    def from_error(
        cls,
        error: ApiError,
        request: InboundRequest,
        request_id: Optional[str] = None,
    ) -> "StageOutcome":
        return cls(response=error_response(error, request_id=request_id, event=request.event))

    @property
    def is_terminal(self) -> bool:
        return self.response is not None


_CONTINUE = StageOutcome()


class Stage(ABC):
    """A request-validating pipeline stage."""

    name = 'stage'

    @abstractmethod
    def process(self, request: InboundRequest, request_id: Optional[str] = None) -> StageOutcome:
        pass


class BodySizeLimitStage(Stage):
    """Rejects bodies larger than ``max_bytes``."""

    name = 'body_size_limit'

    def __init__(self, max_bytes: int = MAX_BODY_SIZE_BYTES):
        self.max_bytes = max_bytes

    def process(self, request: InboundRequest, request_id: Optional[str] = None) -> StageOutcome:
        size = request.body_size
        if size > self.max_bytes:
            logger.warning(
                f"Request body too large: size={size} max={self.max_bytes} "
                f"source={request.source_ip}"
            )
            return StageOutcome.from_error(
                PayloadTooLargeError(
                    f"Request body too large. Maximum size is {_format_size(self.max_bytes)}."
                ),
                request,
                request_id,
            )
        return StageOutcome.proceed()


def _format_size(size: int) -> str:
    mb = 1024 * 1024
    if size >= mb and size % mb == 0:
        return f"{size // mb}MB"
    return f"{size} bytes"


class RateLimitStage(Stage):
    """Admission control keyed by the request's source IP."""

    name = 'rate_limit'

    def __init__(self, limiter: RateLimiter, policy: RateLimitPolicy):
        self.limiter = limiter
        self.policy = policy

    def process(self, request: InboundRequest, request_id: Optional[str] = None) -> StageOutcome:
        decision = self.limiter.check(request.source_ip, self.policy)
        if not decision.allowed:
            return StageOutcome.from_error(
                RateLimitError(retry_after=decision.retry_after), request, request_id
            )
        return StageOutcome.proceed()


class MiddlewarePipeline:
    """Ordered chain of stages with first-response-wins semantics."""

    def __init__(self, stages: Iterable[Stage]):
        self.stages: List[Stage] = list(stages)

    def run(self, request: InboundRequest, request_id: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """Run all stages; return the short-circuit response, or None to continue."""
        for stage in self.stages:
            outcome = stage.process(request, request_id)
            if outcome.is_terminal:
                logger.debug(f"Pipeline short-circuited at stage {stage.name}")
                return outcome.response
        return None


def parse_body(request: InboundRequest) -> Dict[str, Any]:
    """Parse the JSON body into a mapping; an absent body parses to {}.

    Raises:
        ValidationError: If the body is not valid JSON or not a JSON object
    """
    if not request.body:
        return {}

    try:
        parsed = json.loads(request.body)
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"Invalid JSON in request body from {request.source_ip}: {e}")
        raise ValidationError('Invalid JSON format in request body')

    if not isinstance(parsed, dict):
        logger.warning(f"Non-object JSON body from {request.source_ip}")
        raise ValidationError('Request body must be a JSON object')

    return parsed
