"""Response builders for the standard JSON envelope.

Envelope: ``{success, message?, data?, details?, requestId?}`` plus
``retryAfter`` on rate-limited responses.
"""

import json
import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from ..auth.cors import get_cors_headers
from .errors import ApiError, ErrorKind

logger = logging.getLogger(__name__)

GENERIC_ERROR_MESSAGE = 'Internal server error'


class DecimalEncoder(json.JSONEncoder):
    """JSON encoder that handles Decimal types from DynamoDB."""
    def default(self, obj):
        if isinstance(obj, Decimal):
            return int(obj) if obj == obj.to_integral_value() else float(obj)
        return super().default(obj)


def build_response(
    status_code: int,
    body: Dict[str, Any],
    headers: Optional[Dict[str, str]] = None,
    event: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build an API Gateway proxy response with JSON body and CORS headers."""
    response_headers = {
        'Content-Type': 'application/json',
        **get_cors_headers(event),
    }
    if headers:
        response_headers.update(headers)

    return {
        'statusCode': status_code,
        'headers': response_headers,
        'body': json.dumps(body, cls=DecimalEncoder),
    }


def success_response(
    status_code: int = 200,
    message: Optional[str] = None,
    data: Optional[Dict[str, Any]] = None,
    event: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {'success': True}
    if message is not None:
        body['message'] = message
    if data is not None:
        body['data'] = data
    return build_response(status_code, body, event=event)


def error_response(
    error: ApiError,
    request_id: Optional[str] = None,
    event: Optional[Dict[str, Any]] = None,
    fallback_message: str = GENERIC_ERROR_MESSAGE,
) -> Dict[str, Any]:
    """Render an ApiError into the envelope, keyed on its kind."""
    if error.kind is ErrorKind.INTERNAL:
        body: Dict[str, Any] = {'success': False, 'message': fallback_message}
    else:
        body = {'success': False, 'message': error.message}
        if error.details:
            body['details'] = error.details

    headers = None
    if error.kind is ErrorKind.RATE_LIMITED and error.retry_after is not None:
        body['retryAfter'] = error.retry_after
        headers = {'Retry-After': str(error.retry_after)}

    if request_id:
        body['requestId'] = request_id

    return build_response(error.status_code, body, headers=headers, event=event)


def internal_error_response(
    message: str = GENERIC_ERROR_MESSAGE,
    request_id: Optional[str] = None,
    event: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    body: Dict[str, Any] = {'success': False, 'message': message}
    if request_id:
        body['requestId'] = request_id
    return build_response(500, body, event=event)
