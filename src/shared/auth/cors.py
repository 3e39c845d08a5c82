"""CORS configuration utilities for the auth API.

Responses are permissive by default (``Access-Control-Allow-Origin: *``).
Deployments can restrict origins with ``CORS_ALLOWED_ORIGINS``; the
request's Origin is then echoed back only when it is whitelisted.
"""

import json
import os
import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

ALLOWED_HEADERS = 'Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token'
ALLOWED_METHODS = 'GET,POST,PUT,DELETE,OPTIONS'
PREFLIGHT_MAX_AGE = '86400'


def get_allowed_origins() -> List[str]:
    """Get list of allowed CORS origins from environment.

    Environment variables:
        CORS_ALLOWED_ORIGINS: Comma-separated list of allowed origins.
            Defaults to '*'.

    Returns:
        List of allowed origin URLs
    """
    origins_str = os.environ.get('CORS_ALLOWED_ORIGINS', '*')
    origins = [origin.strip() for origin in origins_str.split(',') if origin.strip()]
    return origins or ['*']


def get_cors_origin(request_origin: Optional[str] = None) -> str:
    """Get the Access-Control-Allow-Origin value for a request origin.

    Falls back to the first allowed origin when the request origin is
    missing or not whitelisted.
    """
    allowed_origins = get_allowed_origins()

    if '*' in allowed_origins:
        return '*'

    if request_origin and request_origin in allowed_origins:
        return request_origin

    return allowed_origins[0]


def get_cors_headers(event: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
    """Get CORS headers for a response.

    Args:
        event: API Gateway event (to extract Origin header)

    Returns:
        Dictionary of CORS headers
    """
    request_origin = None
    if event:
        headers = event.get('headers', {}) or {}
        request_origin = headers.get('Origin') or headers.get('origin')

    cors_origin = get_cors_origin(request_origin)

    cors_headers = {
        'Access-Control-Allow-Origin': cors_origin,
        'Access-Control-Allow-Headers': ALLOWED_HEADERS,
        'Access-Control-Allow-Methods': ALLOWED_METHODS,
    }

    # Browsers refuse credentials with a wildcard origin
    if cors_origin != '*':
        cors_headers['Access-Control-Allow-Credentials'] = 'true'
        cors_headers['Vary'] = 'Origin'

    return cors_headers


def is_preflight(method: str) -> bool:
    return (method or '').upper() == 'OPTIONS'


def cors_preflight_response(event: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Generate a CORS preflight (OPTIONS) response.

    Preflight requests are answered for every path without touching the
    rest of the pipeline.
    """
    return {
        'statusCode': 200,
        'headers': {
            'Content-Type': 'application/json',
            **get_cors_headers(event),
            'Access-Control-Max-Age': PREFLIGHT_MAX_AGE,
        },
        'body': json.dumps({'success': True, 'message': 'OK'}),
    }


def add_cors_headers(
    response: Dict[str, Any],
    event: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """Add CORS headers to an existing response.

    Headers already present on the response win.
    """
    existing_headers = response.get('headers', {}) or {}
    response['headers'] = {**get_cors_headers(event), **existing_headers}
    return response
