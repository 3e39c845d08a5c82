"""Request-scoped data model for the auth API gateway.

``InboundRequest`` is a normalized view of an API Gateway proxy event
(HTTP API v2 or REST API v1). ``RequestContext`` is the enriched request
handed to route handlers; one is created per invocation and never shared.
"""

import base64
import binascii
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from urllib.parse import urlencode

logger = logging.getLogger(__name__)

UNKNOWN_SOURCE_IP = 'unknown'


@dataclass(frozen=True)
class InboundRequest:
    """Normalized inbound HTTP request."""

    method: str
    path: str
    raw_query_string: str = ''
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None
    source_ip: str = UNKNOWN_SOURCE_IP
    path_parameters: Dict[str, str] = field(default_factory=dict)
    event: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    @classmethod
    def from_event(cls, event: Dict[str, Any]) -> "InboundRequest":
        """Build a request from an API Gateway proxy event."""
        request_context = event.get('requestContext') or {}
        http = request_context.get('http') or {}

        if http:
            method = http.get('method', '')
            path = event.get('rawPath') or http.get('path', '/')
            source_ip = http.get('sourceIp')
            raw_query = event.get('rawQueryString') or ''
        else:
            method = event.get('httpMethod', '')
            path = event.get('path') or '/'
            source_ip = (request_context.get('identity') or {}).get('sourceIp')
            params = event.get('queryStringParameters') or {}
            raw_query = urlencode(params) if params else ''

        # Query strings never take part in route matching
        path, _, inline_query = path.partition('?')
        if inline_query and not raw_query:
            raw_query = inline_query

        body = event.get('body')
        if body is not None and event.get('isBase64Encoded'):
            body = _decode_base64_body(body)

        return cls(
            method=(method or '').upper(),
            path=path or '/',
            raw_query_string=raw_query,
            headers=dict(event.get('headers') or {}),
            body=body,
            source_ip=source_ip or UNKNOWN_SOURCE_IP,
            path_parameters=dict(event.get('pathParameters') or {}),
            event=event,
        )

    def header(self, name: str) -> Optional[str]:
        """Case-insensitive header lookup."""
        if name in self.headers:
            return self.headers[name]
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    @property
    def body_size(self) -> int:
        """Body size in bytes (UTF-8)."""
        if not self.body:
            return 0
        return len(self.body.encode('utf-8'))


def _decode_base64_body(body: str) -> str:
    try:
        return base64.b64decode(body).decode('utf-8')
    except (binascii.Error, UnicodeDecodeError):
        # Leave undecodable payloads as-is; JSON parsing rejects them with a 400
        logger.warning("Failed to decode base64 request body")
        return body


@dataclass(frozen=True)
class IdentityClaim:
    """Verified identity extracted from a bearer token."""

    subject: str
    email: str
    name: Optional[str] = None
    role: Optional[str] = None
    issued_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None

    @classmethod
    def from_payload(cls, payload: Dict[str, Any]) -> "IdentityClaim":
        """Build a claim from a decoded JWT payload."""
        return cls(
            subject=str(payload.get('sub') or payload.get('userId') or ''),
            email=payload.get('email', ''),
            name=payload.get('name'),
            role=payload.get('role'),
            issued_at=_from_epoch(payload.get('iat')),
            expires_at=_from_epoch(payload.get('exp')),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'userId': self.subject,
            'email': self.email,
            'name': self.name,
            'role': self.role,
        }


def _from_epoch(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    return datetime.fromtimestamp(int(value), tz=timezone.utc)


@dataclass
class RequestContext:
    """Enriched, request-scoped view passed to route handlers."""

    request: InboundRequest
    request_id: str
    start_time: float
    parsed_body: Dict[str, Any] = field(default_factory=dict)
    user: Optional[IdentityClaim] = None
    path_parameters: Dict[str, str] = field(default_factory=dict)

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def path(self) -> str:
        return self.request.path

    @property
    def source_ip(self) -> str:
        return self.request.source_ip
