"""Static route table with templated path matching.

Matching rules:
- method match is exact and case-insensitive
- request path and template are split on '/' and must have the same
  number of segments
- a template segment written as ``{name}`` matches any single segment;
  every other segment must match literally
- query strings never take part in matching

Overlapping routes (same method, same shape, and every segment pair equal
or wildcarded) are rejected when the table is built. With
``allow_overlap=True`` they are kept and the first registered route wins.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from ..auth.cors import add_cors_headers
from ..auth.rate_limiter import RateLimitPolicy
from .models import RequestContext
from .responses import build_response

logger = logging.getLogger(__name__)

Handler = Callable[[RequestContext, str, float], Dict[str, Any]]

VALID_METHODS = frozenset({'GET', 'POST', 'PUT', 'PATCH', 'DELETE', 'HEAD'})
PARAM_PATTERN = re.compile(r'^\{([A-Za-z_][A-Za-z0-9_]*)\}$')


class RouteConfigurationError(ValueError):
    """Raised at startup when the route table is invalid."""
    pass


def _split_path(path: str) -> List[str]:
    return path.split('/')


def _param_name(segment: str) -> Optional[str]:
    match = PARAM_PATTERN.match(segment)
    return match.group(1) if match else None


@dataclass(frozen=True)
class Route:
    """An immutable route registration."""

    method: str
    path: str
    handler: Handler
    requires_auth: bool = False
    rate_limit: Optional[RateLimitPolicy] = None
    segments: Tuple[str, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self):
        method = (self.method or '').upper()
        if method not in VALID_METHODS:
            raise RouteConfigurationError(f"Unsupported method {self.method!r} for {self.path}")
        if not self.path or not self.path.startswith('/'):
            raise RouteConfigurationError(f"Route path must start with '/': {self.path!r}")
        if not callable(self.handler):
            raise RouteConfigurationError(f"Handler for {method} {self.path} is not callable")

        segments = tuple(_split_path(self.path))
        names = []
        for segment in segments:
            if ('{' in segment or '}' in segment):
                name = _param_name(segment)
                if name is None:
                    raise RouteConfigurationError(
                        f"Malformed path parameter {segment!r} in {self.path}"
                    )
                names.append(name)
        if len(names) != len(set(names)):
            raise RouteConfigurationError(f"Duplicate path parameter in {self.path}")

        object.__setattr__(self, 'method', method)
        object.__setattr__(self, 'segments', segments)

    def match(self, method: str, path: str) -> Optional[Dict[str, str]]:
        """Return extracted path parameters if the route matches, else None."""
        if (method or '').upper() != self.method:
            return None

        request_segments = _split_path(path)
        if len(request_segments) != len(self.segments):
            return None

        params: Dict[str, str] = {}
        for template, actual in zip(self.segments, request_segments):
            name = _param_name(template)
            if name is not None:
                params[name] = actual
            elif template != actual:
                return None
        return params

    def overlaps(self, other: "Route") -> bool:
        """True if some request could match both routes."""
        if self.method != other.method or len(self.segments) != len(other.segments):
            return False
        return all(
            a == b or _param_name(a) is not None or _param_name(b) is not None
            for a, b in zip(self.segments, other.segments)
        )


@dataclass(frozen=True)
class RouteMatch:
    route: Route
    path_parameters: Dict[str, str]


class RouteTable:
    """Route registry built once at startup; read-only afterwards."""

    def __init__(self, routes: Iterable[Route], allow_overlap: bool = False):
        self._routes: Tuple[Route, ...] = tuple(routes)
        self._check_overlaps(allow_overlap)

    def _check_overlaps(self, allow_overlap: bool) -> None:
        for i, earlier in enumerate(self._routes):
            for later in self._routes[i + 1:]:
                if not earlier.overlaps(later):
                    continue
                if not allow_overlap:
                    raise RouteConfigurationError(
                        f"Route {later.method} {later.path} overlaps "
                        f"{earlier.method} {earlier.path}"
                    )
                logger.warning(
                    f"Route {later.method} {later.path} overlaps {earlier.method} "
                    f"{earlier.path}; the earlier registration wins"
                )

    @property
    def routes(self) -> Tuple[Route, ...]:
        return self._routes

    def __len__(self) -> int:
        return len(self._routes)

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        """First route in registration order that matches, or None."""
        for route in self._routes:
            params = route.match(method, path)
            if params is not None:
                return RouteMatch(route=route, path_parameters=params)
        return None


class Router:
    """Resolves requests against a RouteTable and invokes handlers."""

    def __init__(self, table: RouteTable):
        self.table = table

    def resolve(self, method: str, path: str) -> Optional[RouteMatch]:
        return self.table.resolve(method, path)

    def dispatch(
        self,
        context: RequestContext,
        match: Optional[RouteMatch] = None,
    ) -> Dict[str, Any]:
        """Invoke the matched route's handler, or return a 404 envelope."""
        if match is None:
            match = self.resolve(context.method, context.path)

        if match is None:
            logger.info(f"No route for {context.method} {context.path}")
            return build_response(
                404,
                {
                    'success': False,
                    'message': 'Route not found',
                    'requestId': context.request_id,
                },
                event=context.request.event,
            )

        context.path_parameters = {**context.request.path_parameters, **match.path_parameters}
        response = match.route.handler(context, context.request_id, context.start_time)
        return add_cors_headers(response, context.request.event)
