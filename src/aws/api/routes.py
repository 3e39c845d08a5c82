"""
Auth API route table

Built once per container. Overlapping templates are rejected when the
table is built, so registration order never decides a match here.
"""

from ...shared.auth.rate_limiter import RateLimitPolicy
from ...shared.gateway.router import Route, RouteTable
from . import auth_api

AUTH_ROUTES = [
    Route(
        method='POST',
        path='/api/register',
        handler=auth_api.register,
        requires_auth=False,
        rate_limit=RateLimitPolicy(window_ms=300000, max_requests=5),
    ),
    Route(
        method='POST',
        path='/api/login',
        handler=auth_api.login,
        requires_auth=False,
        rate_limit=RateLimitPolicy(window_ms=300000, max_requests=10),
    ),
    Route(
        method='GET',
        path='/api/health',
        handler=auth_api.health_check,
        requires_auth=False,
        rate_limit=RateLimitPolicy(window_ms=60000, max_requests=100),
    ),
    Route(
        method='GET',
        path='/api/user/{id}',
        handler=auth_api.get_profile,
        requires_auth=True,
        rate_limit=RateLimitPolicy(window_ms=60000, max_requests=30),
    ),
    Route(
        method='PUT',
        path='/api/user/{id}',
        handler=auth_api.update_profile,
        requires_auth=True,
        rate_limit=RateLimitPolicy(window_ms=60000, max_requests=30),
    ),
]


def build_route_table() -> RouteTable:
    return RouteTable(AUTH_ROUTES)
