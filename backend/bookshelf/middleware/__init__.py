"""Middleware package."""

from bookshelf.middleware.auth_guard import AuthGuardMiddleware
from bookshelf.middleware.response_cache import CacheRule, ResponseCacheMiddleware, RouteContext

__all__ = [
    "AuthGuardMiddleware",
    "CacheRule",
    "ResponseCacheMiddleware",
    "RouteContext",
]
