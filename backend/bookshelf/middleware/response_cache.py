"""Response caching and cache invalidation middleware.

Routes opt in through a table of CacheRule entries. A read rule names the key
a GET response is stored under; a write rule names the keys and patterns to drop
once the write succeeds. Rules only run for requests the auth middleware has
already accepted, so keys can safely include the caller's id.
"""

import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from re import Pattern
from typing import Any

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import JSONResponse
from starlette.routing import compile_path
from starlette.types import ASGIApp

from bookshelf.core import Settings, settings
from bookshelf.models.user import User
from bookshelf.services.cache_keys import Invalidation
from bookshelf.services.response_cache import ResponseCache

logger = logging.getLogger(__name__)

CACHE_HEADER = "X-Cache"
CACHE_KEY_HEADER = "X-Cache-Key"


@dataclass(frozen=True)
class RouteContext:
    """What a key builder gets to see: path parameters and the caller."""

    params: dict[str, Any]
    user: User | None


@dataclass(frozen=True)
class CacheRule:
    """Caching behaviour for one route.

    Exactly one of ``key`` (read route) or ``invalidates`` (write route) is
    set. A key builder may return None to skip caching for a request.
    """

    method: str
    path: str
    key: Callable[[RouteContext], str | None] | None = None
    invalidates: Callable[[RouteContext], Invalidation] | None = None
    ttl: int | None = None
    _regex: Pattern[str] = field(init=False, repr=False, compare=False)
    _convertors: dict[str, Any] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if (self.key is None) == (self.invalidates is None):
            raise ValueError(f"Cache rule {self.method} {self.path} needs a key or invalidates")
        regex, _, convertors = compile_path(self.path)
        object.__setattr__(self, "_regex", regex)
        object.__setattr__(self, "_convertors", convertors)

    @property
    def is_read(self) -> bool:
        return self.key is not None

    def match(self, method: str, path: str) -> dict[str, Any] | None:
        """Return the path parameters if this rule applies, else None."""
        if method != self.method:
            return None
        matched = self._regex.match(path)
        if matched is None:
            return None
        return {
            name: self._convertors[name].convert(value)
            for name, value in matched.groupdict().items()
        }


def _is_json(response: Response) -> bool:
    content_type = response.headers.get("content-type", "")
    return content_type.split(";")[0].strip() == "application/json"


class ResponseCacheMiddleware(BaseHTTPMiddleware):
    """Serve declared GET routes from the response cache and invalidate on writes."""

    def __init__(
        self,
        app: ASGIApp,
        rules: Sequence[CacheRule],
        config: Settings = settings,
    ) -> None:
        super().__init__(app)
        self.rules = tuple(rules)
        self.config = config

    def _find_rule(self, request: Request) -> tuple[CacheRule, dict[str, Any]] | None:
        for rule in self.rules:
            params = rule.match(request.method, request.url.path)
            if params is not None:
                return rule, params
        return None

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        cache: ResponseCache | None = getattr(request.app.state, "response_cache", None)
        found = self._find_rule(request) if cache is not None else None
        if cache is None or found is None:
            return await call_next(request)

        rule, params = found
        context = RouteContext(params=params, user=getattr(request.state, "user", None))
        if rule.is_read:
            return await self._serve_cached(request, call_next, cache, rule, context)
        return await self._invalidate_after(request, call_next, cache, rule, context)

    async def _serve_cached(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
        cache: ResponseCache,
        rule: CacheRule,
        context: RouteContext,
    ) -> Response:
        assert rule.key is not None
        key = rule.key(context)
        if key is None:
            return await call_next(request)

        cached = await cache.get(key)
        if cached is not None:
            response: Response = JSONResponse(
                content=cached["body"], status_code=cached["status_code"]
            )
            self._mark(response, "HIT", key)
            return response

        response = await call_next(request)
        if 200 <= response.status_code < 300 and _is_json(response):
            body = b"".join([chunk async for chunk in response.body_iterator])  # type: ignore[attr-defined]
            response = Response(
                content=body,
                status_code=response.status_code,
                headers=dict(response.headers),
            )
            try:
                payload = json.loads(body)
            except ValueError:
                logger.warning(f"Not caching non-JSON body for {key}")
            else:
                entry = {"status_code": response.status_code, "body": payload}
                await cache.run_detached(cache.set(key, entry, ttl=rule.ttl))

        self._mark(response, "MISS", key)
        return response

    async def _invalidate_after(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
        cache: ResponseCache,
        rule: CacheRule,
        context: RouteContext,
    ) -> Response:
        assert rule.invalidates is not None
        response = await call_next(request)
        if 200 <= response.status_code < 300 and context.user is not None:
            invalidation = rule.invalidates(context)
            logger.debug(f"Invalidating {invalidation} after {request.method} {request.url.path}")
            await cache.run_detached(cache.invalidate(invalidation))
        return response

    def _mark(self, response: Response, outcome: str, key: str) -> None:
        logger.debug(
            f"Cache {outcome} for {key}",
            extra={"cache": outcome, "cache_key": key, "status_code": response.status_code},
        )
        response.headers[CACHE_HEADER] = outcome
        if self.config.cache_key_headers_enabled:
            response.headers[CACHE_KEY_HEADER] = key
