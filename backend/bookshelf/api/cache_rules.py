"""Which book routes are cached, and what each write invalidates."""

from uuid import UUID

from bookshelf.core import Settings, settings
from bookshelf.middleware.response_cache import CacheRule, RouteContext
from bookshelf.services.cache_keys import (
    Invalidation,
    book_collection_key,
    book_key,
    book_write_invalidation,
)


def _own_collection_key(context: RouteContext) -> str | None:
    # Other users' collections are answered 403 and never cached
    if context.user is None:
        return None
    try:
        requested = UUID(str(context.params["user_id"]))
    except ValueError:
        return None
    if requested != context.user.id:
        return None
    return book_collection_key(context.user.id)


def _book_key(context: RouteContext) -> str | None:
    if context.user is None:
        return None
    return book_key(context.user.id, context.params["book_id"])


def _book_added(context: RouteContext) -> Invalidation:
    assert context.user is not None
    return book_write_invalidation(context.user.id)


def _book_changed(context: RouteContext) -> Invalidation:
    assert context.user is not None
    return book_write_invalidation(context.user.id, context.params["book_id"])


def build_cache_rules(config: Settings = settings) -> list[CacheRule]:
    return [
        CacheRule(
            "GET",
            "/api/books/collection/{user_id}",
            key=_own_collection_key,
            ttl=config.cache_ttl_seconds,
        ),
        CacheRule(
            "GET",
            "/api/books/{book_id}",
            key=_book_key,
            ttl=config.cache_book_ttl_seconds,
        ),
        CacheRule("POST", "/api/books", invalidates=_book_added),
        CacheRule("PUT", "/api/books/{book_id}/status", invalidates=_book_changed),
        CacheRule("DELETE", "/api/books/{book_id}", invalidates=_book_changed),
    ]
