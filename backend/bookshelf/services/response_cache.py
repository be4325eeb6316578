"""Response cache front-end.

Wraps a CacheBackend with JSON serialization, hit/miss accounting and a
strict failure policy: backend errors and timeouts are logged and turned
into misses or no-ops, never raised.
"""

import asyncio
import json
import logging
from collections.abc import Coroutine
from typing import Any, TypeVar

from bookshelf.core import Settings, settings
from bookshelf.services.cache_backends import (
    CacheBackend,
    MemoryCacheBackend,
    RedisCacheBackend,
)
from bookshelf.services.cache_keys import Invalidation

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ResponseCache:
    """TTL cache for serialized read responses."""

    def __init__(
        self,
        backend: CacheBackend,
        *,
        default_ttl: int = 300,
        operation_timeout: float = 2.0,
    ) -> None:
        self.backend = backend
        self.default_ttl = default_ttl
        self.operation_timeout = operation_timeout

        self.hits = 0
        self.misses = 0
        self.errors = 0
        self.fallback_reason: str | None = None

        self._pending: set[asyncio.Task[Any]] = set()

    @property
    def fallback_active(self) -> bool:
        return self.fallback_reason is not None

    async def start(self) -> None:
        """Check the configured backend and fall back to memory if it is unreachable."""
        try:
            await asyncio.wait_for(self.backend.ping(), timeout=self.operation_timeout)
        except Exception as e:
            failed = self.backend
            self.fallback_reason = f"{failed.name} unreachable: {type(e).__name__}: {e}"
            self.backend = MemoryCacheBackend()
            logger.warning(
                f"Response cache backend {failed.name} unavailable ({e}); "
                "falling back to in-memory cache"
            )
            try:
                await failed.close()
            except Exception:
                logger.debug("Error closing failed cache backend", exc_info=True)
            return
        logger.info(f"Response cache using {self.backend.name} backend")

    async def close(self) -> None:
        """Wait for in-flight population/invalidation, then release the backend."""
        if self._pending:
            await asyncio.gather(*self._pending, return_exceptions=True)
        try:
            await self.backend.close()
        except Exception:
            logger.warning("Error closing cache backend", exc_info=True)

    async def _guard(self, operation: str, coro: Coroutine[Any, Any, T], default: T) -> T:
        try:
            return await asyncio.wait_for(coro, timeout=self.operation_timeout)
        except Exception as e:
            self.errors += 1
            logger.warning(
                f"Cache {operation} failed on {self.backend.name} backend: "
                f"{type(e).__name__}: {e}"
            )
            return default

    async def get(self, key: str) -> Any | None:
        """Return the cached value for key, or None on any kind of miss."""
        raw = await self._guard("get", self.backend.get(key), None)
        if raw is None:
            self.misses += 1
            logger.debug(f"Cache MISS: {key}")
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning(f"Discarding undecodable cache entry: {key}")
            await self.delete(key)
            self.misses += 1
            return None
        self.hits += 1
        logger.debug(f"Cache HIT: {key}")
        return value

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store value under key, overwriting unconditionally.

        ``ttl=None`` means the default TTL; a TTL of zero or less stores nothing.
        """
        ttl = self.default_ttl if ttl is None else ttl
        if ttl <= 0:
            return
        try:
            raw = json.dumps(value)
        except (TypeError, ValueError) as e:
            logger.warning(f"Refusing to cache unserializable value for {key}: {e}")
            return
        await self._guard("set", self.backend.set(key, raw, ttl), None)
        logger.debug(f"Cache SET: {key}")

    async def delete(self, key: str) -> None:
        """Remove one key. Deleting a missing key is a no-op."""
        await self._guard("delete", self.backend.delete(key), 0)

    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching pattern. Returns the number removed.

        A malformed pattern is logged and counted like a backend failure.
        """
        removed = await self._guard("delete_pattern", self.backend.delete_pattern(pattern), 0)
        logger.debug(f"Cache DEL PATTERN: {pattern} - {removed} keys removed")
        return removed

    async def invalidate(self, invalidation: Invalidation) -> None:
        """Drop exact keys, then patterns. One failure does not stop the rest."""
        for key in invalidation.keys:
            await self.delete(key)
        for pattern in invalidation.patterns:
            await self.delete_pattern(pattern)

    async def flush(self) -> None:
        await self._guard("flush", self.backend.flush(), None)
        logger.info(f"Response cache flushed ({self.backend.name})")

    def sweep(self) -> int:
        """Reclaim expired entries (memory backend only)."""
        return self.backend.purge_expired()

    async def stats(self) -> dict[str, Any]:
        entries = await self._guard("count", self.backend.count(), None)
        return {
            "backend": self.backend.name,
            "fallback_active": self.fallback_active,
            "fallback_reason": self.fallback_reason,
            "entries": entries,
            "hits": self.hits,
            "misses": self.misses,
            "errors": self.errors,
            "default_ttl": self.default_ttl,
        }

    async def run_detached(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run coro to completion even if the awaiting request is cancelled.

        Used for population and invalidation so a client disconnect cannot
        leave a half-written entry or skip an invalidation.
        """
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return await asyncio.shield(task)


def build_response_cache(config: Settings = settings) -> ResponseCache:
    """Create the cache for the configured backend. Call start() before use."""
    backend: CacheBackend
    if config.cache_backend == "redis":
        backend = RedisCacheBackend(
            config.redis_url,
            key_prefix=config.cache_key_prefix,
            socket_timeout=config.cache_operation_timeout,
        )
    else:
        backend = MemoryCacheBackend()
    return ResponseCache(
        backend,
        default_ttl=config.cache_ttl_seconds,
        operation_timeout=config.cache_operation_timeout,
    )
