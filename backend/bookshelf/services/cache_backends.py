"""Storage backends for the response cache.

Both variants expose the same small capability set and the same pattern
semantics: a pattern ending in a single ``*`` matches every key starting
with the text before it; any other pattern matches one key exactly.
"""

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable

import redis.asyncio as aioredis

logger = logging.getLogger(__name__)

WILDCARD = "*"


def split_pattern(pattern: str) -> tuple[str, bool]:
    """Split a pattern into (text, is_prefix).

    Raises ValueError for a wildcard anywhere but the last character.
    """
    is_prefix = pattern.endswith(WILDCARD)
    text = pattern[:-1] if is_prefix else pattern
    if WILDCARD in text:
        raise ValueError(f"Wildcard is only allowed as the last character: {pattern!r}")
    return text, is_prefix


def matches_pattern(key: str, pattern: str) -> bool:
    text, is_prefix = split_pattern(pattern)
    if is_prefix:
        return key.startswith(text)
    return key == text


class CacheBackend(ABC):
    """Key/value store with per-entry TTL. Values are opaque strings."""

    name: str = "abstract"

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the live value for key, or None."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        """Store value under key, replacing any entry and restarting its TTL."""

    @abstractmethod
    async def delete(self, key: str) -> int:
        """Remove key. Returns the number of entries removed (0 or 1)."""

    @abstractmethod
    async def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching pattern. Returns the number removed."""

    @abstractmethod
    async def count(self) -> int:
        """Number of live entries."""

    @abstractmethod
    async def flush(self) -> None:
        """Remove every entry owned by this cache."""

    async def ping(self) -> None:
        """Raise if the store cannot be reached."""

    def purge_expired(self) -> int:
        """Drop expired entries eagerly. Stores that expire keys themselves return 0."""
        return 0

    async def close(self) -> None:
        """Release connections."""


class MemoryCacheBackend(CacheBackend):
    """Process-local store.

    Expiry is checked on every read, and purge_expired() lets a background
    sweep reclaim entries nobody reads again.
    """

    name = "memory"

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        # key -> (value, expires_at on the clock's scale)
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._entries[key]
                return None
            return value

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock() + ttl_seconds)

    async def delete(self, key: str) -> int:
        with self._lock:
            return 1 if self._entries.pop(key, None) is not None else 0

    async def delete_pattern(self, pattern: str) -> int:
        text, is_prefix = split_pattern(pattern)
        with self._lock:
            if not is_prefix:
                return 1 if self._entries.pop(text, None) is not None else 0
            doomed = [key for key in self._entries if key.startswith(text)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    async def count(self) -> int:
        now = self._clock()
        with self._lock:
            return sum(1 for _, expires_at in self._entries.values() if expires_at > now)

    async def flush(self) -> None:
        with self._lock:
            self._entries.clear()

    def purge_expired(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [key for key, (_, expires_at) in self._entries.items() if now >= expires_at]
            for key in expired:
                del self._entries[key]
            return len(expired)

    async def close(self) -> None:
        await self.flush()


def _glob_escape(text: str) -> str:
    """Escape Redis glob metacharacters so text matches literally."""
    return "".join("\\" + ch if ch in "*?[]\\" else ch for ch in text)


class RedisCacheBackend(CacheBackend):
    """Redis store shared by every API process.

    All keys live under ``key_prefix`` so flush() and count() only see this
    cache's entries. Redis expires keys itself; single-key SET/DEL atomicity
    is taken from Redis as given.
    """

    name = "redis"

    SCAN_COUNT = 500

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        client: aioredis.Redis | None = None,
        key_prefix: str = "bookshelf:",
        socket_timeout: float = 2.0,
    ) -> None:
        if client is None:
            if redis_url is None:
                raise ValueError("redis_url or client is required")
            client = aioredis.from_url(
                redis_url,
                decode_responses=True,
                socket_timeout=socket_timeout,
                socket_connect_timeout=socket_timeout,
            )
        self.client = client
        self.key_prefix = key_prefix

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def _scan(self, text: str) -> list[str]:
        match = _glob_escape(self._key(text)) + WILDCARD
        return [key async for key in self.client.scan_iter(match=match, count=self.SCAN_COUNT)]

    async def ping(self) -> None:
        await self.client.ping()

    async def get(self, key: str) -> str | None:
        return await self.client.get(self._key(key))

    async def set(self, key: str, value: str, ttl_seconds: int) -> None:
        await self.client.set(self._key(key), value, ex=ttl_seconds)

    async def delete(self, key: str) -> int:
        return int(await self.client.delete(self._key(key)))

    async def delete_pattern(self, pattern: str) -> int:
        text, is_prefix = split_pattern(pattern)
        if not is_prefix:
            return await self.delete(text)
        keys = await self._scan(text)
        if not keys:
            return 0
        return int(await self.client.delete(*keys))

    async def count(self) -> int:
        return len(await self._scan(""))

    async def flush(self) -> None:
        keys = await self._scan("")
        if keys:
            await self.client.delete(*keys)
        logger.info(f"Flushed {len(keys)} keys from Redis cache")

    async def close(self) -> None:
        await self.client.aclose()
