"""In-memory set of tokens revoked by logout.

Process-local: with several API processes a logout is only seen by the
process that handled it. A shared store is needed for clustered deployments.
"""

import logging
import threading
import time
from collections.abc import Callable

logger = logging.getLogger(__name__)

DEFAULT_CAPACITY = 1000
DEFAULT_EVICT_FRACTION = 0.2


class RevocationSet:
    """Bounded, insertion-ordered collection of revoked token strings.

    When the set grows past ``capacity`` the oldest ``evict_fraction`` of
    entries is dropped. Evicted tokens are usually past their own expiry
    already.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        evict_fraction: float = DEFAULT_EVICT_FRACTION,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self.evict_fraction = evict_fraction
        self._clock = clock
        # token -> unix expiry (None when unknown); dicts keep insertion order
        self._tokens: dict[str, float | None] = {}
        self._lock = threading.Lock()

    def __len__(self) -> int:
        return len(self._tokens)

    def __contains__(self, token: object) -> bool:
        return isinstance(token, str) and self.is_revoked(token)

    def revoke(self, token: str, expires_at: float | None = None) -> None:
        """Add a token to the set. Revoking an already revoked token is a no-op."""
        with self._lock:
            if token in self._tokens:
                return
            self._tokens[token] = expires_at
            if len(self._tokens) > self.capacity:
                self._evict_oldest()

    def is_revoked(self, token: str) -> bool:
        with self._lock:
            return token in self._tokens

    def purge_expired(self) -> int:
        """Drop entries whose token has passed its natural expiry. Returns count removed."""
        now = self._clock()
        with self._lock:
            expired = [
                token for token, exp in self._tokens.items() if exp is not None and now > exp
            ]
            for token in expired:
                del self._tokens[token]
            return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._tokens.clear()

    def _evict_oldest(self) -> None:
        # Caller holds the lock
        count = max(1, int(self.capacity * self.evict_fraction))
        oldest = list(self._tokens)[:count]
        for token in oldest:
            del self._tokens[token]
        logger.info(f"Revocation set over capacity, evicted {len(oldest)} oldest entries")
