"""Tests for the in-memory revocation set."""

import pytest

from bookshelf.services.revocation import RevocationSet


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestRevoke:
    """Tests for RevocationSet.revoke() and is_revoked()."""

    def test_revoked_token_is_reported(self):
        revocations = RevocationSet()
        revocations.revoke("token-a")

        assert revocations.is_revoked("token-a")
        assert "token-a" in revocations
        assert not revocations.is_revoked("token-b")

    def test_revoke_is_idempotent(self):
        revocations = RevocationSet()
        revocations.revoke("token-a")
        revocations.revoke("token-a")

        assert len(revocations) == 1

    def test_non_string_is_never_contained(self):
        revocations = RevocationSet()
        revocations.revoke("token-a")

        assert 42 not in revocations

    def test_invalid_capacity_rejected(self):
        with pytest.raises(ValueError):
            RevocationSet(capacity=0)


class TestEviction:
    """Over capacity the oldest entries go first, in insertion order."""

    def test_evicts_oldest_fifth(self):
        revocations = RevocationSet(capacity=10, evict_fraction=0.2)
        for i in range(11):
            revocations.revoke(f"token-{i}")

        # 11 entries > 10: the two oldest are dropped
        assert len(revocations) == 9
        assert not revocations.is_revoked("token-0")
        assert not revocations.is_revoked("token-1")
        assert revocations.is_revoked("token-2")
        assert revocations.is_revoked("token-10")

    def test_lookup_does_not_refresh_position(self):
        revocations = RevocationSet(capacity=5, evict_fraction=0.2)
        for i in range(5):
            revocations.revoke(f"token-{i}")

        # Reading the oldest entry must not protect it from eviction
        assert revocations.is_revoked("token-0")
        revocations.revoke("token-5")

        assert not revocations.is_revoked("token-0")
        assert revocations.is_revoked("token-1")

    def test_evicts_at_least_one(self):
        revocations = RevocationSet(capacity=2, evict_fraction=0.1)
        for i in range(3):
            revocations.revoke(f"token-{i}")

        assert len(revocations) == 2
        assert not revocations.is_revoked("token-0")

    def test_size_stays_bounded(self):
        revocations = RevocationSet(capacity=1000)
        for i in range(5000):
            revocations.revoke(f"token-{i}")

        assert len(revocations) <= 1000
        assert revocations.is_revoked("token-4999")


class TestPurgeExpired:
    """Tests for RevocationSet.purge_expired()."""

    def test_purges_only_expired(self):
        clock = FakeClock()
        revocations = RevocationSet(clock=clock)
        revocations.revoke("expired", expires_at=clock.now - 1)
        revocations.revoke("live", expires_at=clock.now + 60)
        revocations.revoke("unknown-expiry")

        removed = revocations.purge_expired()

        assert removed == 1
        assert not revocations.is_revoked("expired")
        assert revocations.is_revoked("live")
        assert revocations.is_revoked("unknown-expiry")

    def test_entry_expires_as_clock_advances(self):
        clock = FakeClock()
        revocations = RevocationSet(clock=clock)
        revocations.revoke("token", expires_at=clock.now + 60)

        assert revocations.purge_expired() == 0
        clock.now += 61
        assert revocations.purge_expired() == 1
        assert len(revocations) == 0

    def test_clear(self):
        revocations = RevocationSet()
        revocations.revoke("token")
        revocations.clear()

        assert len(revocations) == 0
