"""Tests for AuthGuard: every failure mode in the order it is checked."""

import asyncio
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from bookshelf.services.auth import (
    AccountInactiveError,
    AccountLockedError,
    AuthBackendError,
    InvalidOrExpiredTokenError,
    MissingTokenError,
    PrincipalNotFoundError,
    RevokedTokenError,
    StaleTokenError,
    create_access_token,
)
from bookshelf.services.auth_guard import AuthGuard
from bookshelf.services.revocation import RevocationSet

pytestmark = pytest.mark.asyncio


@pytest.fixture
def guard(session_factory, test_settings) -> AuthGuard:
    return AuthGuard(RevocationSet(), session_factory, test_settings)


def bearer(token: str) -> str:
    return f"Bearer {token}"


class TestHeaderChecks:
    async def test_missing_header(self, guard):
        with pytest.raises(MissingTokenError):
            await guard.authenticate(None)

    async def test_wrong_scheme(self, guard, user, token_for):
        with pytest.raises(MissingTokenError):
            await guard.authenticate(f"Basic {token_for(user)}")

    async def test_empty_token(self, guard):
        with pytest.raises(MissingTokenError):
            await guard.authenticate("Bearer ")


class TestTokenChecks:
    async def test_valid_token(self, guard, user, token_for):
        token = token_for(user)

        authentication = await guard.authenticate(bearer(token))

        assert authentication.user.id == user.id
        assert authentication.token == token
        assert authentication.expires_at > datetime.now(UTC).timestamp()

    async def test_revoked_checked_before_signature(self, guard):
        # Not even a JWT: revocation must win over verification
        guard.revoke("garbage-token")

        with pytest.raises(RevokedTokenError):
            await guard.authenticate(bearer("garbage-token"))

    async def test_revoked_valid_token(self, guard, user, token_for):
        token = token_for(user)
        guard.revoke(token)

        with pytest.raises(RevokedTokenError):
            await guard.authenticate(bearer(token))

    async def test_forged_token(self, guard, user, test_settings):
        other = test_settings.model_copy(update={"jwt_secret_key": "f" * 40})
        token = create_access_token(user.id, config=other)

        with pytest.raises(InvalidOrExpiredTokenError):
            await guard.authenticate(bearer(token))

    async def test_expired_token(self, guard, user, token_for):
        token = token_for(user, issued_at=datetime.now(UTC) - timedelta(hours=2))

        with pytest.raises(InvalidOrExpiredTokenError):
            await guard.authenticate(bearer(token))

    async def test_expired_and_forged_are_indistinguishable(self, guard, user, token_for):
        expired = token_for(user, issued_at=datetime.now(UTC) - timedelta(hours=2))

        with pytest.raises(InvalidOrExpiredTokenError) as expired_info:
            await guard.authenticate(bearer(expired))
        with pytest.raises(InvalidOrExpiredTokenError) as forged_info:
            await guard.authenticate(bearer("a.b.c"))

        assert expired_info.value.details == forged_info.value.details


class TestPrincipalChecks:
    async def test_unknown_principal(self, guard, test_settings):
        token = create_access_token(uuid4(), config=test_settings)

        with pytest.raises(PrincipalNotFoundError):
            await guard.authenticate(bearer(token))

    async def test_inactive_account(self, guard, user_factory, token_for):
        user = await user_factory(is_active=False)

        with pytest.raises(AccountInactiveError):
            await guard.authenticate(bearer(token_for(user)))

    async def test_locked_account(self, guard, user_factory, token_for):
        user = await user_factory(locked_until=datetime.now(UTC) + timedelta(minutes=10))

        with pytest.raises(AccountLockedError):
            await guard.authenticate(bearer(token_for(user)))

    async def test_elapsed_lock_is_ignored(self, guard, user_factory, token_for):
        user = await user_factory(locked_until=datetime.now(UTC) - timedelta(minutes=1))

        authentication = await guard.authenticate(bearer(token_for(user)))

        assert authentication.user.id == user.id

    async def test_token_older_than_password_change(self, guard, user_factory, token_for):
        changed_at = datetime.now(UTC)
        user = await user_factory(password_changed_at=changed_at)
        token = token_for(user, issued_at=changed_at - timedelta(seconds=1))

        with pytest.raises(StaleTokenError):
            await guard.authenticate(bearer(token))

    async def test_token_issued_at_password_change_is_fresh(self, guard, user_factory, token_for):
        changed_at = datetime.now(UTC)
        user = await user_factory(password_changed_at=changed_at)
        token = token_for(user, issued_at=changed_at)

        authentication = await guard.authenticate(bearer(token))

        assert authentication.user.id == user.id


class TestBackendFailures:
    """A broken user store is a server error, never an auth failure."""

    async def test_database_error(self, guard, user, token_for):
        error = OperationalError("SELECT", {}, Exception("connection refused"))
        with patch.object(guard, "_fetch_user", AsyncMock(side_effect=error)):
            with pytest.raises(AuthBackendError):
                await guard.authenticate(bearer(token_for(user)))

    async def test_lookup_timeout(self, guard, user, token_for, test_settings):
        async def hang(user_id):
            await asyncio.sleep(5)

        guard.config = test_settings.model_copy(update={"auth_lookup_timeout": 0.05})
        with patch.object(guard, "_fetch_user", side_effect=hang):
            with pytest.raises(AuthBackendError):
                await guard.authenticate(bearer(token_for(user)))


class TestSweep:
    async def test_sweep_drops_expired_revocations(self, guard):
        guard.revoke("old", expires_at=datetime.now(UTC).timestamp() - 10)
        guard.revoke("current", expires_at=datetime.now(UTC).timestamp() + 600)

        assert guard.sweep() == 1
        assert guard.revocations.is_revoked("current")
