"""Bearer-token verification for every protected request."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bookshelf.core import Settings, settings
from bookshelf.models.base import ensure_utc
from bookshelf.models.user import User
from bookshelf.services.auth import (
    AccountInactiveError,
    AccountLockedError,
    AuthBackendError,
    MissingTokenError,
    PrincipalNotFoundError,
    RevokedTokenError,
    StaleTokenError,
    decode_token,
    token_issued_at,
)
from bookshelf.services.revocation import RevocationSet

logger = logging.getLogger(__name__)

BEARER_PREFIX = "Bearer "


@dataclass(frozen=True)
class Authentication:
    """A verified request identity.

    The raw token is kept so logout can revoke exactly this token.
    """

    user: User
    token: str
    payload: dict[str, Any]

    @property
    def expires_at(self) -> float | None:
        exp = self.payload.get("exp")
        return float(exp) if exp is not None else None


class AuthGuard:
    """Turns an Authorization header into a verified user or an AuthError."""

    def __init__(
        self,
        revocations: RevocationSet,
        session_factory: async_sessionmaker[AsyncSession],
        config: Settings = settings,
    ) -> None:
        self.revocations = revocations
        self.session_factory = session_factory
        self.config = config

    async def authenticate(self, raw_header: str | None) -> Authentication:
        """Verify a raw ``Authorization`` header value.

        Checks run cheapest first: the revocation lookup happens before any
        signature work, and the database is only consulted for tokens that
        verify.

        Raises:
            AuthError subclass: the request is not authenticated.
            AuthBackendError: the user store could not be reached.
        """
        if not raw_header or not raw_header.startswith(BEARER_PREFIX):
            raise MissingTokenError()

        token = raw_header[len(BEARER_PREFIX) :].strip()
        if not token:
            raise MissingTokenError("Token not found in the Authorization header")

        if self.revocations.is_revoked(token):
            raise RevokedTokenError()

        payload = decode_token(token, self.config)

        user = await self._load_user(UUID(payload["sub"]))
        if user is None:
            raise PrincipalNotFoundError()

        if not user.is_active:
            raise AccountInactiveError()

        if user.is_locked(datetime.now(UTC)):
            raise AccountLockedError()

        changed_at = ensure_utc(user.password_changed_at)
        if changed_at is not None and token_issued_at(payload) < changed_at:
            raise StaleTokenError()

        return Authentication(user=user, token=token, payload=payload)

    def revoke(self, token: str, expires_at: float | None = None) -> None:
        """Reject ``token`` from now on, regardless of its signature."""
        self.revocations.revoke(token, expires_at)

    def sweep(self) -> int:
        """Forget revoked tokens that have expired on their own."""
        return self.revocations.purge_expired()

    async def _load_user(self, user_id: UUID) -> User | None:
        try:
            return await asyncio.wait_for(
                self._fetch_user(user_id),
                timeout=self.config.auth_lookup_timeout,
            )
        except (SQLAlchemyError, OSError, TimeoutError) as e:
            logger.error(f"User lookup failed during authentication: {type(e).__name__}: {e}")
            raise AuthBackendError("User store unavailable") from e

    async def _fetch_user(self, user_id: UUID) -> User | None:
        async with self.session_factory() as session:
            result = await session.execute(select(User).where(User.id == user_id))
            return result.scalar_one_or_none()
