"""Authentication service: password hashing, JWT codec and account state."""

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError, VerifyMismatchError
from jwt.exceptions import PyJWTError
from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.core import Settings, settings
from bookshelf.models.user import User
from bookshelf.services.errors import ConflictError

logger = logging.getLogger(__name__)

# Argon2 password hasher with recommended parameters
# Memory: 64 MiB, Time: 3 iterations, Parallelism: 4
ph = PasswordHasher(
    time_cost=3,
    memory_cost=65536,
    parallelism=4,
    hash_len=32,
    salt_len=16,
)

# Hash of a throwaway password, verified against when the email is unknown so
# that response time does not reveal whether an account exists.
_DUMMY_HASH = ph.hash("dummy-password-for-timing")


class AuthError(Exception):
    """Base authentication failure, reported to the client as a 401.

    ``code`` is the machine-checkable failure name; ``message`` is the
    human-readable summary and ``details`` the longer explanation.
    """

    code = "AuthFailure"
    message = "Authentication failed"
    default_details = "The request could not be authenticated"

    def __init__(self, details: str | None = None):
        self.details = details or self.default_details
        super().__init__(self.details)


class MissingTokenError(AuthError):
    code = "MissingToken"
    message = "Token not provided"
    default_details = 'An authentication token must be sent as "Authorization: Bearer <token>"'


class RevokedTokenError(AuthError):
    code = "RevokedToken"
    message = "Token has been revoked"
    default_details = "This token was invalidated by a logout"


class InvalidOrExpiredTokenError(AuthError):
    code = "InvalidOrExpiredToken"
    message = "Invalid or expired token"
    default_details = "The token is invalid or has expired"


class PrincipalNotFoundError(AuthError):
    code = "PrincipalNotFound"
    message = "User not found"
    default_details = "The user associated with this token no longer exists"


class AccountInactiveError(AuthError):
    code = "AccountInactive"
    message = "Account is deactivated"
    default_details = "This account has been deactivated"


class AccountLockedError(AuthError):
    code = "AccountLocked"
    message = "Account is temporarily locked"
    default_details = "Too many failed login attempts; try again later"


class StaleTokenError(AuthError):
    code = "StaleToken"
    message = "Token invalidated by password change"
    default_details = "The password was changed after this token was issued; log in again"


class InvalidCredentialsError(AuthError):
    code = "InvalidCredentials"
    message = "Invalid credentials"
    default_details = "Email or password is incorrect"


class AuthBackendError(Exception):
    """The user store could not be consulted (database down, timeout).

    Not an AuthError: an outage is answered with a server error.
    """


def hash_password(password: str) -> str:
    """Hash a password using Argon2id."""
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against its hash using constant-time comparison."""
    try:
        ph.verify(password_hash, password)
        return True
    except (VerifyMismatchError, VerificationError, InvalidHashError):
        return False


def create_access_token(
    user_id: UUID,
    *,
    issued_at: datetime | None = None,
    config: Settings = settings,
) -> str:
    """Create a signed access token for a user.

    ``iat`` keeps sub-second precision so it can be compared against the
    password_changed_at watermark without rounding a fresh token into the
    past.
    """
    now = issued_at or datetime.now(UTC)
    expire = now + timedelta(minutes=config.jwt_access_token_expire_minutes)
    payload = {
        "sub": str(user_id),
        "iat": now.timestamp(),
        "exp": expire,
        "type": "access",
        "jti": secrets.token_hex(16),
    }
    token = jwt.encode(
        payload,
        config.effective_jwt_secret_key,
        algorithm=config.jwt_algorithm,
    )
    # PyJWT 2.x returns str; older type stubs may declare bytes
    return str(token)


def decode_token(token: str, config: Settings = settings) -> dict[str, Any]:
    """Verify signature and expiry and return the payload.

    Every failure is reported as InvalidOrExpiredTokenError; callers never
    learn whether a token was forged or merely expired.
    """
    try:
        payload = jwt.decode(
            token,
            config.effective_jwt_secret_key,
            algorithms=[config.jwt_algorithm],
            options={"require": ["exp", "iat", "sub"]},
        )
    except PyJWTError as e:
        logger.debug(f"Token verification failed: {e}")
        raise InvalidOrExpiredTokenError() from e

    if payload.get("type") != "access":
        raise InvalidOrExpiredTokenError()
    try:
        UUID(str(payload["sub"]))
        float(payload["iat"])
    except (TypeError, ValueError) as e:
        raise InvalidOrExpiredTokenError() from e
    return payload


def token_issued_at(payload: dict[str, Any]) -> datetime:
    return datetime.fromtimestamp(float(payload["iat"]), UTC)


class AuthService:
    """Account operations: registration, login with lockout, password change."""

    def __init__(self, session: AsyncSession, config: Settings = settings):
        self.session = session
        self.config = config

    async def get_user_by_email(self, email: str) -> User | None:
        """Get user by email (case-insensitive)."""
        result = await self.session.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get_user_by_id(self, user_id: UUID) -> User | None:
        """Get user by ID."""
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def register(self, name: str, email: str, password: str) -> User:
        """Create a new account. Raises ConflictError if the email is taken."""
        email = email.lower()
        if await self.get_user_by_email(email) is not None:
            raise ConflictError(
                "Email unavailable",
                {"field": "email", "details": "This email is already in use"},
            )

        user = User(
            name=name.strip(),
            email=email,
            password_hash=hash_password(password),
        )
        self.session.add(user)
        try:
            await self.session.commit()
        except IntegrityError as e:
            # Lost a race with a concurrent registration
            await self.session.rollback()
            raise ConflictError(
                "Email unavailable",
                {"field": "email", "details": "This email is already in use"},
            ) from e
        await self.session.refresh(user)

        logger.info(f"Registered user: {user.email}")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        """Check credentials and return the user.

        Raises InvalidCredentialsError for both "user not found" and
        "wrong password" to prevent user enumeration. Locked accounts are
        rejected before the password is checked.
        """
        user = await self.get_user_by_email(email)

        if user is None:
            # Perform a dummy verification to prevent timing attacks
            verify_password(password, _DUMMY_HASH)
            raise InvalidCredentialsError()

        if not user.is_active:
            raise AccountInactiveError()

        now = datetime.now(UTC)
        if user.is_locked(now):
            raise AccountLockedError()

        if not verify_password(password, user.password_hash):
            user = await self.register_failed_attempt(user)
            if user.is_locked(datetime.now(UTC)):
                raise AccountLockedError(
                    f"Too many failed login attempts; locked for {self.config.lockout_minutes} minutes"
                )
            raise InvalidCredentialsError()

        user = await self.reset_attempts(user)
        user.last_login_at = now
        await self.session.commit()
        return user

    async def register_failed_attempt(self, user: User) -> User:
        """Count a failed login and lock the account at the threshold.

        The increment is a single UPDATE and is committed immediately so
        concurrent requests see the lockout without waiting for this request
        to finish.
        """
        now = datetime.now(UTC)
        if user.locked_until is not None and not user.is_locked(now):
            # An elapsed lockout starts a fresh count
            await self.session.execute(
                update(User)
                .where(User.id == user.id)
                .values(failed_login_attempts=0, locked_until=None)
                .execution_options(synchronize_session=False)
            )

        result = await self.session.execute(
            update(User)
            .where(User.id == user.id)
            .values(failed_login_attempts=User.failed_login_attempts + 1)
            .returning(User.failed_login_attempts)
            .execution_options(synchronize_session=False)
        )
        attempts = result.scalar_one()

        if attempts >= self.config.max_failed_login_attempts:
            locked_until = now + timedelta(minutes=self.config.lockout_minutes)
            await self.session.execute(
                update(User)
                .where(User.id == user.id)
                .values(locked_until=locked_until)
                .execution_options(synchronize_session=False)
            )
            logger.warning(
                "Account %s locked until %s after %d failed attempts",
                user.email,
                locked_until.isoformat(),
                attempts,
            )

        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def reset_attempts(self, user: User) -> User:
        """Clear the failure counter and any lockout."""
        if user.failed_login_attempts == 0 and user.locked_until is None:
            return user

        user.failed_login_attempts = 0
        user.locked_until = None
        await self.session.commit()
        await self.session.refresh(user)
        return user

    async def change_password(
        self, user: User, current_password: str, new_password: str
    ) -> datetime:
        """Change a user's password, invalidating all previously issued tokens.

        Returns the new watermark; tokens must be issued at or after it.
        """
        if not verify_password(current_password, user.password_hash):
            raise InvalidCredentialsError("Current password is incorrect")

        changed_at = datetime.now(UTC)
        user.password_hash = hash_password(new_password)
        user.password_changed_at = changed_at
        await self.session.commit()

        logger.info(f"Password changed for user: {user.email}")
        return changed_at

    def create_tokens(self, user: User, issued_at: datetime | None = None) -> dict[str, Any]:
        """Issue an access token for a user."""
        return {
            "access_token": create_access_token(user.id, issued_at=issued_at, config=self.config),
            "token_type": "bearer",
            "expires_in": self.config.jwt_access_token_expire_minutes * 60,
        }
