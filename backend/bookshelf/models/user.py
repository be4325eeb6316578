"""User model: the authenticated principal."""

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from bookshelf.models.base import BaseModel, ensure_utc


class User(BaseModel):
    """A reader account.

    Lockout and token invalidation state lives on the row so every process
    sees it: failed_login_attempts/locked_until drive the lockout, and
    password_changed_at is the watermark below which tokens are stale.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    failed_login_attempts: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    locked_until: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Tokens issued before this instant are rejected
    password_changed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    last_login_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def is_locked(self, now: datetime) -> bool:
        locked_until = ensure_utc(self.locked_until)
        return locked_until is not None and locked_until > now

    def __repr__(self) -> str:
        return f"<User {self.email}>"
