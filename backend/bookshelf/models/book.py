"""Book model - a volume in a user's collection."""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from bookshelf.models.base import BaseModel, utcnow

BOOK_STATUSES = ("read", "want_to_read")
DEFAULT_AUTHORS = ["Unknown author"]


class Book(BaseModel):
    """A book saved by a user.

    volume_id is the identifier from the external catalogue the frontend
    searches; a user can hold each volume at most once.
    """

    __tablename__ = "books"
    __table_args__ = (
        UniqueConstraint("volume_id", "user_id", name="uq_books_volume_user"),
        CheckConstraint(
            "status IN ('read', 'want_to_read')",
            name="ck_books_status",
        ),
    )

    volume_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    title: Mapped[str] = mapped_column(String(512), nullable=False)
    authors: Mapped[list[str]] = mapped_column(
        JSON, nullable=False, default=lambda: list(DEFAULT_AUTHORS)
    )
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    published_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    thumbnail: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    categories: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    page_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    language: Mapped[str | None] = mapped_column(String(16), nullable=True)
    average_rating: Mapped[float] = mapped_column(Float, default=0.0, nullable=False)
    ratings_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    preview_link: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    status: Mapped[str] = mapped_column(String(20), default="want_to_read", nullable=False)
    added_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )

    def __repr__(self) -> str:
        return f"<Book {self.volume_id} ({self.status})>"
