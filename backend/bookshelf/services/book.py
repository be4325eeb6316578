"""Book service - business logic for a user's collection."""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.models.book import Book
from bookshelf.schemas.book import BookCreate
from bookshelf.services.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class BookService:
    """Service for managing the books in one user's collection.

    Writes are committed before the method returns.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_collection(self, user_id: UUID) -> dict[str, list[Book]]:
        """All of a user's books grouped by status, newest first."""
        result = await self.db.execute(
            select(Book).where(Book.user_id == user_id).order_by(Book.added_at.desc())
        )
        grouped: dict[str, list[Book]] = {"read": [], "want_to_read": []}
        for book in result.scalars():
            grouped[book.status].append(book)
        return grouped

    async def get(self, user_id: UUID, volume_id: str) -> Book | None:
        result = await self.db.execute(
            select(Book).where(Book.user_id == user_id, Book.volume_id == volume_id)
        )
        return result.scalar_one_or_none()

    async def get_or_404(self, user_id: UUID, volume_id: str) -> Book:
        book = await self.get(user_id, volume_id)
        if book is None:
            raise NotFoundError(
                "Book not found",
                {"book_id": f"No book with id {volume_id} in this collection"},
            )
        return book

    async def add(self, data: BookCreate) -> Book:
        """Add a volume to the collection. Raises ConflictError if it is already there."""
        if await self.get(data.user_id, data.volume_id) is not None:
            raise self._duplicate(data.volume_id)

        fields: dict[str, Any] = data.model_dump()
        book = Book(**fields)
        self.db.add(book)
        try:
            await self.db.commit()
        except IntegrityError as e:
            await self.db.rollback()
            raise self._duplicate(data.volume_id) from e
        await self.db.refresh(book)

        logger.info(f"Added book {book.volume_id} for user {book.user_id}")
        return book

    async def update_status(self, user_id: UUID, volume_id: str, status: str) -> Book:
        book = await self.get_or_404(user_id, volume_id)
        book.status = status
        await self.db.commit()
        await self.db.refresh(book)

        logger.info(f"Book {volume_id} of user {user_id} moved to {status}")
        return book

    async def remove(self, user_id: UUID, volume_id: str) -> Book:
        """Delete a book and return the removed row."""
        book = await self.get_or_404(user_id, volume_id)
        await self.db.delete(book)
        await self.db.commit()

        logger.info(f"Removed book {volume_id} for user {user_id}")
        return book

    @staticmethod
    def _duplicate(volume_id: str) -> ConflictError:
        return ConflictError(
            "Book already in collection",
            {"volume_id": f"Book {volume_id} is already in this collection"},
        )
