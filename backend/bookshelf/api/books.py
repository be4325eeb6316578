"""Book collection API endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, status

from bookshelf.api.deps import get_book_service, get_current_user
from bookshelf.models.user import User
from bookshelf.schemas.book import (
    BookCreate,
    BookResponse,
    BookStatusUpdate,
    BookSummary,
    CollectionResponse,
)
from bookshelf.schemas.common import Envelope
from bookshelf.services.book import BookService
from bookshelf.services.errors import ForbiddenError

router = APIRouter(prefix="/books", tags=["books"])


def _require_owner(user_id: UUID, current_user: User) -> None:
    if user_id != current_user.id:
        raise ForbiddenError(
            "Access denied",
            {"user_id": "You can only access your own collection"},
        )


@router.get("/collection/{user_id}", response_model=Envelope[CollectionResponse])
async def get_collection(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
) -> Envelope[CollectionResponse]:
    """List a user's books split into read and want-to-read shelves."""
    _require_owner(user_id, current_user)
    grouped = await service.list_collection(user_id)
    collection = CollectionResponse(
        read=[BookResponse.model_validate(b) for b in grouped["read"]],
        want_to_read=[BookResponse.model_validate(b) for b in grouped["want_to_read"]],
    )
    return Envelope(message="Collection retrieved", data=collection)


@router.post(
    "",
    response_model=Envelope[BookResponse],
    status_code=status.HTTP_201_CREATED,
)
async def add_book(
    data: BookCreate,
    current_user: User = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
) -> Envelope[BookResponse]:
    """Add a book to the caller's collection. Returns 409 if it is already there."""
    _require_owner(data.user_id, current_user)
    book = await service.add(data)
    return Envelope(message="Book added to collection", data=BookResponse.model_validate(book))


@router.get("/{book_id}", response_model=Envelope[BookResponse])
async def get_book(
    book_id: str,
    current_user: User = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
) -> Envelope[BookResponse]:
    book = await service.get_or_404(current_user.id, book_id)
    return Envelope(message="Book retrieved", data=BookResponse.model_validate(book))


@router.put("/{book_id}/status", response_model=Envelope[BookResponse])
async def update_book_status(
    book_id: str,
    data: BookStatusUpdate,
    current_user: User = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
) -> Envelope[BookResponse]:
    """Move a book to the other shelf."""
    book = await service.update_status(current_user.id, book_id, data.status)
    return Envelope(message="Book status updated", data=BookResponse.model_validate(book))


@router.delete("/{book_id}", response_model=Envelope[BookSummary])
async def remove_book(
    book_id: str,
    current_user: User = Depends(get_current_user),
    service: BookService = Depends(get_book_service),
) -> Envelope[BookSummary]:
    book = await service.remove(current_user.id, book_id)
    summary = BookSummary(volume_id=book.volume_id, title=book.title, status=book.status)
    return Envelope(message="Book removed from collection", data=summary)
