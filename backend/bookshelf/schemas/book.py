"""Pydantic schemas for the book collection API."""

from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator

from bookshelf.models.book import DEFAULT_AUTHORS

BookStatus = Literal["read", "want_to_read"]


class BookCreate(BaseModel):
    """A volume to add to a user's collection.

    user_id must be the authenticated user; it is kept in the body so the
    client states whose collection it means to change.
    """

    volume_id: str = Field(..., min_length=1, max_length=64)
    user_id: UUID
    title: str = Field(..., min_length=1, max_length=512)
    authors: list[str] = Field(default_factory=lambda: list(DEFAULT_AUTHORS))
    description: str | None = None
    published_date: str | None = Field(None, max_length=32)
    thumbnail: str | None = Field(None, max_length=1024)
    categories: list[str] = Field(default_factory=list)
    page_count: int = Field(0, ge=0)
    language: str | None = Field(None, max_length=16)
    average_rating: float = Field(0.0, ge=0, le=5)
    ratings_count: int = Field(0, ge=0)
    preview_link: str | None = Field(None, max_length=1024)
    status: BookStatus = "want_to_read"

    @field_validator("volume_id", "title")
    @classmethod
    def strip_required(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("This field is required")
        return v

    @field_validator("authors")
    @classmethod
    def default_authors(cls, v: list[str]) -> list[str]:
        authors = [a.strip() for a in v if a and a.strip()]
        return authors or list(DEFAULT_AUTHORS)


class BookStatusUpdate(BaseModel):
    """Request to move a book between shelves."""

    status: BookStatus


class BookResponse(BaseModel):
    """A book in a collection."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    volume_id: str
    user_id: UUID
    title: str
    authors: list[str]
    description: str | None
    published_date: str | None
    thumbnail: str | None
    categories: list[str]
    page_count: int
    language: str | None
    average_rating: float
    ratings_count: int
    preview_link: str | None
    status: BookStatus
    added_at: datetime


class BookSummary(BaseModel):
    """What is left of a book after it is removed."""

    volume_id: str
    title: str
    status: BookStatus


class CollectionResponse(BaseModel):
    """A user's books grouped by shelf."""

    read: list[BookResponse] = Field(default_factory=list)
    want_to_read: list[BookResponse] = Field(default_factory=list)
