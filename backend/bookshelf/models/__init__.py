# Bookshelf Models
from bookshelf.models.base import BaseModel
from bookshelf.models.book import Book
from bookshelf.models.user import User

__all__ = [
    "BaseModel",
    "Book",
    "User",
]
