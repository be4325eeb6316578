"""Services package."""

from bookshelf.services.auth import AuthService
from bookshelf.services.auth_guard import AuthGuard, Authentication
from bookshelf.services.book import BookService
from bookshelf.services.response_cache import ResponseCache, build_response_cache
from bookshelf.services.revocation import RevocationSet

__all__ = [
    "AuthGuard",
    "AuthService",
    "Authentication",
    "BookService",
    "ResponseCache",
    "RevocationSet",
    "build_response_cache",
]
