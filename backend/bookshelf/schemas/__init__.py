# Bookshelf API Schemas
from bookshelf.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    RegisterRequest,
    SessionResponse,
    TokenResponse,
    UserResponse,
)
from bookshelf.schemas.book import (
    BookCreate,
    BookResponse,
    BookStatusUpdate,
    BookSummary,
    CollectionResponse,
)
from bookshelf.schemas.cache import CacheStatsResponse
from bookshelf.schemas.common import Envelope, ErrorEnvelope

__all__ = [
    "BookCreate",
    "BookResponse",
    "BookStatusUpdate",
    "BookSummary",
    "CacheStatsResponse",
    "ChangePasswordRequest",
    "CollectionResponse",
    "Envelope",
    "ErrorEnvelope",
    "LoginRequest",
    "RegisterRequest",
    "SessionResponse",
    "TokenResponse",
    "UserResponse",
]
