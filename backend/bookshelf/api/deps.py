"""Shared route dependencies."""

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from bookshelf.core import Settings, get_db
from bookshelf.models.user import User
from bookshelf.services.auth import AuthService, MissingTokenError
from bookshelf.services.auth_guard import Authentication
from bookshelf.services.book import BookService
from bookshelf.services.response_cache import ResponseCache


def get_config(request: Request) -> Settings:
    """Settings the running app was created with."""
    config: Settings = request.app.state.settings
    return config


def get_authentication(request: Request) -> Authentication:
    """The identity verified by AuthGuardMiddleware for this request."""
    authentication: Authentication | None = getattr(request.state, "authentication", None)
    if authentication is None:
        # Only reachable if a route is mounted outside the protected prefix
        raise MissingTokenError()
    return authentication


def get_current_user(
    authentication: Authentication = Depends(get_authentication),
) -> User:
    return authentication.user


def get_auth_service(
    db: AsyncSession = Depends(get_db),
    config: Settings = Depends(get_config),
) -> AuthService:
    """Dependency to get auth service."""
    return AuthService(db, config)


def get_book_service(db: AsyncSession = Depends(get_db)) -> BookService:
    """Dependency to get book service."""
    return BookService(db)


def get_response_cache(request: Request) -> ResponseCache:
    cache: ResponseCache = request.app.state.response_cache
    return cache
