"""Bookshelf Database Configuration - Async SQLAlchemy."""

from collections.abc import AsyncGenerator
from typing import Any

from fastapi import Request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from bookshelf.core.config import Settings, settings

# Base class for models
Base = declarative_base()


def build_engine(config: Settings) -> AsyncEngine:
    """Create the async engine for the configured database.

    Pool sizing only applies to server databases; SQLite (used in tests)
    manages its own pool.
    """
    options: dict[str, Any] = {
        # Only echo SQL when debug is explicitly enabled
        "echo": config.debug and config.log_level == "DEBUG",
    }
    if not config.database_url.startswith("sqlite"):
        options.update(
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_timeout=config.db_pool_timeout,
            pool_recycle=config.db_pool_recycle,
            pool_pre_ping=True,  # Verify connection before use
        )
    return create_async_engine(config.database_url, **options)


def build_session_maker(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory used by request handlers and the auth guard."""
    return async_sessionmaker(
        bind,
        class_=AsyncSession,
        expire_on_commit=False,
    )


engine = build_engine(settings)
async_session_maker = build_session_maker(engine)


async def get_db(request: Request) -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get a database session from the app's session factory."""
    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with session_factory() as session:
        try:
            yield session
            await session.commit()
        except (Exception, BaseException):
            # Catch both regular exceptions and BaseExceptions (e.g., asyncio.CancelledError)
            # to ensure rollback happens even on cancellation
            await session.rollback()
            raise


async def check_db_connection(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> bool:
    """Check if database is reachable."""
    from bookshelf.core.logging import get_logger

    factory = session_factory or async_session_maker
    try:
        async with factory() as session:
            await session.execute(text("SELECT 1"))
            return True
    except (OSError, ConnectionError, SQLAlchemyError) as e:
        # Expected network/connection errors
        get_logger("database").debug(f"Database connection check failed: {e}")
        return False
    except Exception as e:
        # Unexpected errors - log them
        get_logger("database").warning(f"Unexpected error checking database connection: {e}")
        return False
