"""Pytest configuration and fixtures for backend tests.

Each test gets its own SQLite database file and its own app instance, so the
revocation set, response cache and database never leak between tests.
"""

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

# Set test environment variables before importing app modules
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-bookshelf-tests-0123456789"
os.environ["CACHE_BACKEND"] = "memory"

TEST_PASSWORD = "correct-horse"


@pytest.fixture
def test_settings():
    """Settings for one test, independent of any .env file."""
    from bookshelf.core import Settings

    return Settings(
        _env_file=None,
        environment="test",
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret_key=os.environ["JWT_SECRET_KEY"],
        cache_backend="memory",
        cache_debug_headers=True,
    )


# --- Database Fixtures ---


@pytest_asyncio.fixture
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A file-backed SQLite engine with all tables created."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from bookshelf.core import Base
    from bookshelf.models import Book, User  # noqa: F401

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'bookshelf.db'}")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine) -> async_sessionmaker[AsyncSession]:
    from bookshelf.core import build_session_maker

    return build_session_maker(db_engine)


@pytest_asyncio.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for testing."""
    async with session_factory() as session:
        yield session


# --- App Fixtures ---


@pytest.fixture
def app(test_settings, session_factory) -> FastAPI:
    """A fresh application bound to the test database."""
    from bookshelf.main import create_app

    return create_app(test_settings, session_factory)


@pytest_asyncio.fixture
async def async_client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client for the test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


# --- Test Factories ---


@pytest.fixture
def user_factory(db_session) -> Callable[..., Awaitable[Any]]:
    """Factory for creating test users."""
    from bookshelf.models.user import User
    from bookshelf.services.auth import hash_password

    counter = 0

    async def _create_user(
        name: str = "Test Reader",
        email: str | None = None,
        password: str = TEST_PASSWORD,
        **kwargs: Any,
    ) -> User:
        nonlocal counter
        counter += 1
        user = User(
            name=name,
            email=email or f"reader{counter}@example.com",
            password_hash=hash_password(password),
            **kwargs,
        )
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _create_user


@pytest_asyncio.fixture
async def user(user_factory):
    return await user_factory()


@pytest.fixture
def token_for(test_settings) -> Callable[..., str]:
    from bookshelf.services.auth import create_access_token

    def _token(user, **kwargs: Any) -> str:
        return create_access_token(user.id, config=test_settings, **kwargs)

    return _token


@pytest.fixture
def auth_headers(user, token_for) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def sample_book_data() -> dict[str, Any]:
    """Book fields as the frontend sends them (user_id added per test)."""
    return {
        "volume_id": "zyTCAlFPjgYC",
        "title": "The Google Story",
        "authors": ["David A. Vise", "Mark Malseed"],
        "description": "Here is the story behind one of the most remarkable companies.",
        "published_date": "2005-11-15",
        "thumbnail": "http://books.example.com/zyTCAlFPjgYC.jpg",
        "categories": ["Business & Economics"],
        "page_count": 207,
        "language": "en",
        "average_rating": 3.5,
        "ratings_count": 136,
        "preview_link": "http://books.example.com/preview/zyTCAlFPjgYC",
        "status": "want_to_read",
    }


# --- Pytest Hooks for Auto-Marking ---


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their fixtures and location.

    - Tests using db_session, db_engine, or async_client are marked as 'integration'
    - Tests in tests/unit/ are marked as 'unit'
    - Tests can override with explicit markers
    """
    integration_fixtures = {"db_session", "db_engine", "async_client", "session_factory"}

    for item in items:
        # Skip if already explicitly marked
        if any(mark.name in ("unit", "integration") for mark in item.iter_markers()):
            continue

        # Check fixture usage
        if hasattr(item, "fixturenames"):
            if integration_fixtures & set(item.fixturenames):
                item.add_marker(pytest.mark.integration)
                continue

        item.add_marker(pytest.mark.unit)
