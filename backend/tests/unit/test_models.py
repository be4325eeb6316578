"""Tests for model mapping details that the API relies on."""

from datetime import UTC, datetime, timedelta

from sqlalchemy import inspect

from bookshelf.models import Book, User


class TestMappings:
    def test_no_orm_relationships(self):
        # Books are always queried by user_id; nothing lazy-loads across the FK
        assert list(inspect(User).relationships.keys()) == []
        assert list(inspect(Book).relationships.keys()) == []

    def test_books_cascade_in_database(self):
        (fk,) = Book.__table__.c.user_id.foreign_keys

        assert fk.column.table.name == "users"
        assert fk.ondelete == "CASCADE"


class TestUserLock:
    def test_future_lock(self):
        now = datetime.now(UTC)
        user = User(locked_until=now + timedelta(minutes=1))

        assert user.is_locked(now)

    def test_elapsed_lock(self):
        now = datetime.now(UTC)
        user = User(locked_until=now - timedelta(seconds=1))

        assert not user.is_locked(now)

    def test_naive_lock_read_as_utc(self):
        now = datetime.now(UTC)
        user = User(locked_until=(now + timedelta(minutes=1)).replace(tzinfo=None))

        assert user.is_locked(now)
