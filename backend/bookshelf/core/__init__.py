# Bookshelf Core Module
from .config import Settings, get_settings, settings
from .database import (
    Base,
    async_session_maker,
    build_engine,
    build_session_maker,
    check_db_connection,
    engine,
    get_db,
)
from .logging import setup_logging

__all__ = [
    "Settings",
    "settings",
    "get_settings",
    "setup_logging",
    "Base",
    "engine",
    "async_session_maker",
    "build_engine",
    "build_session_maker",
    "get_db",
    "check_db_connection",
]
