"""SQLAlchemy adapter package: a standalone host library and settings store."""

from __future__ import annotations

from .database import (
    StartupError,
    configured_engine,
    is_started,
    session_factory,
    shutdown,
    startup,
)
from .library import DEFAULT_PERSONAL_LIBRARY_NAME, SqlAlchemyLibrary
from .mappings import create_all_tables, metadata
from .settings import SqlAlchemySettingsStore

__all__ = [
    "DEFAULT_PERSONAL_LIBRARY_NAME",
    "SqlAlchemyLibrary",
    "SqlAlchemySettingsStore",
    "StartupError",
    "configured_engine",
    "create_all_tables",
    "is_started",
    "metadata",
    "session_factory",
    "shutdown",
    "startup",
]
