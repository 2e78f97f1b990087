"""
Database module for fairquote.

Provides async engines, session management, and the declarative base.
"""

from fairquote.database.base import (
    Base,
    close_db,
    create_engine,
    create_session_factory,
    get_db_session,
    init_db,
)

__all__ = [
    "Base",
    "create_engine",
    "create_session_factory",
    "get_db_session",
    "init_db",
    "close_db",
]
