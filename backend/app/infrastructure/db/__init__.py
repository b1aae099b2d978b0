"""
Database Infrastructure Package for EventTria

Exports database utilities and the session dependency.
"""

from app.infrastructure.db.database import (
    DatabaseManager,
    get_db_manager,
    resolve_database_url,
    get_session,
    get_session_context,
    init_db,
    close_db,
)

from app.infrastructure.db.dependencies import SessionDep


__all__ = [
    # Database management
    "DatabaseManager",
    "get_db_manager",
    "resolve_database_url",
    "get_session",
    "get_session_context",
    "init_db",
    "close_db",
    # Dependencies
    "SessionDep",
]
