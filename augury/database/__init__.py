"""
Database module initialization.
Exports database components for use throughout the application.
"""

from augury.database.base import Base, create_db_engine, init_db
from augury.database.session import atomic, create_session_factory, get_db_context

__all__ = [
    # Base classes
    "Base",
    # Engine and sessions
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "get_db_context",
    "atomic",
]
