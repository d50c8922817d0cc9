"""
Database Package Initialization.

============================================================
DATABASE PERSISTENCE LAYER
============================================================

Engine, session and transaction management. All writes go
to real tables with explicit commit/rollback; every failure
raises a hard exception.

============================================================
"""

from .engine import (
    REQUIRED_TABLES,
    configure_engine,
    create_all_tables,
    create_database_engine,
    dispose_engine,
    get_db_session,
    get_engine,
    get_session,
    get_session_factory,
    initialize_database,
    transaction_scope,
    verify_database_connection,
    verify_required_tables,
)


__all__ = [
    "REQUIRED_TABLES",
    "configure_engine",
    "create_all_tables",
    "create_database_engine",
    "dispose_engine",
    "get_db_session",
    "get_engine",
    "get_session",
    "get_session_factory",
    "initialize_database",
    "transaction_scope",
    "verify_database_connection",
    "verify_required_tables",
]
