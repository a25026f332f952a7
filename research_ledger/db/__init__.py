"""Relational persistence: ORM tables, engine and transaction scope."""

from research_ledger.db.base import (
    Base,
    create_db_engine,
    create_session_factory,
    init_db,
    session_scope,
)

__all__ = [
    "Base",
    "create_db_engine",
    "create_session_factory",
    "init_db",
    "session_scope",
]
