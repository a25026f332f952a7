"""Engine, session factory and transaction scope.

Every state-changing operation runs inside `session_scope`, which commits on
success and rolls back on any exception. Services never commit themselves;
they open SAVEPOINTs (`session.begin_nested()`) when a unit of work must be
undone on failure without discarding the caller's transaction.
"""

from contextlib import contextmanager
from typing import Generator, Optional

import structlog
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Session, sessionmaker

from research_ledger.models.config import DatabaseSettings

logger = structlog.get_logger()


class Base(DeclarativeBase):
    """Declarative base for all ledger tables."""


def _configure_sqlite(engine: Engine) -> None:
    """Make pysqlite honour SAVEPOINT and foreign keys.

    pysqlite issues its own BEGIN lazily, which breaks nested transactions;
    the driver's transaction handling is disabled and SQLAlchemy emits BEGIN.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # pragma: no cover
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):  # pragma: no cover
        conn.exec_driver_sql("BEGIN")


def create_db_engine(settings: Optional[DatabaseSettings] = None) -> Engine:
    """Create an engine for the configured database.

    Args:
        settings: Database settings; defaults are used when omitted.

    Returns:
        A configured SQLAlchemy engine.
    """
    settings = settings or DatabaseSettings()
    engine = create_engine(
        settings.url,
        echo=settings.echo,
        pool_pre_ping=settings.pool_pre_ping,
    )
    if engine.dialect.name == "sqlite":
        _configure_sqlite(engine)

    logger.info("db_engine_created", dialect=engine.dialect.name)
    return engine


def create_session_factory(engine: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=engine, autoflush=True, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables that do not exist yet."""
    from research_ledger.db import tables  # noqa: F401 (registers mappers)

    Base.metadata.create_all(bind=engine)
    logger.info("db_schema_created", tables=len(Base.metadata.tables))


@contextmanager
def session_scope(factory: sessionmaker[Session]) -> Generator[Session, None, None]:
    """Provide a transactional scope around a series of operations.

    Example:
        with session_scope(factory) as session:
            VerificationService(session).verify_research_item(request)
    """
    session = factory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
