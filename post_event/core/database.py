"""Database configuration and session management.

This module configures the database engine and exposes session_scope(),
a transactional scope. Everything done inside the block is committed
together, and any exception rolls the whole unit of work back. The update
pipeline relies on this so that an event write and its invitee
reconciliation land atomically.

SQLite Configuration Choices:
    - **WAL (Write-Ahead Logging)**: Allows concurrent readers while the
      notification sweep writes.

    - **Foreign Keys**: Disabled by default in SQLite. Enabled so that
      deleting an event cascades to its invitees at the database level.
"""

import logging
from contextlib import contextmanager

from sqlalchemy import event as sa_event
from sqlmodel import Session, SQLModel, create_engine

from post_event.core.config import settings

logger = logging.getLogger(__name__)

connect_args = (
    {"check_same_thread": False} if settings.database_url.startswith("sqlite") else {}
)

engine = create_engine(
    settings.database_url,
    connect_args=connect_args,
    echo=settings.debug,  # Log SQL statements when DEBUG=true
)


def set_sqlite_pragma(dbapi_connection, connection_record):
    """Configure SQLite pragmas on each new connection.

    These settings are connection-level, not database-level, so they must
    be set each time a new connection is established from the pool.
    """
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


if engine.dialect.name == "sqlite":
    sa_event.listen(engine, "connect", set_sqlite_pragma)


def create_db_and_tables(bind=None):
    """Create all database tables."""
    # Import models so their tables are registered on the metadata
    import post_event.models  # noqa: F401

    SQLModel.metadata.create_all(bind or engine)


@contextmanager
def session_scope(bind=None):
    """Provide a transactional scope around a series of operations."""
    with Session(bind or engine) as session:
        try:
            yield session
            session.commit()
        except Exception:
            logger.exception("Rolling back failed unit of work")
            session.rollback()
            raise
