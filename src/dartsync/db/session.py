"""
Database session management for dartsync.

Provides the SQLAlchemy engine and session factory, configured from
config.py. The engine is created on first use so importing this module
never needs a reachable database.

Usage:
    from dartsync.db import get_session

    with get_session() as session:
        store = ImportStore(session)
        store.import_tournaments(discovered)
        # Commits automatically on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from dartsync.config import settings


def get_engine() -> Engine:
    """
    Create SQLAlchemy engine with connection pooling.

    - Pre-ping verifies connections before use (handles stale connections)
    - SQL echo only when LOG_LEVEL=DEBUG
    """
    return create_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        echo=settings.log_level == "DEBUG",
    )


_engine: Optional[Engine] = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
        SessionLocal.configure(bind=_engine)
    return _engine


# Session factory; bound to the engine the first time a session is requested
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
)


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on successful exit, rolls back on exception.

    Raises:
        Any exception from the database operation (after rollback)
    """
    _get_engine()
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
