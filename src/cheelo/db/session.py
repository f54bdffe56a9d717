"""
Database session management for Cheelo.

Provides the SQLAlchemy engine and session factory configured from
settings.database_url.

Usage:
    from cheelo.db import session_scope

    with session_scope() as session:
        session.add(PlayerView(...))
        # Commits on exit, rolls back on exception
"""

from contextlib import contextmanager
from typing import Callable, Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from cheelo.config import settings


def get_engine(url: str = None) -> Engine:
    """
    Create the SQLAlchemy engine.

    Pool sizing only applies to server databases; SQLite uses its own
    pool and rejects those arguments.
    """
    url = url or settings.database_url
    kwargs = {
        "pool_pre_ping": True,  # Verify connection is alive before using
        "echo": settings.log_level == "DEBUG",
    }
    if not url.startswith("sqlite"):
        kwargs["pool_size"] = settings.db_pool_size
        kwargs["max_overflow"] = settings.db_max_overflow
    return create_engine(url, **kwargs)


_engine = None


def _get_engine() -> Engine:
    """Get or create the singleton engine instance."""
    global _engine
    if _engine is None:
        _engine = get_engine()
    return _engine


def make_session_factory(engine: Engine = None) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine or _get_engine())


SessionLocal = make_session_factory()


@contextmanager
def session_scope(factory: Callable[[], Session] = None) -> Generator[Session, None, None]:
    """
    Context manager for database sessions.

    Commits on successful exit, rolls back on exception and always
    closes the session.

    Raises:
        Any exception from the database operation (after rollback)
    """
    session = (factory or SessionLocal)()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
