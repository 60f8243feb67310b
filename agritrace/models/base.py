"""
Database Base Configuration

Provides SQLAlchemy setup, connection management, and the declarative base.
Supports both PostgreSQL (production) and SQLite (development/testing).
"""

import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Generator, Optional

from sqlalchemy import JSON, create_engine
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import QueuePool, StaticPool

logger = logging.getLogger(__name__)

# Use JSON for SQLite, JSONB for PostgreSQL
JSON_TYPE = JSON().with_variant(JSONB(), "postgresql")

Base = declarative_base()


def utcnow() -> datetime:
    """Naive UTC timestamp; all stored times are naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def make_engine(database_url: str, echo: bool = False) -> Engine:
    """
    Create an engine for the given URL.

    In-memory SQLite shares one connection across threads so that every
    session sees the same database.
    """
    if database_url.startswith("sqlite"):
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                echo=echo,
            )
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": 30},
            echo=echo,
        )

    return create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
        pool_recycle=3600,
        echo=echo,
    )


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Initialize database tables."""
    # Registers the mapped classes on Base.metadata
    from . import audit, event  # noqa: F401

    Base.metadata.create_all(bind=engine)
    logger.debug(f"Database initialized on {engine.url.render_as_string(hide_password=True)}")


def drop_db(engine: Engine) -> None:
    """Drop all database tables. USE WITH CAUTION."""
    Base.metadata.drop_all(bind=engine)


@contextmanager
def session_scope(
    session_factory: sessionmaker,
    session: Optional[Session] = None,
) -> Generator[Session, None, None]:
    """
    Transactional scope around a series of operations.

    When an outer session is passed in, it is reused as-is and the caller
    owns commit/rollback; this is how one write spans several services.

    Usage:
        with session_scope(factory) as session:
            session.add(record)
    """
    if session is not None:
        yield session
        return

    new_session = session_factory()
    try:
        yield new_session
        new_session.commit()
    except Exception:
        new_session.rollback()
        raise
    finally:
        new_session.close()
