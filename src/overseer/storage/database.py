"""Database connection and session management."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine, text
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from overseer.config import settings
from overseer.observability.logging import get_logger
from overseer.storage.models import Base

logger = get_logger(__name__)

__all__ = [
    "get_engine",
    "get_session",
    "get_session_factory",
    "init_db",
    "shutdown_db",
    "check_db_health",
]

_engine: Engine | None = None
_engine_url: str | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _build_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            # A single shared connection keeps the in-memory DB alive across sessions.
            return create_engine(
                url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        return create_engine(url, connect_args={"check_same_thread": False})
    return create_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
    )


def get_engine() -> Engine:
    """Get or create the database engine."""
    global _engine, _engine_url, _SessionLocal
    if _engine is None or _engine_url != settings.database_url:
        if _engine is not None:
            _engine.dispose()
        logger.info("Creating database engine")
        _engine = _build_engine(settings.database_url)
        _engine_url = settings.database_url
        _SessionLocal = None
    return _engine


def get_session_factory() -> sessionmaker[Session]:
    """Get the session factory bound to the current engine."""
    global _SessionLocal
    engine = get_engine()
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(bind=engine, expire_on_commit=False)
    return _SessionLocal


@contextmanager
def get_session() -> Generator[Session, None, None]:
    """Context manager for database sessions.

    Commits on success, rolls back on error.
    """
    session = get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create all tables that do not exist yet."""
    engine = get_engine()
    Base.metadata.create_all(engine)
    logger.info("Database tables created")


def shutdown_db() -> None:
    """Dispose the engine and forget the cached session factory."""
    global _engine, _engine_url, _SessionLocal
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _engine_url = None
    _SessionLocal = None


def check_db_health() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
        return True
    except Exception:
        logger.warning("db_health_check_failed", exc_info=True)
        return False
