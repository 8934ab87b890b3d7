"""Persistence layer (SQLAlchemy models, sessions, repositories)."""

from overseer.storage.database import get_session, get_session_factory, init_db, shutdown_db

__all__ = ["get_session", "get_session_factory", "init_db", "shutdown_db"]
