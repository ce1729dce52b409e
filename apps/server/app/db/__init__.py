"""Database engine, session and migration helpers."""

from .base import Base
from .migrations import run_migrations
from .session import SessionLocal, engine, get_db, verify_connection

__all__ = [
    "Base",
    "SessionLocal",
    "engine",
    "get_db",
    "run_migrations",
    "verify_connection",
]
