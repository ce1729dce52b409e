"""Persistence helpers wrapping SQLAlchemy sessions."""

from .category import CategoryRepository

__all__ = ["CategoryRepository"]
