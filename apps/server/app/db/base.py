"""SQLAlchemy declarative base for ORM models."""

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


# Import model modules so SQLAlchemy registers the mappers during startup.
from app.models import category  # noqa: E402,F401


__all__ = ["Base"]
