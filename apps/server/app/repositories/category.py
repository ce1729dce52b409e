"""Persistence collaborator for category records."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import Select, exists, func, select
from sqlalchemy.orm import Session, aliased, selectinload

from app.models.category import Category

Where = Dict[str, Any]

_COLUMN_KEYS = ("id", "slug", "parent_id", "active", "display_order")


def _apply_where(stmt: Select, where: Optional[Where]) -> Select:
    """Translate a plain dict predicate into WHERE clauses.

    Column keys compare for equality (``None`` matches ``IS NULL``). Extra keys:
    ``exclude_id`` (id inequality), ``id__in``, ``parent_id__in`` and ``has_children``
    (at least one child row, whatever its activity state).
    """
    for key, value in (where or {}).items():
        if key in _COLUMN_KEYS:
            column = getattr(Category, key)
            stmt = stmt.where(column.is_(None) if value is None else column == value)
        elif key == "exclude_id":
            stmt = stmt.where(Category.id != value)
        elif key == "id__in":
            stmt = stmt.where(Category.id.in_(list(value)))
        elif key == "parent_id__in":
            stmt = stmt.where(Category.parent_id.in_(list(value)))
        elif key == "has_children":
            child = aliased(Category)
            clause = exists().where(child.parent_id == Category.id)
            stmt = stmt.where(clause if value else ~clause)
        else:
            raise ValueError(f"Unsupported category filter '{key}'")
    return stmt


class CategoryRepository:
    """CRUD and count operations over the ``categories`` table.

    The repository flushes but never commits; the calling service owns the
    transaction boundary.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def create(self, record: Category) -> Category:
        self.db.add(record)
        self.db.flush()
        return record

    def find_unique(
        self,
        *,
        id: Optional[uuid.UUID] = None,
        slug: Optional[str] = None,
    ) -> Optional[Category]:
        if (id is None) == (slug is None):
            raise ValueError("find_unique requires exactly one of 'id' or 'slug'")
        if id is not None:
            return self.db.get(Category, id)
        stmt = select(Category).where(Category.slug == slug)
        return self.db.execute(stmt).scalar_one_or_none()

    def find_first(self, where: Optional[Where] = None) -> Optional[Category]:
        stmt = _apply_where(select(Category), where)
        stmt = stmt.order_by(Category.display_order.asc(), Category.created_at.asc()).limit(1)
        return self.db.execute(stmt).scalars().first()

    def find_many(
        self,
        where: Optional[Where] = None,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
    ) -> List[Category]:
        """Return matching categories ordered by display order, then creation time."""
        stmt = (
            _apply_where(select(Category), where)
            .options(selectinload(Category.translations))
            .order_by(Category.display_order.asc(), Category.created_at.asc())
        )
        if offset:
            stmt = stmt.offset(offset)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def count(self, where: Optional[Where] = None) -> int:
        stmt = _apply_where(select(func.count()).select_from(Category), where)
        return self.db.scalar(stmt) or 0

    def update(self, category: Category, patch: Dict[str, Any]) -> Category:
        for field, value in patch.items():
            setattr(category, field, value)
        category.updated_at = datetime.now(timezone.utc)
        self.db.flush()
        return category

    def get_parent_id(self, category_id: uuid.UUID) -> Tuple[bool, Optional[uuid.UUID]]:
        """Single-node lookup of ``parent_id``; the flag is False when the row is missing."""
        row = self.db.execute(
            select(Category.parent_id).where(Category.id == category_id)
        ).first()
        if row is None:
            return False, None
        return True, row[0]

    def is_active(self, category_id: uuid.UUID) -> Optional[bool]:
        """Return the ``active`` flag, or None when the row does not exist."""
        return self.db.execute(
            select(Category.active).where(Category.id == category_id)
        ).scalar_one_or_none()


__all__ = ["CategoryRepository", "Where"]
