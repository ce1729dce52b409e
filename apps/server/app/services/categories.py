"""Service layer for category CRUD, hierarchy reads and statistics."""

from __future__ import annotations

import logging
import math
import re
import unicodedata
import uuid
from contextlib import contextmanager
from typing import Iterator, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.category import Category, CategoryTranslation
from app.repositories.category import CategoryRepository, Where
from app.schemas.category import (
    CategoryCreate,
    CategoryQueryOptions,
    CategoryResponse,
    CategoryStats,
    CategoryTranslationCreate,
    CategoryUpdate,
    HierarchyValidation,
    PaginatedCategories,
    PaginationMeta,
)
from app.services.category_hierarchy import (
    build_hierarchy_tree,
    find_ancestor_cycle,
    validate_hierarchy,
)

logger = logging.getLogger(__name__)


class CategoryNotFoundError(Exception):
    """Raised when a write targets a category that doesn't exist."""

    def __init__(self, category_id: str) -> None:
        super().__init__(f"Category with id '{category_id}' not found")
        self.category_id = category_id


class DuplicateSlugError(Exception):
    """Raised when a slug is already used by another category."""

    def __init__(self, slug: str) -> None:
        super().__init__(f"Category with slug '{slug}' already exists")
        self.slug = slug


class InvalidHierarchyError(Exception):
    """Raised when a parent assignment would break the category forest."""

    def __init__(
        self,
        reason: str,
        *,
        parent_id: Optional[uuid.UUID] = None,
        cycle_path: Optional[List[uuid.UUID]] = None,
    ) -> None:
        super().__init__(f"Invalid hierarchy: {reason}")
        self.reason = reason
        self.parent_id = parent_id
        self.cycle_path = cycle_path

    @classmethod
    def from_validation(
        cls, validation: HierarchyValidation, parent_id: Optional[uuid.UUID]
    ) -> "InvalidHierarchyError":
        return cls(
            validation.error or "invalid parent",
            parent_id=parent_id,
            cycle_path=validation.cycle_path,
        )


class HasActiveChildrenError(Exception):
    """Raised when deactivating a category that still has active children."""

    def __init__(self, category_id: str, active_children: int) -> None:
        super().__init__(
            f"Cannot delete category '{category_id}' with {active_children} active "
            "children. Please deactivate children first."
        )
        self.category_id = category_id
        self.active_children = active_children


def _is_duplicate_slug_violation(exc: IntegrityError) -> bool:
    """Check if the IntegrityError comes from the unique slug constraint."""
    error_str = str(exc.orig) if exc.orig else str(exc)
    return "uq_categories_slug" in error_str or (
        "UNIQUE constraint failed" in error_str and "categories.slug" in error_str
    )


def _build_translations(
    translations: List[CategoryTranslationCreate],
) -> List[CategoryTranslation]:
    return [
        CategoryTranslation(
            language=translation.language,
            name=translation.name,
            description=translation.description,
        )
        for translation in translations
    ]


def _active_where(include_inactive: bool) -> Where:
    return {} if include_inactive else {"active": True}


@contextmanager
def _transaction(db: Session, slug: Optional[str] = None) -> Iterator[None]:
    """Commit when the block succeeds, roll back on any error.

    Slug constraint violations raised at flush or commit become DuplicateSlugError.
    """
    try:
        yield
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        if slug is not None and _is_duplicate_slug_violation(exc):
            raise DuplicateSlugError(slug) from exc
        raise
    except Exception:
        db.rollback()
        raise


def _require_category(repo: CategoryRepository, category_id: uuid.UUID) -> Category:
    category = repo.find_unique(id=category_id)
    if category is None:
        raise CategoryNotFoundError(str(category_id))
    return category


def _ensure_no_active_children(repo: CategoryRepository, category: Category) -> None:
    active_children = repo.count({"parent_id": category.id, "active": True})
    if active_children > 0:
        logger.warning(
            "Refusing to deactivate category %s: %d active children",
            category.id,
            active_children,
        )
        raise HasActiveChildrenError(str(category.id), active_children)


def _attach_children(
    repo: CategoryRepository,
    nodes: List[CategoryResponse],
    *,
    include_inactive: bool,
    depth: int,
) -> None:
    """Load up to ``depth`` levels of children below ``nodes``, one query per level."""
    level = nodes
    for _ in range(depth):
        if not level:
            break
        by_id = {node.id: node for node in level}
        children = repo.find_many(
            {**_active_where(include_inactive), "parent_id__in": list(by_id)}
        )
        next_level: List[CategoryResponse] = []
        for child in children:
            node = CategoryResponse.model_validate(child)
            by_id[child.parent_id].children.append(node)
            next_level.append(node)
        level = next_level


def _attach_parents(repo: CategoryRepository, nodes: List[CategoryResponse]) -> None:
    """Attach the parent record of each node with a single query."""
    parent_ids = {node.parent_id for node in nodes if node.parent_id is not None}
    if not parent_ids:
        return
    parents = {
        parent.id: CategoryResponse.model_validate(parent)
        for parent in repo.find_many({"id__in": list(parent_ids)})
    }
    for node in nodes:
        if node.parent_id is not None:
            node.parent = parents.get(node.parent_id)


def _expand(
    repo: CategoryRepository,
    nodes: List[CategoryResponse],
    options: CategoryQueryOptions,
) -> List[CategoryResponse]:
    """Apply the include_* options of a read to freshly loaded nodes."""
    if options.include_children:
        _attach_children(repo, nodes, include_inactive=options.include_inactive, depth=1)
    if options.include_parent:
        _attach_parents(repo, nodes)
    if not options.include_translations:
        for node in nodes:
            node.translations = []
            for related in [*node.children, node.parent]:
                if related is not None:
                    related.translations = []
    return nodes


def check_hierarchy(
    db: Session,
    parent_id: Optional[uuid.UUID],
    exclude_id: Optional[uuid.UUID] = None,
) -> HierarchyValidation:
    """Run the hierarchy validator without writing anything."""
    return validate_hierarchy(CategoryRepository(db), parent_id, exclude_id)


def create_category(db: Session, data: CategoryCreate) -> Category:
    """Create a category after validating its parent and slug.

    Steps:
    1. Validate the parent chain (when a parent is given)
    2. Check the slug is free
    3. Persist the category with its translations
    """
    repo = CategoryRepository(db)

    with _transaction(db, data.slug):
        if data.parent_id is not None:
            validation = validate_hierarchy(repo, data.parent_id, None)
            if not validation.is_valid:
                logger.warning("Rejected category '%s': %s", data.slug, validation.error)
                raise InvalidHierarchyError.from_validation(validation, data.parent_id)

        if repo.find_unique(slug=data.slug) is not None:
            raise DuplicateSlugError(data.slug)

        category = repo.create(
            Category(
                slug=data.slug,
                parent_id=data.parent_id,
                display_order=data.display_order,
                active=True,
                translations=_build_translations(data.translations),
            )
        )
    db.refresh(category)

    logger.info(
        "Created category %s (slug=%s, parent=%s)",
        category.id,
        category.slug,
        category.parent_id,
    )
    return category


def update_category(db: Session, category_id: uuid.UUID, data: CategoryUpdate) -> Category:
    """Update a category.

    Only fields present in ``data`` are applied. A present ``parent_id`` (None
    included) is validated against the ancestor chain, a changed slug must be
    free, and ``translations`` replaces the whole translation set.
    """
    repo = CategoryRepository(db)
    patch = {}

    with _transaction(db, data.slug):
        category = _require_category(repo, category_id)

        if data.parent_id_provided:
            validation = validate_hierarchy(repo, data.parent_id, category.id)
            if not validation.is_valid:
                logger.warning(
                    "Rejected parent %s for category %s: %s",
                    data.parent_id,
                    category.id,
                    validation.error,
                )
                raise InvalidHierarchyError.from_validation(validation, data.parent_id)
            patch["parent_id"] = data.parent_id

        if data.slug is not None and data.slug != category.slug:
            if repo.find_first({"slug": data.slug, "exclude_id": category.id}) is not None:
                raise DuplicateSlugError(data.slug)
            patch["slug"] = data.slug

        if data.display_order is not None:
            patch["display_order"] = data.display_order

        if data.active is not None:
            if category.active and not data.active:
                _ensure_no_active_children(repo, category)
            patch["active"] = data.active

        if data.translations is not None:
            patch["translations"] = _build_translations(data.translations)

        repo.update(category, patch)

        # Another writer may have moved an ancestor since the walk above.
        if "parent_id" in patch:
            cycle = find_ancestor_cycle(repo, category.id)
            if cycle is not None:
                logger.warning("Rolling back parent change of %s: cycle %s", category.id, cycle)
                raise InvalidHierarchyError(
                    "Circular reference detected in category hierarchy",
                    parent_id=data.parent_id,
                    cycle_path=cycle,
                )
    db.refresh(category)

    logger.info("Updated category %s (%s)", category.id, ", ".join(sorted(patch)) or "timestamps")
    return category


def soft_delete_category(db: Session, category_id: uuid.UUID) -> Category:
    """Deactivate a category that has no active children."""
    repo = CategoryRepository(db)

    with _transaction(db):
        category = _require_category(repo, category_id)
        _ensure_no_active_children(repo, category)
        repo.update(category, {"active": False})
    db.refresh(category)

    logger.info("Soft-deleted category %s", category.id)
    return category


def restore_category(db: Session, category_id: uuid.UUID) -> Category:
    """Reactivate a category without re-validating its ancestor chain."""
    repo = CategoryRepository(db)

    with _transaction(db):
        category = _require_category(repo, category_id)
        if category.parent_id is not None and not repo.is_active(category.parent_id):
            logger.warning(
                "Restoring category %s under missing or inactive parent %s",
                category.id,
                category.parent_id,
            )
        repo.update(category, {"active": True})
    db.refresh(category)

    logger.info("Restored category %s", category.id)
    return category


def get_category_by_id(
    db: Session,
    category_id: uuid.UUID,
    options: Optional[CategoryQueryOptions] = None,
) -> Optional[CategoryResponse]:
    """Fetch a category by ID, optionally with its direct children and parent."""
    options = options or CategoryQueryOptions()
    repo = CategoryRepository(db)
    category = repo.find_unique(id=category_id)
    if category is None:
        return None
    return _expand(repo, [CategoryResponse.model_validate(category)], options)[0]


def get_category_by_slug(
    db: Session,
    slug: str,
    options: Optional[CategoryQueryOptions] = None,
) -> Optional[CategoryResponse]:
    """Fetch a category by slug, optionally with its direct children and parent."""
    options = options or CategoryQueryOptions()
    repo = CategoryRepository(db)
    category = repo.find_unique(slug=slug)
    if category is None:
        return None
    return _expand(repo, [CategoryResponse.model_validate(category)], options)[0]


def get_category_subtree(
    db: Session,
    category_id: uuid.UUID,
    *,
    include_inactive: bool = False,
    depth: int = 2,
) -> Optional[CategoryResponse]:
    """Fetch a category with up to ``depth`` levels of descendants."""
    repo = CategoryRepository(db)
    category = repo.find_unique(id=category_id)
    if category is None:
        return None
    node = CategoryResponse.model_validate(category)
    _attach_children(repo, [node], include_inactive=include_inactive, depth=depth)
    return node


def _listing_where(options: CategoryQueryOptions) -> Where:
    where = _active_where(options.include_inactive)
    if options.filters_parent:
        where["parent_id"] = options.parent_id
    return where


def list_categories(
    db: Session, options: Optional[CategoryQueryOptions] = None
) -> List[CategoryResponse]:
    """List categories ordered by display order, then creation time."""
    options = options or CategoryQueryOptions()
    repo = CategoryRepository(db)
    categories = repo.find_many(
        _listing_where(options),
        limit=options.limit,
        offset=options.offset,
    )
    return _expand(
        repo, [CategoryResponse.model_validate(category) for category in categories], options
    )


def list_categories_paginated(
    db: Session, options: Optional[CategoryQueryOptions] = None
) -> PaginatedCategories:
    """List one page of categories together with pagination metadata."""
    options = options or CategoryQueryOptions()
    limit = options.limit or settings.category_default_page_size
    offset = options.offset or 0
    page = offset // limit + 1

    total = CategoryRepository(db).count(_listing_where(options))
    data = list_categories(db, options.model_copy(update={"limit": limit, "offset": offset}))
    total_pages = math.ceil(total / limit)

    return PaginatedCategories(
        data=data,
        pagination=PaginationMeta(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next=page < total_pages,
            has_prev=page > 1,
        ),
    )


def get_hierarchy_tree(
    db: Session,
    include_inactive: bool = False,
    max_depth: Optional[int] = None,
) -> List[CategoryResponse]:
    """Materialize the category forest from the flat table."""
    categories = CategoryRepository(db).find_many(_active_where(include_inactive))
    return build_hierarchy_tree(categories, max_depth=max_depth)


def get_category_stats(db: Session) -> CategoryStats:
    """Aggregate counts; each is an independent query, not a consistent snapshot."""
    repo = CategoryRepository(db)
    return CategoryStats(
        total=repo.count(),
        active=repo.count({"active": True}),
        inactive=repo.count({"active": False}),
        with_children=repo.count({"has_children": True}),
        root_categories=repo.count({"parent_id": None, "active": True}),
    )


def generate_slug(name: str) -> str:
    """Derive a URL-safe slug from a display name."""
    value = unicodedata.normalize("NFD", name.lower())
    value = "".join(ch for ch in value if not unicodedata.combining(ch))
    value = re.sub(r"[^a-z0-9\s-]", "", value)
    value = re.sub(r"\s+", "-", value)
    value = re.sub(r"-+", "-", value)
    return value.strip("-")


__all__ = [
    "CategoryNotFoundError",
    "DuplicateSlugError",
    "InvalidHierarchyError",
    "HasActiveChildrenError",
    "check_hierarchy",
    "create_category",
    "update_category",
    "soft_delete_category",
    "restore_category",
    "get_category_by_id",
    "get_category_by_slug",
    "get_category_subtree",
    "list_categories",
    "list_categories_paginated",
    "get_hierarchy_tree",
    "get_category_stats",
    "generate_slug",
]
