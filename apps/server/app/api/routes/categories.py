"""Category API routes."""

from __future__ import annotations

import uuid
from typing import Annotated, List, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import get_db
from app.schemas.category import (
    CategoryCreate,
    CategoryQueryOptions,
    CategoryResponse,
    CategoryStats,
    CategoryUpdate,
    HierarchyValidation,
    PaginatedCategories,
)
from app.services.categories import (
    CategoryNotFoundError,
    DuplicateSlugError,
    HasActiveChildrenError,
    InvalidHierarchyError,
    check_hierarchy,
    create_category,
    get_category_by_id,
    get_category_by_slug,
    get_category_stats,
    get_category_subtree,
    get_hierarchy_tree,
    list_categories,
    list_categories_paginated,
    restore_category,
    soft_delete_category,
    update_category,
)

router = APIRouter(prefix="/categories", tags=["categories"])


def _to_http_exception(exc: Exception) -> HTTPException:
    if isinstance(exc, CategoryNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
    if isinstance(exc, InvalidHierarchyError):
        return HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={
                "message": str(exc),
                "cycle_path": [str(node) for node in exc.cycle_path or []] or None,
            },
        )
    # DuplicateSlugError, HasActiveChildrenError
    return HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc))


def _not_found(field: str, value: object) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Category with {field} '{value}' not found",
    )


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
def create_category_endpoint(
    category_in: CategoryCreate,
    db: Annotated[Session, Depends(get_db)],
) -> CategoryResponse:
    """Create a category, optionally under an existing active parent."""
    try:
        category = create_category(db, category_in)
    except (InvalidHierarchyError, DuplicateSlugError) as exc:
        raise _to_http_exception(exc)
    return CategoryResponse.model_validate(category)


@router.get("", response_model=Union[PaginatedCategories, List[CategoryResponse]])
def list_categories_endpoint(
    db: Annotated[Session, Depends(get_db)],
    include_inactive: bool = Query(False, description="Include soft-deleted categories"),
    include_children: bool = Query(False, description="Attach direct children"),
    include_parent: bool = Query(False, description="Attach the parent category"),
    include_translations: bool = Query(True, description="Include translations"),
    parent_id: Optional[uuid.UUID] = Query(None, description="Only children of this category"),
    roots_only: bool = Query(False, description="Only categories without a parent"),
    limit: Optional[int] = Query(None, ge=1, le=settings.category_max_page_size),
    offset: Optional[int] = Query(None, ge=0),
) -> Union[PaginatedCategories, List[CategoryResponse]]:
    """
    List categories ordered by display order.

    Returns a plain list, or a paginated envelope when ``limit`` or ``offset``
    is given.
    """
    filters = {
        "include_inactive": include_inactive,
        "include_children": include_children,
        "include_parent": include_parent,
        "include_translations": include_translations,
        "limit": limit,
        "offset": offset,
    }
    if roots_only:
        filters["parent_id"] = None
    elif parent_id is not None:
        filters["parent_id"] = parent_id
    options = CategoryQueryOptions(**filters)

    if limit is not None or offset is not None:
        return list_categories_paginated(db, options)
    return list_categories(db, options)


@router.get("/hierarchy", response_model=List[CategoryResponse])
def get_hierarchy_endpoint(
    db: Annotated[Session, Depends(get_db)],
    include_inactive: bool = Query(False),
    max_depth: Optional[int] = Query(
        None, ge=1, le=settings.category_hierarchy_max_depth, description="Deepest level to return"
    ),
) -> List[CategoryResponse]:
    """Return the category forest."""
    return get_hierarchy_tree(db, include_inactive=include_inactive, max_depth=max_depth)


@router.get("/hierarchy/validate", response_model=HierarchyValidation)
def validate_hierarchy_endpoint(
    db: Annotated[Session, Depends(get_db)],
    parent_id: Optional[uuid.UUID] = Query(None, description="Candidate parent"),
    exclude_id: Optional[uuid.UUID] = Query(None, description="Category being moved"),
) -> HierarchyValidation:
    """Dry-run a parent assignment."""
    return check_hierarchy(db, parent_id, exclude_id)


@router.get("/stats", response_model=CategoryStats)
def get_stats_endpoint(db: Annotated[Session, Depends(get_db)]) -> CategoryStats:
    return get_category_stats(db)


@router.get("/slug/{slug}", response_model=CategoryResponse)
def get_category_by_slug_endpoint(
    slug: str,
    db: Annotated[Session, Depends(get_db)],
    include_inactive: bool = Query(False),
    include_children: bool = Query(False),
    include_parent: bool = Query(False),
    include_translations: bool = Query(True),
) -> CategoryResponse:
    options = CategoryQueryOptions(
        include_inactive=include_inactive,
        include_children=include_children,
        include_parent=include_parent,
        include_translations=include_translations,
    )
    category = get_category_by_slug(db, slug, options)
    if category is None:
        raise _not_found("slug", slug)
    return category


@router.get("/{category_id}", response_model=CategoryResponse)
def get_category_endpoint(
    category_id: uuid.UUID,
    db: Annotated[Session, Depends(get_db)],
    include_inactive: bool = Query(False),
    include_children: bool = Query(False),
    include_parent: bool = Query(False),
    include_translations: bool = Query(True),
) -> CategoryResponse:
    options = CategoryQueryOptions(
        include_inactive=include_inactive,
        include_children=include_children,
        include_parent=include_parent,
        include_translations=include_translations,
    )
    category = get_category_by_id(db, category_id, options)
    if category is None:
        raise _not_found("id", category_id)
    return category


@router.get("/{category_id}/subtree", response_model=CategoryResponse)
def get_category_subtree_endpoint(
    category_id: uuid.UUID,
    db: Annotated[Session, Depends(get_db)],
    include_inactive: bool = Query(False),
) -> CategoryResponse:
    """Return a category with two levels of descendants."""
    category = get_category_subtree(db, category_id, include_inactive=include_inactive)
    if category is None:
        raise _not_found("id", category_id)
    return category


@router.put("/{category_id}", response_model=CategoryResponse)
def update_category_endpoint(
    category_id: uuid.UUID,
    category_in: CategoryUpdate,
    db: Annotated[Session, Depends(get_db)],
) -> CategoryResponse:
    """Apply a partial update; ``parent_id: null`` moves the category to the root."""
    try:
        category = update_category(db, category_id, category_in)
    except (
        CategoryNotFoundError,
        InvalidHierarchyError,
        DuplicateSlugError,
        HasActiveChildrenError,
    ) as exc:
        raise _to_http_exception(exc)
    return CategoryResponse.model_validate(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category_endpoint(
    category_id: uuid.UUID,
    db: Annotated[Session, Depends(get_db)],
) -> Response:
    """Soft-delete a category that has no active children."""
    try:
        soft_delete_category(db, category_id)
    except (CategoryNotFoundError, HasActiveChildrenError) as exc:
        raise _to_http_exception(exc)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.put("/{category_id}/restore", response_model=CategoryResponse)
def restore_category_endpoint(
    category_id: uuid.UUID,
    db: Annotated[Session, Depends(get_db)],
) -> CategoryResponse:
    try:
        category = restore_category(db, category_id)
    except CategoryNotFoundError as exc:
        raise _to_http_exception(exc)
    return CategoryResponse.model_validate(category)


__all__ = ["router"]
