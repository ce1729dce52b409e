"""Pydantic schemas for categories and their hierarchy."""

from __future__ import annotations

import html
import re
import uuid
from datetime import datetime
from typing import List, Optional

import bleach
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationInfo,
    field_validator,
    model_validator,
)

SLUG_PATTERN = re.compile(r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class CategoryTranslationCreate(BaseModel):
    """Display strings for one language."""

    language: str = Field(..., min_length=2, max_length=5)
    name: str = Field(..., min_length=1, max_length=120)
    description: Optional[str] = Field(None, max_length=500)

    @field_validator("name", "description")
    @classmethod
    def sanitize_text(cls, v: Optional[str], info: ValidationInfo) -> Optional[str]:
        """Strip markup to prevent XSS attacks; plain text is stored as submitted."""
        if not v:
            return v
        # Every pass only removes characters, so the length limit still holds.
        value = v.strip()
        while True:
            cleaned = html.unescape(bleach.clean(value, tags=[], strip=True)).strip()
            if cleaned == value:
                break
            value = cleaned
        if not value and info.field_name == "name":
            raise ValueError("Name cannot be empty once markup is removed")
        return value

    @field_validator("language")
    @classmethod
    def normalize_language(cls, v: str) -> str:
        return v.strip()


def _check_slug(slug: str) -> str:
    if not SLUG_PATTERN.match(slug):
        raise ValueError(
            "Slug must contain only lowercase letters, numbers and single hyphens, "
            "and cannot start or end with a hyphen"
        )
    return slug


class CategoryCreate(BaseModel):
    """Schema for creating a category."""

    slug: str = Field(..., min_length=1, max_length=140)
    parent_id: Optional[uuid.UUID] = None
    display_order: int = Field(0, ge=0, le=9999)
    translations: List[CategoryTranslationCreate] = Field(..., min_length=1)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: str) -> str:
        return _check_slug(v)


class CategoryUpdate(BaseModel):
    """Schema for updating a category.

    Only fields present in the payload are applied; ``parent_id`` explicitly set
    to ``None`` moves the category to the root level.
    """

    slug: Optional[str] = Field(None, min_length=1, max_length=140)
    parent_id: Optional[uuid.UUID] = None
    display_order: Optional[int] = Field(None, ge=0, le=9999)
    active: Optional[bool] = None
    translations: Optional[List[CategoryTranslationCreate]] = None

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, v: Optional[str]) -> Optional[str]:
        if v is None:
            return v
        return _check_slug(v)

    @model_validator(mode="after")
    def require_one_field(self) -> "CategoryUpdate":
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self

    @property
    def parent_id_provided(self) -> bool:
        return "parent_id" in self.model_fields_set


class CategoryQueryOptions(BaseModel):
    """Filtering, expansion and pagination options for category reads.

    ``parent_id`` is an exact-match filter: leaving it unset disables the filter,
    setting it to ``None`` restricts the result to root categories.
    """

    include_inactive: bool = False
    include_children: bool = False
    include_parent: bool = False
    include_translations: bool = True
    parent_id: Optional[uuid.UUID] = None
    limit: Optional[int] = Field(None, ge=1)
    offset: Optional[int] = Field(None, ge=0)

    @property
    def filters_parent(self) -> bool:
        return "parent_id" in self.model_fields_set


class CategoryTranslationResponse(BaseModel):
    """Schema for reading a category translation."""

    id: uuid.UUID
    language: str
    name: str
    description: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryResponse(BaseModel):
    """Schema for reading a category, optionally with nested children and its parent."""

    id: uuid.UUID
    slug: str
    parent_id: Optional[uuid.UUID] = None
    display_order: int
    active: bool
    created_at: datetime
    updated_at: datetime
    translations: List[CategoryTranslationResponse] = Field(default_factory=list)
    parent: Optional["CategoryResponse"] = None
    children: List["CategoryResponse"] = Field(default_factory=list)

    model_config = ConfigDict(from_attributes=True)


class HierarchyValidation(BaseModel):
    """Outcome of a parent assignment check."""

    is_valid: bool
    error: Optional[str] = None
    cycle_path: Optional[List[uuid.UUID]] = None

    @classmethod
    def valid(cls) -> "HierarchyValidation":
        return cls(is_valid=True)

    @classmethod
    def invalid(
        cls, error: str, cycle_path: Optional[List[uuid.UUID]] = None
    ) -> "HierarchyValidation":
        return cls(is_valid=False, error=error, cycle_path=cycle_path)


class PaginationMeta(BaseModel):
    """Pagination block of a paginated listing."""

    page: int
    limit: int
    total: int
    total_pages: int
    has_next: bool
    has_prev: bool


class PaginatedCategories(BaseModel):
    """Schema for a paginated category listing."""

    data: List[CategoryResponse]
    pagination: PaginationMeta


class CategoryStats(BaseModel):
    """Aggregate category counts for dashboards."""

    total: int
    active: int
    inactive: int
    with_children: int
    root_categories: int


CategoryResponse.model_rebuild()


__all__ = [
    "SLUG_PATTERN",
    "CategoryTranslationCreate",
    "CategoryCreate",
    "CategoryUpdate",
    "CategoryQueryOptions",
    "CategoryTranslationResponse",
    "CategoryResponse",
    "HierarchyValidation",
    "PaginationMeta",
    "PaginatedCategories",
    "CategoryStats",
]
