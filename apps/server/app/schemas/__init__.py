"""Application schema exports."""

from .category import (
    CategoryCreate,
    CategoryQueryOptions,
    CategoryResponse,
    CategoryStats,
    CategoryTranslationCreate,
    CategoryTranslationResponse,
    CategoryUpdate,
    HierarchyValidation,
    PaginatedCategories,
    PaginationMeta,
)

__all__ = [
    "CategoryCreate",
    "CategoryQueryOptions",
    "CategoryResponse",
    "CategoryStats",
    "CategoryTranslationCreate",
    "CategoryTranslationResponse",
    "CategoryUpdate",
    "HierarchyValidation",
    "PaginatedCategories",
    "PaginationMeta",
]
