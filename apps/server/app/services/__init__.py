"""Service layer helpers for domain operations."""

from .categories import (
    CategoryNotFoundError,
    DuplicateSlugError,
    HasActiveChildrenError,
    InvalidHierarchyError,
    check_hierarchy,
    create_category,
    generate_slug,
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
from .category_hierarchy import (
    build_hierarchy_tree,
    find_ancestor_cycle,
    flatten_hierarchy_tree,
    prune_tree,
    validate_hierarchy,
)

__all__ = [
    "CategoryNotFoundError",
    "DuplicateSlugError",
    "HasActiveChildrenError",
    "InvalidHierarchyError",
    "build_hierarchy_tree",
    "check_hierarchy",
    "create_category",
    "find_ancestor_cycle",
    "flatten_hierarchy_tree",
    "generate_slug",
    "get_category_by_id",
    "get_category_by_slug",
    "get_category_stats",
    "get_category_subtree",
    "get_hierarchy_tree",
    "list_categories",
    "list_categories_paginated",
    "prune_tree",
    "restore_category",
    "soft_delete_category",
    "update_category",
    "validate_hierarchy",
]
