"""Hierarchy validation and tree materialization for categories."""

from __future__ import annotations

import logging
import uuid
from collections import deque
from typing import Dict, Iterable, List, Optional

from app.models.category import Category
from app.repositories.category import CategoryRepository
from app.schemas.category import CategoryResponse, HierarchyValidation

logger = logging.getLogger(__name__)


def validate_hierarchy(
    repo: CategoryRepository,
    candidate_parent_id: Optional[uuid.UUID],
    exclude_id: Optional[uuid.UUID],
) -> HierarchyValidation:
    """Decide whether ``candidate_parent_id`` may become the parent of ``exclude_id``.

    ``exclude_id`` is the category being updated, or None for a category that
    does not exist yet. The ancestor chain is walked iteratively, one row lookup
    per step, until a root is reached. A missing node anywhere on the chain is
    reported as invalid instead of being treated as a root.
    """
    if candidate_parent_id is None:
        return HierarchyValidation.valid()

    if candidate_parent_id == exclude_id:
        return HierarchyValidation.invalid(
            "Category cannot be its own parent",
            cycle_path=[candidate_parent_id],
        )

    parent_active = repo.is_active(candidate_parent_id)
    if parent_active is None:
        return HierarchyValidation.invalid(
            f"Parent category with id '{candidate_parent_id}' not found"
        )
    if not parent_active:
        return HierarchyValidation.invalid(
            f"Parent category with id '{candidate_parent_id}' is inactive"
        )

    visited: set[uuid.UUID] = set()
    path: List[uuid.UUID] = []
    current_id: Optional[uuid.UUID] = candidate_parent_id

    while current_id is not None:
        if current_id in visited:
            return HierarchyValidation.invalid(
                "Circular reference detected in category hierarchy",
                cycle_path=[*path, current_id],
            )
        if current_id == exclude_id:
            return HierarchyValidation.invalid(
                "Category cannot be a descendant of itself",
                cycle_path=[*path, current_id],
            )

        visited.add(current_id)
        path.append(current_id)

        found, parent_id = repo.get_parent_id(current_id)
        if not found:
            return HierarchyValidation.invalid(
                f"Parent category with id '{current_id}' not found"
            )
        current_id = parent_id

    return HierarchyValidation.valid()


def find_ancestor_cycle(
    repo: CategoryRepository, category_id: uuid.UUID
) -> Optional[List[uuid.UUID]]:
    """Walk up from ``category_id`` and return the looping path if one exists."""
    visited: set[uuid.UUID] = set()
    path: List[uuid.UUID] = []
    current_id: Optional[uuid.UUID] = category_id

    while current_id is not None:
        if current_id in visited:
            return [*path, current_id]
        visited.add(current_id)
        path.append(current_id)
        found, parent_id = repo.get_parent_id(current_id)
        if not found:
            return None
        current_id = parent_id
    return None


def build_hierarchy_tree(
    categories: Iterable[Category],
    *,
    max_depth: Optional[int] = None,
) -> List[CategoryResponse]:
    """Assemble a flat, pre-ordered category list into nested trees.

    Nodes keep their input order within each children list. A node whose parent
    is absent from the input (root, or parent filtered out) becomes a root.
    """
    if max_depth is not None and max_depth < 1:
        raise ValueError("max_depth must be at least 1")

    ordered = list(categories)
    nodes: Dict[uuid.UUID, CategoryResponse] = {}
    for category in ordered:
        node = CategoryResponse.model_validate(category)
        node.children = []
        nodes[category.id] = node

    roots: List[CategoryResponse] = []
    for category in ordered:
        node = nodes[category.id]
        parent = nodes.get(category.parent_id) if category.parent_id is not None else None
        if parent is not None:
            parent.children.append(node)
        else:
            roots.append(node)

    if max_depth is not None:
        prune_tree(roots, max_depth)

    logger.debug("Built category tree with %d root(s) from %d node(s)", len(roots), len(nodes))
    return roots


def prune_tree(roots: List[CategoryResponse], max_depth: int) -> None:
    """Drop every node deeper than ``max_depth`` (roots are depth 1), in place."""
    queue = deque((root, 1) for root in roots)
    while queue:
        node, depth = queue.popleft()
        if depth >= max_depth:
            node.children = []
            continue
        queue.extend((child, depth + 1) for child in node.children)


def flatten_hierarchy_tree(roots: Iterable[CategoryResponse]) -> List[CategoryResponse]:
    """Return the tree's nodes in pre-order without recursion."""
    flat: List[CategoryResponse] = []
    stack = list(reversed(list(roots)))
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(reversed(node.children))
    return flat


__all__ = [
    "validate_hierarchy",
    "find_ancestor_cycle",
    "build_hierarchy_tree",
    "prune_tree",
    "flatten_hierarchy_tree",
]
