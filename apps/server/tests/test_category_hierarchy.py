"""Tests for hierarchy validation and tree assembly."""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Dict, Iterable, Optional, Tuple

import pytest
from sqlalchemy.orm import Session

from app.models.category import Category
from app.repositories.category import CategoryRepository
from app.services.category_hierarchy import (
    build_hierarchy_tree,
    find_ancestor_cycle,
    flatten_hierarchy_tree,
    validate_hierarchy,
)


class FakeParentStore:
    """Parent-pointer table that may hold corrupted (cyclic) data."""

    def __init__(
        self,
        parents: Dict[uuid.UUID, Optional[uuid.UUID]],
        inactive: Iterable[uuid.UUID] = (),
    ) -> None:
        self.parents = parents
        self.inactive = set(inactive)
        self.lookups = 0

    def get_parent_id(self, category_id: uuid.UUID) -> Tuple[bool, Optional[uuid.UUID]]:
        self.lookups += 1
        if category_id not in self.parents:
            return False, None
        return True, self.parents[category_id]

    def is_active(self, category_id: uuid.UUID) -> Optional[bool]:
        if category_id not in self.parents:
            return None
        return category_id not in self.inactive


def _category(parent: Optional[Category] = None, display_order: int = 0) -> Category:
    now = datetime.now(timezone.utc)
    category_id = uuid.uuid4()
    return Category(
        id=category_id,
        slug=f"cat-{category_id.hex[:8]}",
        parent_id=parent.id if parent is not None else None,
        display_order=display_order,
        active=True,
        created_at=now,
        updated_at=now,
    )


def _ids(nodes) -> list:
    return [node.id for node in nodes]


def test_no_parent_is_always_valid() -> None:
    result = validate_hierarchy(FakeParentStore({}), None, uuid.uuid4())

    assert result.is_valid is True
    assert result.error is None


def test_self_parent_is_rejected_with_single_node_path() -> None:
    node = uuid.uuid4()
    result = validate_hierarchy(FakeParentStore({node: None}), node, node)

    assert result.is_valid is False
    assert result.error == "Category cannot be its own parent"
    assert result.cycle_path == [node]


def test_unknown_parent_is_rejected() -> None:
    missing = uuid.uuid4()
    result = validate_hierarchy(FakeParentStore({}), missing, None)

    assert result.is_valid is False
    assert str(missing) in result.error
    assert "not found" in result.error


def test_inactive_parent_is_rejected() -> None:
    parent = uuid.uuid4()
    store = FakeParentStore({parent: None}, inactive=[parent])

    result = validate_hierarchy(store, parent, None)

    assert result.is_valid is False
    assert "inactive" in result.error


def test_moving_under_descendant_reports_walked_path() -> None:
    a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    store = FakeParentStore({a: None, b: a, c: b})

    result = validate_hierarchy(store, c, a)

    assert result.is_valid is False
    assert result.error == "Category cannot be a descendant of itself"
    assert result.cycle_path == [c, b, a]


def test_preexisting_cycle_terminates_and_is_reported() -> None:
    x, y = uuid.uuid4(), uuid.uuid4()
    store = FakeParentStore({x: y, y: x})

    result = validate_hierarchy(store, x, uuid.uuid4())

    assert result.is_valid is False
    assert result.error == "Circular reference detected in category hierarchy"
    assert result.cycle_path == [x, y, x]
    assert store.lookups == 2


def test_missing_ancestor_is_not_treated_as_root() -> None:
    parent, dangling = uuid.uuid4(), uuid.uuid4()
    store = FakeParentStore({parent: dangling})

    result = validate_hierarchy(store, parent, None)

    assert result.is_valid is False
    assert str(dangling) in result.error


def test_valid_chain_walks_to_root() -> None:
    root, mid, leaf = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
    store = FakeParentStore({root: None, mid: root, leaf: mid})

    result = validate_hierarchy(store, leaf, uuid.uuid4())

    assert result.is_valid is True
    assert store.lookups == 3


def test_find_ancestor_cycle_detects_loop() -> None:
    x, y, z = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

    assert find_ancestor_cycle(FakeParentStore({x: y, y: z, z: y}), x) == [x, y, z, y]
    assert find_ancestor_cycle(FakeParentStore({x: y, y: None}), x) is None


def test_validator_against_database(db_session: Session, make_category) -> None:
    root = make_category("root")
    child = make_category("child", parent=root)
    repo = CategoryRepository(db_session)

    assert validate_hierarchy(repo, child.id, None).is_valid is True
    invalid = validate_hierarchy(repo, child.id, root.id)
    assert invalid.is_valid is False
    assert invalid.cycle_path == [child.id, root.id]


def test_build_tree_keeps_input_order_and_links_children() -> None:
    root_a = _category(display_order=0)
    root_b = _category(display_order=1)
    child_1 = _category(parent=root_a, display_order=0)
    child_2 = _category(parent=root_a, display_order=1)
    grandchild = _category(parent=child_1)

    roots = build_hierarchy_tree([root_a, root_b, child_1, child_2, grandchild])

    assert _ids(roots) == [root_a.id, root_b.id]
    assert _ids(roots[0].children) == [child_1.id, child_2.id]
    assert _ids(roots[0].children[0].children) == [grandchild.id]
    assert roots[1].children == []


def test_build_tree_promotes_orphans_to_roots() -> None:
    hidden_parent = _category()
    orphan = _category(parent=hidden_parent)

    roots = build_hierarchy_tree([orphan])

    assert _ids(roots) == [orphan.id]


def test_build_tree_prunes_below_max_depth() -> None:
    root = _category()
    child = _category(parent=root)
    grandchild = _category(parent=child)

    roots = build_hierarchy_tree([root, child, grandchild], max_depth=2)

    assert _ids(roots[0].children) == [child.id]
    assert roots[0].children[0].children == []

    assert build_hierarchy_tree([root, child], max_depth=1)[0].children == []


def test_build_tree_rejects_non_positive_depth() -> None:
    with pytest.raises(ValueError):
        build_hierarchy_tree([], max_depth=0)


def test_build_tree_empty_input() -> None:
    assert build_hierarchy_tree([]) == []


def test_flatten_returns_preorder() -> None:
    root = _category()
    child = _category(parent=root)
    grandchild = _category(parent=child)
    sibling = _category(parent=root, display_order=1)

    roots = build_hierarchy_tree([root, child, sibling, grandchild])

    assert _ids(flatten_hierarchy_tree(roots)) == [root.id, child.id, grandchild.id, sibling.id]
