"""Navigation tree builder.

Builds nested navigation trees from the flat item list kept by the store.
Nodes never reference their parents: parent lookups go through a TreeIndex,
which keeps snapshots a plain structural copy of nested records.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import TypedDict

from navstage.core.types import MENU_LOCATIONS, is_int

logger = logging.getLogger(__name__)


class NavItemDict(TypedDict, total=False):
    """Dictionary representation of a navigation tree node."""

    id: int
    label: str
    url: str
    parent_id: int | None
    order: int
    depth: int
    page_slug: str
    children: list[NavItemDict]


@dataclass(frozen=True)
class NavigationItem:
    """Flat navigation item as stored in the backing store."""

    id: int
    label: str
    url: str
    parent_id: int | None = None
    order: int = 0
    menu_key: str = "HEADER"
    language_code: str = "en"
    page_slug: str | None = None
    translation_group_id: str | None = None
    updated_at: str | None = None

    @classmethod
    def from_dict(cls, data: object) -> NavigationItem:
        """Create an item from its stored dictionary form.

        Args:
            data: Raw item data

        Returns:
            NavigationItem instance

        Raises:
            ValueError: If a field is missing or has the wrong type
        """
        if not isinstance(data, dict):
            raise ValueError("navigation item must be a dictionary")

        item_id = data.get("id")
        if not is_int(item_id):
            raise ValueError("navigation item id must be an integer")

        label = data.get("label", "")
        if not isinstance(label, str):
            raise ValueError(f"navigation item {item_id}: label must be a string")

        url = data.get("url", "")
        if not isinstance(url, str):
            raise ValueError(f"navigation item {item_id}: url must be a string")

        parent_id = data.get("parent_id")
        if parent_id is not None and not is_int(parent_id):
            raise ValueError(f"navigation item {item_id}: parent_id must be an integer or null")

        order = data.get("order", 0)
        if not is_int(order):
            raise ValueError(f"navigation item {item_id}: order must be an integer")

        menu_key = data.get("menu_key", "HEADER")
        if menu_key not in MENU_LOCATIONS:
            raise ValueError(
                f"navigation item {item_id}: menu_key must be one of {', '.join(MENU_LOCATIONS)}",
            )

        language_code = data.get("language_code", "en")
        if not isinstance(language_code, str):
            raise ValueError(f"navigation item {item_id}: language_code must be a string")

        page_slug = data.get("page_slug")
        if page_slug is not None and not isinstance(page_slug, str):
            raise ValueError(f"navigation item {item_id}: page_slug must be a string")

        translation_group_id = data.get("translation_group_id")
        if translation_group_id is not None and not isinstance(translation_group_id, str):
            raise ValueError(f"navigation item {item_id}: translation_group_id must be a string")

        updated_at = data.get("updated_at")
        if updated_at is not None and not isinstance(updated_at, str):
            raise ValueError(f"navigation item {item_id}: updated_at must be a string")

        return cls(
            id=item_id,
            label=label,
            url=url,
            parent_id=parent_id,
            order=order,
            menu_key=menu_key,
            language_code=language_code,
            page_slug=page_slug,
            translation_group_id=translation_group_id,
            updated_at=updated_at,
        )

    def to_dict(self) -> dict[str, object]:
        """Convert to dictionary for JSON serialization."""
        return {
            "id": self.id,
            "label": self.label,
            "url": self.url,
            "parent_id": self.parent_id,
            "order": self.order,
            "menu_key": self.menu_key,
            "language_code": self.language_code,
            "page_slug": self.page_slug,
            "translation_group_id": self.translation_group_id,
            "updated_at": self.updated_at,
        }


@dataclass
class TreeNode:
    """Navigation item placed in the tree, with its depth and children."""

    item: NavigationItem
    depth: int = 0
    children: list[TreeNode] = field(default_factory=list)

    @property
    def id(self) -> int:
        return self.item.id

    @property
    def parent_id(self) -> int | None:
        return self.item.parent_id

    @property
    def order(self) -> int:
        return self.item.order

    @property
    def label(self) -> str:
        return self.item.label

    def to_dict(self) -> NavItemDict:
        """Convert to dictionary for JSON serialization."""
        result: NavItemDict = {
            "id": self.item.id,
            "label": self.item.label,
            "url": self.item.url,
            "parent_id": self.item.parent_id,
            "order": self.item.order,
            "depth": self.depth,
        }
        if self.item.page_slug:
            result["page_slug"] = self.item.page_slug
        if self.children:
            result["children"] = [child.to_dict() for child in self.children]
        return result


@dataclass
class FoundNode:
    """Result of a deep node lookup."""

    node: TreeNode
    parent: TreeNode | None
    siblings: list[TreeNode]
    index: int


def build_tree(items: Iterable[NavigationItem]) -> list[TreeNode]:
    """Build a navigation tree from a flat item list.

    Siblings (and roots) are ordered by their ``order`` value; ties keep
    input order. Items pointing at a parent that is not in the input are
    placed at the root instead of being dropped. Items that can only be
    reached through a parent cycle are recovered as roots as well.

    Args:
        items: Flat navigation items of one menu

    Returns:
        Root nodes with children nested recursively
    """
    items = list(items)
    known_ids = {item.id for item in items}

    by_parent: dict[int | None, list[NavigationItem]] = defaultdict(list)
    for item in items:
        if item.parent_id is not None and item.parent_id not in known_ids:
            logger.warning(
                f"Item {item.id} references missing parent {item.parent_id}, placing it at root",
            )
            item = replace(item, parent_id=None)
        by_parent[item.parent_id].append(item)

    for siblings in by_parent.values():
        siblings.sort(key=lambda sibling: sibling.order)

    visited: set[int] = set()
    roots = [
        _build_node(item, 0, by_parent, visited)
        for item in by_parent.get(None, [])
        if item.id not in visited
    ]

    stranded = [item for item in items if item.id not in visited]
    while stranded:
        # Break the cycle at its first member by order
        candidate = min(stranded, key=lambda item: item.order)
        logger.warning(f"Item {candidate.id} is part of a parent cycle, placing it at root")
        roots.append(_build_node(replace(candidate, parent_id=None), 0, by_parent, visited))
        stranded = [item for item in stranded if item.id not in visited]

    return roots


def _build_node(
    item: NavigationItem,
    depth: int,
    by_parent: dict[int | None, list[NavigationItem]],
    visited: set[int],
) -> TreeNode:
    """Recursively build TreeNode from item."""
    visited.add(item.id)
    children = [
        _build_node(child, depth + 1, by_parent, visited)
        for child in by_parent.get(item.id, [])
        if child.id not in visited
    ]
    return TreeNode(item=item, depth=depth, children=children)


def flatten_tree(tree: list[TreeNode]) -> list[TreeNode]:
    """Return all nodes in pre-order (node, its children, then siblings)."""
    result: list[TreeNode] = []
    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        result.append(node)
        stack.extend(reversed(node.children))
    return result


def flatten_items(tree: list[TreeNode]) -> list[NavigationItem]:
    """Return the items of a tree in pre-order."""
    return [node.item for node in flatten_tree(tree)]


def tree_to_dicts(tree: list[TreeNode]) -> list[NavItemDict]:
    return [node.to_dict() for node in tree]


def find_node(
    tree: list[TreeNode],
    item_id: int,
    parent: TreeNode | None = None,
) -> FoundNode | None:
    """Find a node anywhere in the tree.

    Args:
        tree: Sibling list to search (roots at the top level)
        item_id: Id of the node to find
        parent: Owner of ``tree``, None for roots

    Returns:
        FoundNode with the node, its parent and sibling list, or None
    """
    for index, node in enumerate(tree):
        if node.id == item_id:
            return FoundNode(node=node, parent=parent, siblings=tree, index=index)
        if node.children:
            found = find_node(node.children, item_id, node)
            if found is not None:
                return found
    return None


class TreeIndex:
    """Read-only id index over one navigation tree.

    Resolves parents, sibling positions and pre-order neighbours in O(1)
    after an O(n) build. The index is only valid for the tree it was built
    from; rebuild it after any structural change.
    """

    __slots__ = ("_flat", "_flat_positions", "_nodes", "_parents", "_positions", "_roots")

    def __init__(self, tree: list[TreeNode]) -> None:
        self._roots = tree
        self._flat = flatten_tree(tree)
        self._nodes: dict[int, TreeNode] = {}
        self._parents: dict[int, int | None] = {}
        self._positions: dict[int, int] = {}
        self._flat_positions: dict[int, int] = {}

        for position, node in enumerate(tree):
            self._parents[node.id] = None
            self._positions[node.id] = position
        for flat_position, node in enumerate(self._flat):
            self._nodes[node.id] = node
            self._flat_positions[node.id] = flat_position
            for position, child in enumerate(node.children):
                self._parents[child.id] = node.id
                self._positions[child.id] = position

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._nodes

    def __len__(self) -> int:
        return len(self._flat)

    @property
    def roots(self) -> list[TreeNode]:
        return self._roots

    @property
    def flat(self) -> list[TreeNode]:
        """Nodes in pre-order."""
        return self._flat

    def get(self, item_id: int) -> TreeNode | None:
        return self._nodes.get(item_id)

    def get_parent(self, item_id: int) -> TreeNode | None:
        """Get the parent node, None for roots and unknown ids."""
        parent_id = self._parents.get(item_id)
        if parent_id is None:
            return None
        return self._nodes[parent_id]

    def get_siblings(self, item_id: int) -> list[TreeNode]:
        """Get the sibling list that contains the node (itself included)."""
        parent = self.get_parent(item_id)
        return parent.children if parent is not None else self._roots

    def get_position(self, item_id: int) -> int:
        """Get the zero-based index of the node among its siblings."""
        return self._positions[item_id]

    def get_previous(self, item_id: int) -> TreeNode | None:
        """Get the node immediately before this one in pre-order."""
        flat_position = self._flat_positions.get(item_id)
        if not flat_position:
            return None
        return self._flat[flat_position - 1]

    def get_ancestors(self, item_id: int) -> list[TreeNode]:
        """Get ancestors of a node, nearest first."""
        ancestors: list[TreeNode] = []
        current = self.get_parent(item_id)
        while current is not None:
            ancestors.append(current)
            current = self.get_parent(current.id)
        return ancestors

    def branch_ids(self, item_id: int) -> set[int]:
        """Get ids of the node and all of its descendants."""
        node = self._nodes.get(item_id)
        if node is None:
            return set()
        return {descendant.id for descendant in flatten_tree([node])}


def check_tree(tree: list[TreeNode]) -> list[str]:
    """Report structural invariant violations.

    Checks that ids are unique, that every depth and parent id matches the
    node's position, and that sibling orders are a dense 0-based sequence.

    Returns:
        Human-readable problems, empty when the tree is consistent
    """
    problems: list[str] = []
    seen: set[int] = set()

    def visit(nodes: list[TreeNode], parent_id: int | None, depth: int) -> None:
        for index, node in enumerate(nodes):
            if node.id in seen:
                problems.append(f"Item {node.id} appears more than once")
                continue
            seen.add(node.id)
            if node.depth != depth:
                problems.append(f"Item {node.id} has depth {node.depth}, expected {depth}")
            if node.parent_id != parent_id:
                problems.append(
                    f"Item {node.id} has parent_id {node.parent_id}, expected {parent_id}",
                )
            if node.order != index:
                problems.append(f"Item {node.id} has order {node.order}, expected {index}")
            visit(node.children, node.id, depth + 1)

    visit(tree, None, 0)
    return problems
