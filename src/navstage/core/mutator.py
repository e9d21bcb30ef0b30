"""Tree mutation for committed drops.

Moves a branch to a projected position and renormalizes the whole tree so
that order, parent ids and depths always follow tree position.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import replace

from navstage.core.projector import Projection
from navstage.core.tree import TreeIndex, TreeNode

logger = logging.getLogger(__name__)


def remove_branch(
    tree: list[TreeNode],
    item_id: int,
) -> tuple[list[TreeNode], TreeNode | None]:
    """Remove a node and its subtree from a copy of the tree.

    Args:
        tree: Navigation tree (left untouched)
        item_id: Id of the branch root to remove

    Returns:
        Tuple of the pruned copy and the removed branch (None if not found)
    """
    pruned = copy.deepcopy(tree)
    removed: TreeNode | None = None

    def prune(nodes: list[TreeNode]) -> list[TreeNode]:
        nonlocal removed
        kept: list[TreeNode] = []
        for node in nodes:
            if node.id == item_id and removed is None:
                removed = node
                continue
            node.children = prune(node.children)
            kept.append(node)
        return kept

    return prune(pruned), removed


def set_branch_depth(branch: TreeNode, depth: int) -> None:
    """Recompute depths of a branch rooted at ``depth``."""
    branch.depth = depth
    for child in branch.children:
        set_branch_depth(child, depth + 1)


def insert_branch(
    tree: list[TreeNode],
    branch: TreeNode,
    parent_id: int | None,
    index: int,
) -> list[TreeNode]:
    """Insert a branch in place as a child of ``parent_id`` (root when None).

    The index is clamped to the sibling list.

    Raises:
        KeyError: If ``parent_id`` is not in the tree
    """
    if parent_id is None:
        siblings = tree
    else:
        parent = TreeIndex(tree).get(parent_id)
        if parent is None:
            raise KeyError(parent_id)
        siblings = parent.children
    siblings.insert(max(0, min(index, len(siblings))), branch)
    return tree


def normalize_tree(
    tree: list[TreeNode],
    depth: int = 0,
    parent_id: int | None = None,
) -> list[TreeNode]:
    """Re-derive order, parent id and depth of every node from its position."""
    normalized: list[TreeNode] = []
    for index, node in enumerate(tree):
        item = node.item
        if item.order != index or item.parent_id != parent_id:
            item = replace(item, order=index, parent_id=parent_id)
        normalized.append(
            TreeNode(
                item=item,
                depth=depth,
                children=normalize_tree(node.children, depth + 1, node.id),
            ),
        )
    return normalized


def is_self_nesting(tree: list[TreeNode], active_id: int, parent_id: int | None) -> bool:
    """Whether ``parent_id`` is the active node or one of its descendants."""
    index = TreeIndex(tree)
    current = parent_id
    while current is not None:
        if current == active_id:
            return True
        parent = index.get_parent(current)
        current = parent.id if parent is not None else None
    return False


def commit_move(
    tree: list[TreeNode],
    active_id: int,
    projection: Projection,
) -> list[TreeNode]:
    """Move the active branch to the projected position.

    Invalid moves are not errors: when the active item is unknown, the
    target is inside the active branch, or the target parent no longer
    exists, the input tree is returned as is (the same object).

    Args:
        tree: Current navigation tree (left untouched)
        active_id: Id of the dragged item
        projection: Confirmed drop target

    Returns:
        New, fully renormalized tree, or ``tree`` when the move is rejected
    """
    if is_self_nesting(tree, active_id, projection.parent_id):
        logger.debug(f"Rejected move of {active_id} into its own branch")
        return tree

    pruned, branch = remove_branch(tree, active_id)
    if branch is None:
        logger.debug(f"Rejected move of unknown item {active_id}")
        return tree

    set_branch_depth(branch, projection.depth)
    try:
        insert_branch(pruned, branch, projection.parent_id, projection.index)
    except KeyError:
        logger.warning(
            f"Rejected move of {active_id}: target parent {projection.parent_id} not found",
        )
        return tree

    return normalize_tree(pruned)
