"""Tests for committing moves into the navigation tree."""

import copy

import pytest
from navstage.core.mutator import (
    commit_move,
    insert_branch,
    is_self_nesting,
    normalize_tree,
    remove_branch,
)
from navstage.core.projector import DragMove, DropProjector, Projection
from navstage.core.tree import (
    NavigationItem,
    TreeNode,
    build_tree,
    check_tree,
    flatten_items,
    flatten_tree,
)

A, B, C, D = 1, 2, 3, 4


def _item(item_id: int, parent_id: int | None = None, order: int = 0) -> NavigationItem:
    return NavigationItem(
        id=item_id,
        label=f"Item {item_id}",
        url=f"/item-{item_id}",
        parent_id=parent_id,
        order=order,
    )


def _shape(tree: list[TreeNode]) -> list[tuple[int, int | None, int, int]]:
    """Pre-order (id, parent_id, order, depth) tuples."""
    return [(node.id, node.parent_id, node.order, node.depth) for node in flatten_tree(tree)]


class TestRemoveBranch:
    """Tests for remove_branch()."""

    def test__removes_subtree_from_copy(self) -> None:
        """Return a pruned copy and the removed branch with its children."""
        tree = build_tree([_item(A), _item(B, parent_id=A), _item(C, order=1)])
        before = copy.deepcopy(tree)

        pruned, branch = remove_branch(tree, A)

        assert branch is not None
        assert branch.id == A
        assert [child.id for child in branch.children] == [B]
        assert [node.id for node in pruned] == [C]
        assert tree == before

    def test__unknown_id__returns_no_branch(self) -> None:
        """Return an unchanged copy and None for unknown ids."""
        tree = build_tree([_item(A)])

        pruned, branch = remove_branch(tree, 99)

        assert branch is None
        assert pruned == tree
        assert pruned is not tree


class TestInsertBranch:
    """Tests for insert_branch()."""

    def test__index_past_end__clamped(self) -> None:
        """Append when the index is larger than the sibling count."""
        tree = build_tree([_item(A), _item(B, order=1)])
        branch = TreeNode(item=_item(C))

        insert_branch(tree, branch, None, 10)

        assert [node.id for node in tree] == [A, B, C]

    def test__negative_index__clamped(self) -> None:
        """Prepend when the index is negative."""
        tree = build_tree([_item(A)])

        insert_branch(tree, TreeNode(item=_item(C)), None, -3)

        assert [node.id for node in tree] == [C, A]

    def test__unknown_parent__raises_key_error(self) -> None:
        """Raise KeyError when the target parent is missing."""
        with pytest.raises(KeyError):
            insert_branch(build_tree([_item(A)]), TreeNode(item=_item(C)), 99, 0)


class TestNormalizeTree:
    """Tests for normalize_tree()."""

    def test__rederives_order_parent_and_depth(self) -> None:
        """Every field follows the node's position after normalizing."""
        tree = build_tree([_item(A, order=4), _item(B, parent_id=A, order=9), _item(C, order=7)])
        tree[0].children[0].depth = 5

        normalized = normalize_tree(tree)

        assert _shape(normalized) == [(A, None, 0, 0), (B, A, 0, 1), (C, None, 1, 0)]
        assert check_tree(normalized) == []

    def test__input_not_mutated(self) -> None:
        """Build new nodes instead of changing the input."""
        tree = build_tree([_item(A, order=4)])

        normalize_tree(tree)

        assert tree[0].order == 4


class TestIsSelfNesting:
    """Tests for is_self_nesting()."""

    @pytest.fixture
    def tree(self) -> list[TreeNode]:
        return build_tree([_item(A), _item(B, parent_id=A), _item(C, parent_id=B), _item(D, order=1)])

    def test__target_is_active__true(self, tree: list[TreeNode]) -> None:
        """Nesting an item under itself is self-nesting."""
        assert is_self_nesting(tree, A, A) is True

    def test__target_is_descendant__true(self, tree: list[TreeNode]) -> None:
        """Nesting an item under its grandchild is self-nesting."""
        assert is_self_nesting(tree, A, C) is True

    def test__target_outside_branch__false(self, tree: list[TreeNode]) -> None:
        """Other parents and the root are fine."""
        assert is_self_nesting(tree, A, D) is False
        assert is_self_nesting(tree, C, A) is False
        assert is_self_nesting(tree, A, None) is False


class TestCommitMove:
    """Tests for commit_move()."""

    def test__reorder_roots(self) -> None:
        """Moving A after B renumbers all roots."""
        tree = build_tree([_item(A, order=0), _item(B, order=1), _item(C, order=2)])

        result = commit_move(tree, A, Projection(parent_id=None, index=1, depth=0))

        assert _shape(result) == [(B, None, 0, 0), (A, None, 1, 0), (C, None, 2, 0)]

    def test__indent_under_previous_sibling(self) -> None:
        """Nesting B under A leaves A as the only root."""
        tree = build_tree([_item(A, order=0), _item(B, order=1)])

        result = commit_move(tree, B, Projection(parent_id=A, index=0, depth=1))

        assert _shape(result) == [(A, None, 0, 0), (B, A, 0, 1)]

    def test__outdent_after_parent(self) -> None:
        """Outdenting C out of B makes it B's next sibling under A."""
        tree = build_tree([_item(A), _item(B, parent_id=A), _item(C, parent_id=B)])

        result = commit_move(tree, C, Projection(parent_id=A, index=1, depth=1))

        assert _shape(result) == [(A, None, 0, 0), (B, A, 0, 1), (C, A, 1, 1)]

    def test__branch_moves_with_descendants(self) -> None:
        """Children follow the moved item and get their depth recomputed."""
        tree = build_tree([_item(A, order=0), _item(B, parent_id=A), _item(D, order=1)])

        result = commit_move(tree, A, Projection(parent_id=D, index=0, depth=1))

        assert _shape(result) == [(D, None, 0, 0), (A, D, 0, 1), (B, A, 0, 2)]

    def test__old_siblings_renumbered(self) -> None:
        """Siblings left behind close the gap in their order."""
        tree = build_tree(
            [
                _item(A, order=0),
                _item(B, parent_id=A, order=0),
                _item(C, parent_id=A, order=1),
                _item(D, parent_id=A, order=2),
            ],
        )

        result = commit_move(tree, B, Projection(parent_id=None, index=1, depth=0))

        assert _shape(result) == [
            (A, None, 0, 0),
            (C, A, 0, 1),
            (D, A, 1, 1),
            (B, None, 1, 0),
        ]

    def test__input_tree_not_mutated(self) -> None:
        """Commit leaves the pre-drop tree intact for rollback."""
        tree = build_tree([_item(A, order=0), _item(B, parent_id=A), _item(C, order=1)])
        before = copy.deepcopy(tree)

        commit_move(tree, B, Projection(parent_id=C, index=0, depth=1))

        assert tree == before

    def test__self_nesting__returns_same_tree(self) -> None:
        """Refuse to nest an item inside its own branch."""
        tree = build_tree([_item(A), _item(B, parent_id=A), _item(C, parent_id=B)])

        assert commit_move(tree, A, Projection(parent_id=C, index=0, depth=3)) is tree

    def test__unknown_active__returns_same_tree(self) -> None:
        """Refuse to move an item that is not in the tree."""
        tree = build_tree([_item(A)])

        assert commit_move(tree, 99, Projection(parent_id=None, index=0, depth=0)) is tree

    def test__missing_parent__returns_same_tree(self) -> None:
        """Refuse a target parent that no longer exists."""
        tree = build_tree([_item(A), _item(B, order=1)])

        assert commit_move(tree, A, Projection(parent_id=99, index=0, depth=1)) is tree

    def test__stale_depth__recomputed_from_position(self) -> None:
        """A projection depth that disagrees with the parent is corrected."""
        tree = build_tree([_item(A, order=0), _item(B, order=1)])

        result = commit_move(tree, B, Projection(parent_id=A, index=0, depth=7))

        assert _shape(result) == [(A, None, 0, 0), (B, A, 0, 1)]

    def test__item_metadata_preserved(self) -> None:
        """Labels, urls and menu data survive the move."""
        tree = build_tree(
            [
                NavigationItem(id=A, label="Home", url="/", menu_key="FOOTER", language_code="fr"),
                NavigationItem(id=B, label="About", url="/about", order=1, page_slug="about"),
            ],
        )

        result = commit_move(tree, A, Projection(parent_id=None, index=1, depth=0))
        moved = result[1].item

        assert (moved.label, moved.url, moved.menu_key, moved.language_code) == (
            "Home",
            "/",
            "FOOTER",
            "fr",
        )
        assert result[0].item.page_slug == "about"


class TestMoveSequence:
    """Invariants hold across projected and committed drags."""

    def test__random_walk_keeps_tree_consistent(self) -> None:
        """Every committed move yields a tree with dense orders and true depths."""
        tree = normalize_tree(
            build_tree(
                [
                    _item(i, parent_id=None if i <= 3 else (i - 1) // 2, order=i % 3)
                    for i in range(1, 11)
                ],
            ),
        )
        projector = DropProjector()
        moves = [
            DragMove(active_id=4, over_id=1, delta_y=-40),
            DragMove(active_id=2, over_id=2, delta_x=15),
            DragMove(active_id=9, over_id=9, delta_x=-15),
            DragMove(active_id=7, over_id=None, delta_x=25, delta_y=200),
            DragMove(active_id=1, over_id=3, delta_y=60, before=False),
            DragMove(active_id=10, over_id=1, delta_x=50, delta_y=-80),
        ]

        for move in moves:
            projection = projector.project(tree, move)
            if projection is None:
                continue
            tree = commit_move(tree, move.active_id, projection)

            assert check_tree(tree) == []
            assert sorted(item.id for item in flatten_items(tree)) == list(range(1, 11))
