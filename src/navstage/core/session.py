"""Drag session coordinator.

Wires projection, mutation and persistence to the drag lifecycle of one
navigation menu: start, many moves, then drop or cancel.
"""

from __future__ import annotations

import copy
import logging
from collections.abc import Iterable

from navstage.core.mutator import commit_move
from navstage.core.projector import DragMove, DropProjector, Projection
from navstage.core.reconciler import (
    PersistenceReconciler,
    ReorderInProgressError,
    ReorderOutcome,
    TreeState,
)
from navstage.core.tree import NavigationItem, TreeIndex, TreeNode, build_tree

logger = logging.getLogger(__name__)


class NavigationEditor:
    """Drag-and-drop editor over a caller-owned TreeState."""

    def __init__(
        self,
        state: TreeState,
        projector: DropProjector,
        reconciler: PersistenceReconciler,
    ) -> None:
        self._state = state
        self._projector = projector
        self._reconciler = reconciler

    @property
    def state(self) -> TreeState:
        return self._state

    @property
    def tree(self) -> list[TreeNode]:
        return self._state.tree

    @property
    def is_dragging(self) -> bool:
        return self._state.active_id is not None

    @property
    def is_saving(self) -> bool:
        return self._state.pending

    def load(self, items: Iterable[NavigationItem]) -> list[TreeNode]:
        """Rebuild the tree from fresh store data.

        Raises:
            ReorderInProgressError: If a reorder is still being saved
        """
        if self._state.pending:
            raise ReorderInProgressError("Cannot refresh while a reorder is being saved")
        self._state.tree = build_tree(items)
        self._clear_drag()
        return self._state.tree

    def start_drag(self, active_id: int) -> bool:
        """Begin dragging an item and snapshot the tree.

        Returns:
            False when the item is not in the tree

        Raises:
            ReorderInProgressError: If the previous drop is still being saved
        """
        if self._state.pending:
            raise ReorderInProgressError("Wait for the previous reorder to be saved")
        if active_id not in TreeIndex(self._state.tree):
            return False
        self._state.snapshot = copy.deepcopy(self._state.tree)
        self._state.active_id = active_id
        self._state.projection = None
        return True

    def move(self, move: DragMove) -> Projection | None:
        """Recompute the projection for a pointer move of the active item."""
        if self._state.active_id is None or move.active_id != self._state.active_id:
            return None
        self._state.projection = self._projector.project(self._state.tree, move)
        return self._state.projection

    def cancel_drag(self) -> None:
        """Abandon the drag; the tree is left exactly as it was."""
        self._clear_drag()

    async def drop(self) -> ReorderOutcome | None:
        """Commit the current projection and persist the result.

        Returns:
            ReorderOutcome, or None when there was nothing to drop or the
            move was rejected
        """
        active_id = self._state.active_id
        projection = self._state.projection
        snapshot = self._state.snapshot
        self._clear_drag()

        if active_id is None or projection is None or snapshot is None:
            return None

        new_tree = commit_move(self._state.tree, active_id, projection)
        if new_tree is self._state.tree:
            return None

        logger.debug(
            f"Moving item {active_id} under {projection.parent_id} at {projection.index}",
        )
        return await self._reconciler.reconcile(self._state, snapshot, new_tree)

    def _clear_drag(self) -> None:
        self._state.snapshot = None
        self._state.active_id = None
        self._state.projection = None
