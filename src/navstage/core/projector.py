"""Drop position projection for navigation drag and drop.

Computes where a dragged item would land if it were dropped now. The
projector is a pure function of the live tree and the drag state; it is
called on every pointer move, so each call builds one TreeIndex and does
no sorting.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

from navstage.core.tree import TreeIndex, TreeNode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RowRect:
    """Vertical bounds of the row under the pointer."""

    top: float
    height: float

    @property
    def midpoint(self) -> float:
        return self.top + self.height / 2


@dataclass(frozen=True)
class DragMove:
    """Drag state at one pointer move.

    Deltas are measured from the drag start; positive x is rightwards.
    ``pointer_y`` and ``over_rect`` are optional geometry used to decide
    whether the pointer is in the upper or lower half of the hovered row;
    ``before`` states it directly when there is no geometry (keyboard moves).
    """

    active_id: int
    over_id: int | None = None
    delta_x: float = 0.0
    delta_y: float = 0.0
    pointer_y: float | None = None
    over_rect: RowRect | None = None
    before: bool | None = None

    @property
    def drops_before_over(self) -> bool:
        """Whether the pointer is in the upper half of the hovered row."""
        if self.before is not None:
            return self.before
        if self.pointer_y is None or self.over_rect is None:
            return False
        return self.pointer_y < self.over_rect.midpoint


@dataclass(frozen=True)
class Projection:
    """Tentative drop target.

    ``index`` is the insertion position among the children of
    ``parent_id`` (roots when None) once the dragged branch has been
    removed from its current place.
    """

    parent_id: int | None
    index: int
    depth: int

    def to_dict(self) -> dict[str, int | None]:
        """Convert to dictionary for JSON serialization."""
        return {"parent_id": self.parent_id, "index": self.index, "depth": self.depth}


@dataclass(frozen=True)
class ProjectorSettings:
    """Tuning for drag depth and horizontal gesture detection."""

    indent_width: int = 25
    gesture_threshold_ratio: float = 0.4
    gesture_max_y_drift: float = 12

    @property
    def gesture_threshold(self) -> float:
        """Horizontal distance that makes a flat drag an indent/outdent."""
        return self.indent_width * self.gesture_threshold_ratio


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


class DropProjector:
    """Projects drop targets for a dragged navigation item."""

    def __init__(self, settings: ProjectorSettings | None = None) -> None:
        self._settings = settings or ProjectorSettings()

    @property
    def settings(self) -> ProjectorSettings:
        return self._settings

    def drag_depth(self, delta_x: float, initial_depth: int) -> int:
        """Depth reached by dragging horizontally from ``initial_depth``."""
        return max(0, initial_depth + _round_half_up(delta_x / self._settings.indent_width))

    def project(self, tree: list[TreeNode], move: DragMove) -> Projection | None:
        """Project the drop target for the current drag state.

        Args:
            tree: Current navigation tree
            move: Drag state at this pointer move

        Returns:
            Projection, or None when there is no valid target (unknown
            active item, or hovering over the dragged branch itself)
        """
        index = TreeIndex(tree)
        active = index.get(move.active_id)
        if active is None:
            return None

        branch_ids = index.branch_ids(active.id)
        over = index.get(move.over_id) if move.over_id is not None else None
        if over is not None and over.id != active.id and over.id in branch_ids:
            logger.debug(f"Item {move.over_id} is inside dragged branch {active.id}, no target")
            return None

        depth = self.drag_depth(move.delta_x, active.depth)
        if self._is_horizontal_gesture(move):
            if move.delta_x > 0:
                depth = active.depth + 1
                previous = index.get_previous(active.id)
                if (
                    previous is not None
                    and previous.depth == active.depth
                    and previous.id not in branch_ids
                ):
                    return Projection(
                        parent_id=previous.id,
                        index=len(previous.children),
                        depth=depth,
                    )
            else:
                parent = index.get_parent(active.id)
                if parent is not None:
                    grandparent = index.get_parent(parent.id)
                    return Projection(
                        parent_id=grandparent.id if grandparent is not None else None,
                        index=index.get_position(parent.id) + 1,
                        depth=max(0, active.depth - 1),
                    )
                depth = 0

        if over is not None and over.id == active.id:
            # Over its own row only an indent/outdent with a target moves it
            return None

        if over is None:
            if move.over_id is not None and move.over_id != active.id:
                logger.debug(f"Unknown hovered item {move.over_id}, treating as empty space")
            return self._project_into_empty_space(index, active, branch_ids, depth)
        return self._project_over(index, active, over, depth, move.drops_before_over)

    def _is_horizontal_gesture(self, move: DragMove) -> bool:
        """Whether the drag is a short, mostly horizontal indent/outdent."""
        return (
            abs(move.delta_y) < self._settings.gesture_max_y_drift
            and abs(move.delta_x) > self._settings.gesture_threshold
        )

    def _project_into_empty_space(
        self,
        index: TreeIndex,
        active: TreeNode,
        branch_ids: set[int],
        depth: int,
    ) -> Projection:
        """Place the item below the list, nesting under the last fitting node."""
        if depth > 0:
            parent: TreeNode | None = None
            for node in index.flat:
                if node.depth == depth - 1 and node.id not in branch_ids:
                    parent = node
            if parent is not None:
                return Projection(
                    parent_id=parent.id,
                    index=_count_without(parent.children, active.id),
                    depth=depth,
                )
        return Projection(
            parent_id=None,
            index=_count_without(index.roots, active.id),
            depth=0,
        )

    def _project_over(
        self,
        index: TreeIndex,
        active: TreeNode,
        over: TreeNode,
        depth: int,
        drops_before: bool,
    ) -> Projection:
        """Place the item relative to the hovered row."""
        depth = max(0, min(depth, over.depth + 1))

        if depth > over.depth:
            return Projection(
                parent_id=over.id,
                index=_count_without(over.children, active.id),
                depth=depth,
            )

        if depth == over.depth:
            parent = index.get_parent(over.id)
            siblings = _without(index.get_siblings(over.id), active.id)
            position = _position_of(siblings, over.id)
            target = position if drops_before else position + 1
            return Projection(
                parent_id=parent.id if parent is not None else None,
                index=_clamp(target, len(siblings)),
                depth=depth,
            )

        # Shallower than the hovered row: insert after the branch the
        # pointer is in, at the target depth
        reference = over
        for ancestor in index.get_ancestors(over.id):
            if reference.depth <= depth:
                break
            reference = ancestor
        parent = index.get_parent(reference.id)
        siblings = _without(index.get_siblings(reference.id), active.id)
        target = _position_of(siblings, reference.id) + 1
        return Projection(
            parent_id=parent.id if parent is not None else None,
            index=_clamp(target, len(siblings)),
            depth=reference.depth,
        )


def _without(nodes: list[TreeNode], item_id: int) -> list[TreeNode]:
    return [node for node in nodes if node.id != item_id]


def _count_without(nodes: list[TreeNode], item_id: int) -> int:
    return sum(1 for node in nodes if node.id != item_id)


def _position_of(nodes: list[TreeNode], item_id: int) -> int:
    for position, node in enumerate(nodes):
        if node.id == item_id:
            return position
    return len(nodes)


def _clamp(index: int, sibling_count: int) -> int:
    return max(0, min(index, sibling_count))
