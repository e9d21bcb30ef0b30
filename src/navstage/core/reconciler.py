"""Persistence of reordered navigation trees.

Applies a committed tree optimistically, submits every item position to
the backing store, and restores the pre-drag snapshot when the store
reports a failure. A store that is too slow to answer is never rolled back
blindly: its result is applied when it finally arrives.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field

from navstage.core.projector import Projection
from navstage.core.tree import TreeNode
from navstage.core.types import ItemUpdate

logger = logging.getLogger(__name__)


class ReorderInProgressError(RuntimeError):
    """A reorder of the same tree is still waiting for the store."""


@dataclass(frozen=True)
class PersistResult:
    """Outcome reported by the backing store for one batch."""

    success: bool
    error: str | None = None
    failed_ids: frozenset[int] = frozenset()

    @classmethod
    def ok(cls) -> PersistResult:
        return cls(success=True)

    @classmethod
    def failed(cls, error: str, failed_ids: frozenset[int] = frozenset()) -> PersistResult:
        return cls(success=False, error=error, failed_ids=failed_ids)

    @classmethod
    def coerce(cls, result: object) -> PersistResult:
        """Accept a PersistResult or a ``{"success": true} | {"error": ...}`` mapping.

        Anything else is treated as a failure.
        """
        if isinstance(result, PersistResult):
            return result
        if isinstance(result, Mapping):
            error = result.get("error")
            if error:
                failed_ids = frozenset(result.get("failed_ids") or ())
                return cls.failed(str(error), failed_ids)
            if result.get("success") is True:
                return cls.ok()
        return cls.failed(f"Unexpected persistence result: {result!r}")


PersistFn = Callable[[list[ItemUpdate]], Awaitable[PersistResult | Mapping[str, object]]]


@dataclass
class TreeState:
    """Caller-owned editing state of one navigation menu.

    ``tree`` is what is displayed. ``snapshot`` is the deep copy taken at
    drag start, ``pending`` is set while a persistence call is in flight.
    """

    tree: list[TreeNode] = field(default_factory=list)
    snapshot: list[TreeNode] | None = None
    active_id: int | None = None
    projection: Projection | None = None
    pending: bool = False


@dataclass(frozen=True)
class ReorderOutcome:
    """Result of reconciling a committed tree with the store."""

    tree: list[TreeNode]
    persisted: bool
    rolled_back: bool = False
    error: str | None = None
    failed_ids: frozenset[int] = frozenset()
    unconfirmed: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None


def tree_to_updates(tree: list[TreeNode]) -> list[ItemUpdate]:
    """Flatten a tree in pre-order into store updates."""
    updates: list[ItemUpdate] = []
    stack = list(reversed(tree))
    while stack:
        node = stack.pop()
        updates.append({"id": node.id, "order": node.order, "parent_id": node.parent_id})
        stack.extend(reversed(node.children))
    return updates


class PersistenceReconciler:
    """Submits committed trees to the store and rolls back on failure."""

    def __init__(self, persist: PersistFn, *, timeout: float | None = 10.0) -> None:
        """Initialize the reconciler.

        Args:
            persist: Batch update collaborator of the backing store
            timeout: Seconds to wait for the store, None to wait forever
        """
        self._persist = persist
        self._timeout = timeout
        self._in_flight: set[asyncio.Task[PersistResult]] = set()

    async def reconcile(
        self,
        state: TreeState,
        old_tree: list[TreeNode],
        new_tree: list[TreeNode],
    ) -> ReorderOutcome:
        """Display ``new_tree`` now and persist it, restoring ``old_tree`` on failure.

        Every item position is resubmitted, not a diff. The store does not
        guarantee all-or-nothing semantics, so after a failure the rollback
        may differ from the store until the next refresh; ``failed_ids``
        tells the caller which items the store reported as not saved.

        When the store does not answer within the timeout the call returns
        an ``unconfirmed`` outcome with ``new_tree`` still displayed. The
        store call keeps running and ``state.pending`` stays set until it
        answers; a late failure then restores ``old_tree``.

        Args:
            state: Editing state to update
            old_tree: Pre-drag snapshot
            new_tree: Committed, renormalized tree

        Returns:
            ReorderOutcome describing the displayed tree after the call

        Raises:
            ReorderInProgressError: If another persistence call is pending
        """
        if state.pending:
            raise ReorderInProgressError("A reorder is already being saved")

        updates = tree_to_updates(new_tree)
        state.tree = new_tree
        if updates == tree_to_updates(old_tree):
            logger.debug("Tree positions unchanged, skipping persistence")
            return ReorderOutcome(tree=new_tree, persisted=False)

        state.pending = True
        task = asyncio.create_task(self._call_store(updates))
        self._in_flight.add(task)
        task.add_done_callback(self._in_flight.discard)
        settle = functools.partial(self._settle_late, state, old_tree, new_tree, len(updates))

        try:
            async with asyncio.timeout(self._timeout):
                result = await asyncio.shield(task)
        except TimeoutError:
            # The store keeps writing; pending stays set until it answers.
            task.add_done_callback(settle)
            error = f"Saving timed out after {self._timeout} seconds"
            logger.warning(f"{error}, waiting for the store in the background")
            return ReorderOutcome(tree=new_tree, persisted=False, error=error, unconfirmed=True)
        except asyncio.CancelledError:
            task.add_done_callback(settle)
            raise

        state.pending = False
        return self._apply(state, old_tree, new_tree, result, len(updates))

    def _apply(
        self,
        state: TreeState,
        old_tree: list[TreeNode],
        new_tree: list[TreeNode],
        result: PersistResult,
        count: int,
    ) -> ReorderOutcome:
        if result.success:
            logger.info(f"Saved positions of {count} navigation items")
            return ReorderOutcome(tree=new_tree, persisted=True)

        logger.error(f"Failed to save navigation structure: {result.error}")
        # Leave trees loaded after the drop alone.
        if state.tree is new_tree:
            state.tree = old_tree
        return ReorderOutcome(
            tree=old_tree,
            persisted=False,
            rolled_back=True,
            error=result.error,
            failed_ids=result.failed_ids,
        )

    def _settle_late(
        self,
        state: TreeState,
        old_tree: list[TreeNode],
        new_tree: list[TreeNode],
        count: int,
        task: asyncio.Task[PersistResult],
    ) -> None:
        """Apply the answer of a store call the caller stopped waiting for."""
        state.pending = False
        if task.cancelled():
            logger.warning(
                "Saving was cancelled, stored positions are unknown until the next refresh",
            )
            return
        self._apply(state, old_tree, new_tree, task.result(), count)

    async def _call_store(self, updates: list[ItemUpdate]) -> PersistResult:
        """Call the store, turning exceptions into failures."""
        try:
            return PersistResult.coerce(await self._persist(updates))
        except Exception as e:
            logger.exception("Exception during navigation update")
            return PersistResult.failed(f"Failed to save navigation structure: {e}")
