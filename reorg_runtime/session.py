"""
Reorganization Session — orchestrates kernel + directory store.

Modes:
  VIEW     default; the tree is read-only.
  EDITING  entered by enable_editing(); drag gestures may re-parent nodes.

Drag protocol (EDITING only):
  1. on_drag_start(node_id)   — records the dragged node (never the root)
  2. on_drag_move(pointer)    — pure hit-test, updates drop_candidate_id
  3. on_drag_end(pointer)     — same hit-test; a valid drop propagates
                                attributes, re-parents, pushes the inverse
                                action onto the undo stack, clears redo

Leaving EDITING:
  cancel()  — replays the undo stack newest-first; no store writes
  commit()  — hands the undo stack to the CommitManager

Invalid gestures never raise: they return a GestureResult with
accepted=False and a reason, and leave the tree untouched.

The session object is passed to whatever layer drives the gestures; it
is never published as a module-level singleton.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Mapping, Optional, Sequence, Tuple

from reorg_kernel.constants import (
    DEFAULT_TOP_EXECUTIVE_TITLES,
    REASON_ACCEPTED,
    REASON_NO_DRAG,
    REASON_NO_TARGET,
    REASON_NOT_EDITING,
    REASON_ROOT_NOT_DRAGGABLE,
    REASON_UNKNOWN_NODE,
)
from reorg_kernel.diagnostics import compute_diagnostics
from reorg_kernel.domain_types import BuildDiagnostic, MoveAction, OrgTree, Position
from reorg_kernel.hierarchy import build_hierarchy
from reorg_kernel.hit_test import DragPointer, NodeBox, find_drop_candidate
from reorg_kernel.moves import apply_move, check_move, restore
from reorg_kernel.roles import classify_all, classify_role

from .commit import CommitManager, CommitResult
from .directory_store import DirectoryStore

if TYPE_CHECKING:
    from .observability import SessionMetrics

logger = logging.getLogger(__name__)

VIEW: str = "view"
EDITING: str = "editing"


class SessionStateError(Exception):
    """Raised when an operation is not allowed in the current mode."""

    def __init__(self, operation: str, mode: str) -> None:
        self.operation = operation
        self.mode = mode
        super().__init__(f"{operation} is not allowed while the session is in {mode!r} mode")


@dataclass(frozen=True)
class GestureResult:
    """Structured, immutable outcome of a gesture or history step."""

    event_type: str = ""
    accepted: bool = False
    reason: str = ""
    node_id: str = ""
    target_id: str = ""
    origin: Optional[NodeBox] = None
    action: Optional[MoveAction] = None

    def to_dict(self) -> dict:
        return {
            "event_type": self.event_type,
            "accepted": self.accepted,
            "reason": self.reason,
            "node_id": self.node_id,
            "target_id": self.target_id,
            "origin": self.origin.to_dict() if self.origin else None,
            "action": self.action.to_dict() if self.action else None,
        }


class ReorganizationSession:
    """
    Interactive reorganization of one directory by a single operator.

    The in-memory tree is owned by the session. It is rebuilt from the
    store by load() and only written back through commit().
    """

    def __init__(
        self,
        store: DirectoryStore,
        commit_manager: Optional[CommitManager] = None,
        top_executive_titles: Sequence[str] = DEFAULT_TOP_EXECUTIVE_TITLES,
    ) -> None:
        self._store = store
        self._commit_manager = commit_manager or CommitManager(store)
        self._top_executive_titles = tuple(top_executive_titles)

        self._tree = OrgTree()
        self._build_diagnostics: List[BuildDiagnostic] = []
        self._mode: str = VIEW
        self._layout: Dict[str, NodeBox] = {}

        self._dragged_node_id: Optional[str] = None
        self._drag_origin: Optional[NodeBox] = None
        self._drop_candidate_id: Optional[str] = None

        self._undo_stack: List[MoveAction] = []
        self._redo_stack: List[MoveAction] = []
        self._unpersisted: List[MoveAction] = []

        self._accepted_moves: int = 0
        self._ignored_gestures: int = 0
        self._last_commit: Optional[CommitResult] = None

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    async def load(self) -> OrgTree:
        """
        Read the full directory and rebuild the tree.

        Not allowed while editing: the store is read once per session.
        """
        if self._mode == EDITING:
            raise SessionStateError("load", self._mode)
        positions = await self._store.list_all()
        self._rebuild(positions)
        return self._tree

    def _rebuild(self, positions: List[Position]) -> None:
        result = build_hierarchy(positions, self._top_executive_titles)
        self._tree = result.tree
        self._build_diagnostics = result.diagnostics
        self._commit_manager.record_snapshot(positions)
        self._unpersisted = []
        logger.info(
            "session: hierarchy rebuilt with %d position(s), %d correction(s)",
            len(self._tree), len(self._build_diagnostics),
        )

    # ------------------------------------------------------------------
    # Mode
    # ------------------------------------------------------------------

    def enable_editing(self) -> None:
        if self._mode == EDITING:
            return
        self._mode = EDITING
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._clear_drag()
        logger.info("session: editing enabled")

    def disable_editing(self) -> None:
        """Leave EDITING without persisting (same as cancel)."""
        self.cancel()

    def update_layout(self, boxes: Mapping[str, NodeBox]) -> None:
        """Replace the on-screen bounding boxes used for hit-testing."""
        self._layout = dict(boxes)

    # ------------------------------------------------------------------
    # Drag protocol
    # ------------------------------------------------------------------

    def on_drag_start(self, node_id: str) -> GestureResult:
        if self._mode != EDITING:
            return self._ignore("drag_start", REASON_NOT_EDITING, node_id)
        if node_id not in self._tree:
            return self._ignore("drag_start", REASON_UNKNOWN_NODE, node_id)
        if self._tree.parent_of(node_id) == "":
            return self._ignore("drag_start", REASON_ROOT_NOT_DRAGGABLE, node_id)

        self._dragged_node_id = node_id
        self._drag_origin = self._layout.get(node_id)
        self._drop_candidate_id = None
        return GestureResult(
            event_type="drag_start",
            accepted=True,
            reason=REASON_ACCEPTED,
            node_id=node_id,
            origin=self._drag_origin,
        )

    def on_drag_move(self, pointer: DragPointer) -> GestureResult:
        if self._mode != EDITING or self._dragged_node_id is None:
            return GestureResult(event_type="drag_move", reason=REASON_NO_DRAG)

        candidate = find_drop_candidate(
            self._layout, self._dragged_node_id, pointer, self._tree.positions,
        )
        self._drop_candidate_id = candidate
        return GestureResult(
            event_type="drag_move",
            accepted=candidate is not None,
            reason=REASON_ACCEPTED if candidate else REASON_NO_TARGET,
            node_id=self._dragged_node_id,
            target_id=candidate or "",
        )

    def on_drag_end(self, pointer: DragPointer) -> GestureResult:
        """
        Resolve the drop:
          1. hit-test the pointer (same test as on_drag_move)
          2. no target / current parent / self / descendant -> no-op
          3. otherwise propagate attributes, re-parent, push the inverse
             onto the undo stack and clear the redo stack
        """
        if self._mode != EDITING:
            return self._ignore("drag_end", REASON_NOT_EDITING)
        if self._dragged_node_id is None:
            return self._ignore("drag_end", REASON_NO_DRAG)

        node_id = self._dragged_node_id
        origin = self._drag_origin
        self._clear_drag()

        target_id = find_drop_candidate(self._layout, node_id, pointer, self._tree.positions)
        reason = check_move(self._tree, node_id, target_id)
        if reason != REASON_ACCEPTED:
            self._ignored_gestures += 1
            logger.debug("session: drop of %s ignored (%s)", node_id, reason)
            return GestureResult(
                event_type="drag_end",
                reason=reason,
                node_id=node_id,
                target_id=target_id or "",
                origin=origin,
            )

        action = apply_move(self._tree, node_id, target_id)
        self._undo_stack.append(action)
        self._redo_stack.clear()
        self._accepted_moves += 1
        logger.info(
            "session: moved %s from %r to %r",
            node_id, action.previous_parent_id or "<root>", target_id,
        )
        return GestureResult(
            event_type="drag_end",
            accepted=True,
            reason=REASON_ACCEPTED,
            node_id=node_id,
            target_id=target_id,
            action=action,
        )

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def undo(self) -> bool:
        """Revert the most recent move. False if nothing was reverted."""
        return self._step(self._undo_stack, self._redo_stack, "undo")

    def redo(self) -> bool:
        """Re-apply the most recently undone move. False if nothing was applied."""
        return self._step(self._redo_stack, self._undo_stack, "redo")

    def _step(self, source: List[MoveAction], target: List[MoveAction], label: str) -> bool:
        if not source:
            return False
        action = source.pop()
        inverse = restore(self._tree, action)
        if inverse is None:
            logger.warning(
                "session: %s of %s dropped; node or parent no longer present",
                label, action.node_id,
            )
            return False
        target.append(inverse)
        return True

    def cancel(self) -> None:
        """Revert every move of this session and return to VIEW. No store writes."""
        if self._mode != EDITING:
            return
        reverted = 0
        while self._undo_stack:
            action = self._undo_stack.pop()
            if restore(self._tree, action) is None:
                logger.warning("session: cancel could not restore %s", action.node_id)
                continue
            reverted += 1
        self._end_editing()
        logger.info("session: editing cancelled, %d move(s) reverted", reverted)

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self) -> CommitResult:
        """
        Persist the session's moves and return to VIEW.

        Only the moves of the current editing session are sent. Failed
        updates are not retried: they are reported in the result and kept
        in ``unpersisted`` until the node is committed again or the
        directory is re-read. After a fully successful batch that wrote
        at least one node, the directory is re-read to refresh the tree.
        """
        actions = list(self._undo_stack)
        self._end_editing()

        result = await self._commit_manager.commit(actions, self._tree)
        self._last_commit = result
        settled = {a.node_id for a in result.succeeded + result.skipped}
        self._unpersisted = [
            a for a in self._unpersisted
            if a.node_id not in settled and a.node_id not in result.failed_ids
        ] + [f.action for f in result.failed if f.action.node_id in self._tree]

        if result.fully_persisted and result.succeeded:
            positions = await self._store.list_all()
            self._rebuild(positions)
        return result

    def _end_editing(self) -> None:
        self._undo_stack.clear()
        self._redo_stack.clear()
        self._clear_drag()
        self._mode = VIEW

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_role(self, node_id: str) -> str:
        """Role of *node_id* on the current tree. Available in any mode."""
        return classify_role(self._tree, node_id)

    def get_roles(self) -> Dict[str, str]:
        return classify_all(self._tree)

    def get_diagnostics(self) -> dict:
        return compute_diagnostics(self._tree, self._build_diagnostics)

    def get_metrics(self) -> "SessionMetrics":
        """Collect metrics from the current session."""
        from .observability import collect_metrics
        return collect_metrics(self)

    async def find_divergence(self) -> List[dict]:
        """Nodes whose local state differs from the directory (read-only)."""
        from .drift import compare_with_directory
        positions = await self._store.list_all()
        return compare_with_directory(self._tree, positions)

    # ------------------------------------------------------------------
    # State access
    # ------------------------------------------------------------------

    @property
    def tree(self) -> OrgTree:
        return self._tree

    @property
    def mode(self) -> str:
        return self._mode

    @property
    def edit_enabled(self) -> bool:
        return self._mode == EDITING

    @property
    def dragged_node_id(self) -> Optional[str]:
        return self._dragged_node_id

    @property
    def drop_candidate_id(self) -> Optional[str]:
        return self._drop_candidate_id

    @property
    def undo_stack(self) -> Tuple[MoveAction, ...]:
        return tuple(self._undo_stack)

    @property
    def redo_stack(self) -> Tuple[MoveAction, ...]:
        return tuple(self._redo_stack)

    @property
    def unpersisted(self) -> Tuple[MoveAction, ...]:
        return tuple(self._unpersisted)

    @property
    def build_diagnostics(self) -> List[BuildDiagnostic]:
        return list(self._build_diagnostics)

    @property
    def accepted_moves(self) -> int:
        return self._accepted_moves

    @property
    def ignored_gestures(self) -> int:
        return self._ignored_gestures

    @property
    def last_commit(self) -> Optional[CommitResult]:
        return self._last_commit

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _clear_drag(self) -> None:
        self._dragged_node_id = None
        self._drag_origin = None
        self._drop_candidate_id = None

    def _ignore(self, event_type: str, reason: str, node_id: str = "") -> GestureResult:
        self._ignored_gestures += 1
        logger.debug("session: %s ignored (%s) %s", event_type, reason, node_id)
        return GestureResult(event_type=event_type, reason=reason, node_id=node_id)
