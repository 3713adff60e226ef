"""
Commit Manager — persists a session's moves to the Directory Store.

Best-effort batch, not a transaction:
  1. Collapse the actions to one entry per affected node (latest wins).
  2. Build the payload from the node's current in-memory state.
  3. Skip nodes whose payload equals the last known persisted state.
  4. Send the remaining updates concurrently; each one settles
     independently and is recorded as succeeded or failed.

Failures are reported, never retried, and successful updates are never
rolled back. The persisted baseline advances for every success, so
committing again without new moves sends nothing.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from reorg_kernel.domain_types import MoveAction, OrgTree, Position

from .directory_store import DirectoryStore

logger = logging.getLogger(__name__)

PAYLOAD_FIELDS = ("manager_id", "department", "department_code", "team", "team_code")


@dataclass(frozen=True)
class CommitFailure:
    action: MoveAction
    error: str

    def to_dict(self) -> dict:
        return {"action": self.action.to_dict(), "error": self.error}


@dataclass
class CommitResult:
    succeeded: List[MoveAction] = field(default_factory=list)
    failed: List[CommitFailure] = field(default_factory=list)
    skipped: List[MoveAction] = field(default_factory=list)

    @property
    def fully_persisted(self) -> bool:
        return not self.failed

    @property
    def failed_ids(self) -> List[str]:
        return [f.action.node_id for f in self.failed]

    def to_dict(self) -> dict:
        return {
            "fully_persisted": self.fully_persisted,
            "succeeded": [a.to_dict() for a in self.succeeded],
            "failed": [f.to_dict() for f in self.failed],
            "skipped": [a.to_dict() for a in self.skipped],
        }


def payload_from_position(position: Position, parent_id: Optional[str] = None) -> dict:
    """Persisted payload; ``parent_id`` overrides the stored manager_id."""
    manager_id = position.manager_id if parent_id is None else (parent_id or None)
    return {
        "manager_id": manager_id,
        "department": position.department,
        "department_code": position.department_code,
        "team": position.team,
        "team_code": position.team_code,
    }


class CommitManager:
    """Tracks the last persisted payload per node and commits batches."""

    def __init__(self, store: DirectoryStore) -> None:
        self._store = store
        self._persisted: Dict[str, dict] = {}

    # ------------------------------------------------------------------
    # Baseline
    # ------------------------------------------------------------------

    def record_snapshot(self, positions: Iterable[Position]) -> None:
        """Reset the baseline from a fresh ``list_all`` snapshot."""
        self._persisted = {p.id: payload_from_position(p) for p in positions}

    # ------------------------------------------------------------------
    # Commit
    # ------------------------------------------------------------------

    async def commit(self, actions: Sequence[MoveAction], tree: OrgTree) -> CommitResult:
        result = CommitResult()

        latest: Dict[str, MoveAction] = {}
        for action in actions:
            latest.pop(action.node_id, None)
            latest[action.node_id] = action

        pending: List[tuple] = []
        for node_id, action in latest.items():
            position = tree.get(node_id)
            if position is None:
                result.failed.append(CommitFailure(action, "position no longer in hierarchy"))
                continue
            payload = payload_from_position(position, tree.parent_of(node_id))
            if payload == self._persisted.get(node_id):
                result.skipped.append(action)
                continue
            pending.append((action, payload))

        outcomes = await asyncio.gather(
            *(self._store.update(action.node_id, payload) for action, payload in pending),
            return_exceptions=True,
        )

        for (action, payload), outcome in zip(pending, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning("commit: update of %s failed: %s", action.node_id, outcome)
                result.failed.append(CommitFailure(action, str(outcome)))
            else:
                self._persisted[action.node_id] = payload
                result.succeeded.append(action)

        logger.info(
            "commit: %d succeeded, %d failed, %d skipped",
            len(result.succeeded), len(result.failed), len(result.skipped),
        )
        return result
