"""
Observability — In-process metrics collection.

No external dependencies. Uses compute_diagnostics + canonical hashing.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import TYPE_CHECKING

from reorg_kernel.hashing import canonical_hash

if TYPE_CHECKING:
    from .session import ReorganizationSession


@dataclass(frozen=True)
class SessionMetrics:
    """Snapshot of observable session metrics."""

    mode: str
    node_count: int
    role_counts: dict
    undo_depth: int
    redo_depth: int
    accepted_moves: int
    ignored_gestures: int
    unpersisted_count: int
    last_commit_succeeded: int
    last_commit_failed: int
    tree_hash: str
    hash_latency_ms: float
    warnings: list

    def to_dict(self) -> dict:
        return {
            "mode": self.mode,
            "node_count": self.node_count,
            "role_counts": dict(self.role_counts),
            "undo_depth": self.undo_depth,
            "redo_depth": self.redo_depth,
            "accepted_moves": self.accepted_moves,
            "ignored_gestures": self.ignored_gestures,
            "unpersisted_count": self.unpersisted_count,
            "last_commit_succeeded": self.last_commit_succeeded,
            "last_commit_failed": self.last_commit_failed,
            "tree_hash": self.tree_hash,
            "hash_latency_ms": self.hash_latency_ms,
            "warnings": list(self.warnings),
        }


def collect_metrics(session: "ReorganizationSession") -> SessionMetrics:
    """Collect metrics from a live session."""
    start = time.perf_counter()
    tree_hash = canonical_hash(session.tree)
    elapsed_ms = (time.perf_counter() - start) * 1000.0

    diagnostics = session.get_diagnostics()
    last = session.last_commit

    return SessionMetrics(
        mode=session.mode,
        node_count=diagnostics["node_count"],
        role_counts=diagnostics["role_counts"],
        undo_depth=len(session.undo_stack),
        redo_depth=len(session.redo_stack),
        accepted_moves=session.accepted_moves,
        ignored_gestures=session.ignored_gestures,
        unpersisted_count=len(session.unpersisted),
        last_commit_succeeded=len(last.succeeded) if last else 0,
        last_commit_failed=len(last.failed) if last else 0,
        tree_hash=tree_hash,
        hash_latency_ms=round(elapsed_ms, 2),
        warnings=diagnostics["warnings"],
    )
