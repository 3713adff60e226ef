"""
Hierarchy Kernel — Invariant Checks v1.0

Hard-fail validation. Every check raises InvariantViolationError on
failure. Construction and every accepted edit must leave the tree valid,
so a violation here is a programming error, not an operator error.
"""

from __future__ import annotations

from .domain_types import OrgTree
from .graph import find_roots, walk_parent_chain


class InvariantViolationError(Exception):
    """Raised when a hierarchy invariant is violated."""

    def __init__(self, rule: str, detail: str) -> None:
        self.rule = rule
        self.detail = detail
        super().__init__(f"[INVARIANT:{rule}] {detail}")


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def validate_tree(tree: OrgTree) -> None:
    """
    Run all checks. Raises InvariantViolationError on the first failure.
    An empty tree is valid.
    """
    _check_parent_entries(tree)
    _check_parent_refs(tree)
    _check_single_root(tree)
    _check_no_cycles(tree)


# ---------------------------------------------------------------------------
# Individual checks (private)
# ---------------------------------------------------------------------------

def _check_parent_entries(tree: OrgTree) -> None:
    """Every position has exactly one parent entry and vice versa."""
    if set(tree.positions) != set(tree.parent_ids):
        missing = sorted(set(tree.positions) ^ set(tree.parent_ids))
        raise InvariantViolationError(
            "parent_entries",
            f"Positions and parent links disagree for: {', '.join(missing)}",
        )


def _check_parent_refs(tree: OrgTree) -> None:
    """Every non-empty parent_id refers to a position in the tree."""
    for nid, pid in tree.parent_ids.items():
        if pid and pid not in tree.positions:
            raise InvariantViolationError(
                "parent_refs",
                f"Position {nid!r} has parent_id={pid!r} which does not exist",
            )
        if pid == nid:
            raise InvariantViolationError(
                "parent_refs", f"Position {nid!r} is its own parent",
            )


def _check_single_root(tree: OrgTree) -> None:
    if not tree.positions:
        return
    roots = find_roots(tree.parent_ids, tree.ids())
    if len(roots) != 1:
        raise InvariantViolationError(
            "single_root",
            f"Expected exactly one root, found {len(roots)}: {roots}",
        )


def _check_no_cycles(tree: OrgTree) -> None:
    for nid in tree.ids():
        if walk_parent_chain(nid, tree.parent_ids) is None:
            raise InvariantViolationError(
                "no_cycles", f"Parent chain starting at {nid!r} revisits a node",
            )
