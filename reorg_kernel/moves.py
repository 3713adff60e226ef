"""
Hierarchy Kernel — Centralized Move Logic v1.0

ALL tree-mutation logic lives here. The session decides *when* to move;
this module decides *whether* a move is valid and performs it together
with attribute propagation. Every mutation returns the MoveAction that
inverts it.
"""

from __future__ import annotations

from typing import Optional

from .constants import (
    REASON_ACCEPTED,
    REASON_CYCLE,
    REASON_NO_TARGET,
    REASON_ROOT_NOT_DRAGGABLE,
    REASON_SAME_PARENT,
    REASON_SELF_DROP,
    REASON_UNKNOWN_NODE,
)
from .domain_types import AttributeAssignment, MoveAction, OrgTree
from .graph import is_descendant
from .invariants import validate_tree
from .propagation import propagate_attributes
from .roles import classify_role


def check_move(tree: OrgTree, node_id: str, target_id: Optional[str]) -> str:
    """Return REASON_ACCEPTED or the reason the move is a no-op."""
    if node_id not in tree:
        return REASON_UNKNOWN_NODE
    if tree.parent_of(node_id) == "":
        return REASON_ROOT_NOT_DRAGGABLE
    if not target_id:
        return REASON_NO_TARGET
    if target_id not in tree:
        return REASON_UNKNOWN_NODE
    if target_id == node_id:
        return REASON_SELF_DROP
    if tree.parent_of(node_id) == target_id:
        return REASON_SAME_PARENT
    if is_descendant(tree, target_id, node_id):
        return REASON_CYCLE
    return REASON_ACCEPTED


def apply_move(tree: OrgTree, node_id: str, target_id: str) -> MoveAction:
    """
    Re-parent *node_id* under *target_id* in place.

    Roles are classified before the mutation, the new department/team
    assignment is applied, and the action restoring the prior state is
    returned.
    """
    reason = check_move(tree, node_id, target_id)
    if reason != REASON_ACCEPTED:
        raise ValueError(f"Move {node_id!r} -> {target_id!r} rejected: {reason}")

    mover = tree.positions[node_id]
    target = tree.positions[target_id]
    mover_role = classify_role(tree, node_id)
    target_role = classify_role(tree, target_id)

    inverse = MoveAction(
        node_id=node_id,
        previous_parent_id=tree.parent_of(node_id),
        previous_attributes=AttributeAssignment.of(mover),
    )

    assignment = propagate_attributes(mover, mover_role, target, target_role)
    tree.set_parent(node_id, target_id)
    assignment.apply_to(mover)
    validate_tree(tree)
    return inverse


def restore(tree: OrgTree, action: MoveAction) -> Optional[MoveAction]:
    """
    Apply *action* (used by undo, redo and cancel).

    Returns the action that reverses this restore, or ``None`` when the
    node or its recorded parent is no longer in the tree; in that case
    nothing is mutated.
    """
    if action.node_id not in tree:
        return None
    if action.previous_parent_id and action.previous_parent_id not in tree:
        return None

    position = tree.positions[action.node_id]
    inverse = MoveAction(
        node_id=action.node_id,
        previous_parent_id=tree.parent_of(action.node_id),
        previous_attributes=AttributeAssignment.of(position),
    )
    tree.set_parent(action.node_id, action.previous_parent_id)
    if action.previous_attributes is not None:
        action.previous_attributes.apply_to(position)
    validate_tree(tree)
    return inverse
