"""
Hierarchy Kernel v1.0
Deterministic, in-memory organizational hierarchy kernel: tree
construction, role classification, attribute propagation and reversible
moves. No I/O.
"""

from .domain_types import (
    Position, AttributeAssignment, MoveAction, BuildDiagnostic, OrgTree,
    validate_position_id,
)
from .constants import (
    TOP_EXECUTIVE,
    DEPARTMENT_HEAD,
    TEAM_LEADER,
    TEAM_MEMBER,
    ROLES,
    DEFAULT_TOP_EXECUTIVE_TITLES,
)
from .hierarchy import HierarchyBuildResult, build_hierarchy
from .roles import UnknownPositionError, classify_role, classify_all
from .propagation import PropagationRule, PROPAGATION_RULES, match_rule, propagate_attributes
from .hit_test import NodeBox, DragPointer, find_drop_candidate
from .moves import check_move, apply_move, restore
from .invariants import InvariantViolationError, validate_tree
from .diagnostics import compute_diagnostics
from .hashing import canonical_serialize, canonical_hash

__all__ = [
    "Position",
    "AttributeAssignment",
    "MoveAction",
    "BuildDiagnostic",
    "OrgTree",
    "validate_position_id",
    "TOP_EXECUTIVE",
    "DEPARTMENT_HEAD",
    "TEAM_LEADER",
    "TEAM_MEMBER",
    "ROLES",
    "DEFAULT_TOP_EXECUTIVE_TITLES",
    "HierarchyBuildResult",
    "build_hierarchy",
    "UnknownPositionError",
    "classify_role",
    "classify_all",
    "PropagationRule",
    "PROPAGATION_RULES",
    "match_rule",
    "propagate_attributes",
    "NodeBox",
    "DragPointer",
    "find_drop_candidate",
    "check_move",
    "apply_move",
    "restore",
    "InvariantViolationError",
    "validate_tree",
    "compute_diagnostics",
    "canonical_serialize",
    "canonical_hash",
]
