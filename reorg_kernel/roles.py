"""
Hierarchy Kernel — Role Classifier

Role is a pure function of the current tree plus the department-head
override. Precedence is fixed:

    empty parent          -> top_executive
    is_department_head    -> department_head
    has a direct report   -> team_leader
    otherwise             -> team_member
"""

from __future__ import annotations

from typing import Dict

from .constants import DEPARTMENT_HEAD, TEAM_LEADER, TEAM_MEMBER, TOP_EXECUTIVE
from .domain_types import OrgTree


class UnknownPositionError(LookupError):
    """Raised when a role is requested for an id that is not in the tree."""

    def __init__(self, node_id: str) -> None:
        self.node_id = node_id
        super().__init__(f"Position {node_id!r} is not in the hierarchy")


def classify_role(tree: OrgTree, node_id: str) -> str:
    position = tree.get(node_id)
    if position is None:
        raise UnknownPositionError(node_id)
    if tree.parent_of(node_id) == "":
        return TOP_EXECUTIVE
    if position.is_department_head:
        return DEPARTMENT_HEAD
    if tree.children_of(node_id):
        return TEAM_LEADER
    return TEAM_MEMBER


def classify_all(tree: OrgTree) -> Dict[str, str]:
    """Role for every position, in tree order."""
    return {nid: classify_role(tree, nid) for nid in tree.ids()}
