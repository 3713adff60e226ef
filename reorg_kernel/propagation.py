"""
Hierarchy Kernel — Attribute Propagation Rule Engine

Department and team are derived from structural position. When a
Position moves, its new assignment comes from the first rule in
PROPAGATION_RULES matching (mover's prior role, target's role).

Team leaders are sticky about their own team when they are moved to
report directly to a department head; every other mover reporting to a
department head loses its team.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Optional, Tuple

from .constants import (
    DEPARTMENT_HEAD,
    TEAM_CLEAR,
    TEAM_INHERIT,
    TEAM_KEEP,
    TEAM_LEADER,
    TEAM_MEMBER,
)
from .domain_types import AttributeAssignment, Position


@dataclass(frozen=True)
class PropagationRule:
    name: str
    mover_roles: Optional[FrozenSet[str]]  # None matches any prior role
    target_role: str
    team_policy: str                       # inherit | keep | clear
    inherit_department: bool = True

    def matches(self, mover_role: str, target_role: str) -> bool:
        if target_role != self.target_role:
            return False
        return self.mover_roles is None or mover_role in self.mover_roles


# Order matters: first match wins.
PROPAGATION_RULES: Tuple[PropagationRule, ...] = (
    PropagationRule("join_team", None, TEAM_LEADER, TEAM_INHERIT),
    PropagationRule(
        "leader_keeps_team", frozenset({TEAM_LEADER}), DEPARTMENT_HEAD, TEAM_KEEP,
    ),
    PropagationRule(
        "member_leaves_team", frozenset({TEAM_MEMBER}), DEPARTMENT_HEAD, TEAM_CLEAR,
    ),
    PropagationRule("report_to_department_head", None, DEPARTMENT_HEAD, TEAM_CLEAR),
    # The target gains its first report and becomes the team's leader.
    PropagationRule("member_becomes_leader", None, TEAM_MEMBER, TEAM_INHERIT),
)


def match_rule(
    mover_role: str,
    target_role: str,
    rules: Tuple[PropagationRule, ...] = PROPAGATION_RULES,
) -> Optional[PropagationRule]:
    for rule in rules:
        if rule.matches(mover_role, target_role):
            return rule
    return None


def propagate_attributes(
    mover: Position,
    mover_role: str,
    target: Position,
    target_role: str,
    rules: Tuple[PropagationRule, ...] = PROPAGATION_RULES,
) -> AttributeAssignment:
    """
    Compute the mover's department/team after moving under *target*.

    Roles must be classified on the tree *before* the move. With no
    matching rule (e.g. moving directly under the top executive) the
    mover keeps its current assignment.
    """
    current = AttributeAssignment.of(mover)
    rule = match_rule(mover_role, target_role, rules)
    if rule is None:
        return current

    if rule.inherit_department:
        department, department_code = target.department, target.department_code
    else:
        department, department_code = current.department, current.department_code

    if rule.team_policy == TEAM_INHERIT:
        team, team_code = target.team, target.team_code
    elif rule.team_policy == TEAM_KEEP:
        team, team_code = current.team, current.team_code
    elif rule.team_policy == TEAM_CLEAR:
        team, team_code = None, None
    else:
        raise ValueError(f"Unknown team policy {rule.team_policy!r} in rule {rule.name!r}")

    return AttributeAssignment(
        department=department,
        department_code=department_code,
        team=team,
        team_code=team_code,
    )
