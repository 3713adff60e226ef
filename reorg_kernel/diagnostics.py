"""
Hierarchy Kernel — Diagnostics v1.0

Compute a diagnostic snapshot of the current hierarchy.
"""

from __future__ import annotations

from typing import Iterable, Optional

from .constants import DEPARTMENT_HEAD, ROLES, TEAM_LEADER, TEAM_MEMBER
from .domain_types import BuildDiagnostic, OrgTree
from .graph import depth_of
from .roles import classify_all


def compute_diagnostics(
    tree: OrgTree,
    build_diagnostics: Optional[Iterable[BuildDiagnostic]] = None,
) -> dict:
    """Return a diagnostic dict summarising the current tree health."""
    roles = classify_all(tree)
    role_counts = {role: 0 for role in ROLES}
    for role in roles.values():
        role_counts[role] += 1

    max_depth = max((depth_of(tree, nid) for nid in tree.ids()), default=0)

    warnings: list[str] = []

    corrections = list(build_diagnostics or [])
    if corrections:
        warnings.append(
            f"{len(corrections)} structural correction(s) during build: "
            + ", ".join(f"{d.kind}@{d.node_id}" for d in corrections)
        )

    teamless_members = sorted(
        nid for nid, role in roles.items()
        if role == TEAM_MEMBER and not tree.positions[nid].team
        and roles.get(tree.parent_of(nid)) != DEPARTMENT_HEAD
    )
    if teamless_members:
        warnings.append(
            f"{len(teamless_members)} team member(s) without a team: "
            f"{', '.join(teamless_members)}"
        )

    headless_leaders = sorted(
        nid for nid, role in roles.items()
        if role == TEAM_LEADER and not tree.positions[nid].department_code
    )
    if headless_leaders:
        warnings.append(
            f"{len(headless_leaders)} team leader(s) without a department: "
            f"{', '.join(headless_leaders)}"
        )

    return {
        "node_count": len(tree),
        "root_id": tree.root_id or "",
        "role_counts": role_counts,
        "max_depth": max_depth,
        "warnings": warnings,
    }
