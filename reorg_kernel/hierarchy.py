"""
Hierarchy Kernel — Hierarchy Builder v1.0

Converts the flat directory list into a rooted tree.

Steps:
  1. parent_id := manager_id when it names a Position in the input,
     otherwise "".
  2. Cycle check: walk parent links from every Position; a walk that
     comes back to its own start has found a cycle, and that Position
     (the first cycle member in input order) is made a root candidate.
     Positions that merely report into a cycle keep their manager.
  3. Root resolution: exactly one root survives. Extra roots are
     re-parented under the main root; if none exist, the first Position
     becomes the root.

Anomalies are corrected and reported as BuildDiagnostic entries, never
raised: the tree must always render something.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .constants import DEFAULT_TOP_EXECUTIVE_TITLES
from .domain_types import BuildDiagnostic, OrgTree, Position
from .graph import find_cycle_entry, find_roots

logger = logging.getLogger(__name__)


@dataclass
class HierarchyBuildResult:
    tree: OrgTree
    diagnostics: List[BuildDiagnostic] = field(default_factory=list)


def build_hierarchy(
    positions: Iterable[Position],
    top_executive_titles: Sequence[str] = DEFAULT_TOP_EXECUTIVE_TITLES,
) -> HierarchyBuildResult:
    """
    Build an OrgTree from *positions*. Input objects are copied, never
    mutated.
    """
    diagnostics: List[BuildDiagnostic] = []
    tree = OrgTree()

    for pos in positions:
        if pos.id in tree.positions:
            _report(diagnostics, "duplicate_id", pos.id,
                    "duplicate position id ignored (first occurrence kept)")
            continue
        tree.positions[pos.id] = copy.deepcopy(pos)

    order = tree.ids()

    # -- Step 1: resolve manager references --
    for nid in order:
        manager_id = tree.positions[nid].manager_id or ""
        if manager_id and manager_id not in tree.positions:
            _report(diagnostics, "dangling_manager", nid,
                    f"manager_id {manager_id!r} not found; treated as no manager")
            manager_id = ""
        tree.parent_ids[nid] = manager_id

    # -- Step 2: break each cycle at its first member in input order --
    for nid in order:
        if tree.parent_ids[nid] == "":
            continue
        if find_cycle_entry(nid, tree.parent_ids) == nid:
            _report(diagnostics, "cycle_broken", nid,
                    f"cyclic manager chain; parent {tree.parent_ids[nid]!r} dropped")
            tree.parent_ids[nid] = ""

    # -- Step 3: single root --
    roots = find_roots(tree.parent_ids, order)
    if len(roots) > 1:
        main_root = _select_main_root(
            [tree.positions[r] for r in roots], top_executive_titles,
        )
        for rid in roots:
            if rid == main_root:
                continue
            tree.parent_ids[rid] = main_root
            _report(diagnostics, "extra_root", rid,
                    f"re-parented under main root {main_root!r}")
    elif not roots and order:
        tree.parent_ids[order[0]] = ""
        _report(diagnostics, "forced_root", order[0],
                "no root candidate; first position forced to root")

    return HierarchyBuildResult(tree=tree, diagnostics=diagnostics)


def is_top_executive_title(
    title: str, top_executive_titles: Sequence[str] = DEFAULT_TOP_EXECUTIVE_TITLES,
) -> bool:
    normalized = (title or "").strip().casefold()
    return bool(normalized) and normalized in {
        t.strip().casefold() for t in top_executive_titles
    }


def _select_main_root(
    candidates: List[Position], top_executive_titles: Sequence[str],
) -> str:
    """Priority: top executive title, then department head flag, then input order."""
    chosen: Optional[Position] = next(
        (p for p in candidates if is_top_executive_title(p.title, top_executive_titles)),
        None,
    )
    if chosen is None:
        chosen = next((p for p in candidates if p.is_department_head), None)
    if chosen is None:
        chosen = candidates[0]
    return chosen.id


def _report(
    diagnostics: List[BuildDiagnostic], kind: str, node_id: str, detail: str,
) -> None:
    logger.warning("hierarchy: %s at %s: %s", kind, node_id, detail)
    diagnostics.append(BuildDiagnostic(kind=kind, node_id=node_id, detail=detail))
