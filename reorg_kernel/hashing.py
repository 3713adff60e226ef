"""
Hierarchy Kernel — Canonical Hashing v1.0

Deterministic canonical serialization + SHA-256 hashing of a tree.

Rules:
  - Nodes sorted by id
  - Only structure-bearing fields: parent_id, department/team
    attributes, department-head flag
  - UTF-8 JSON, no whitespace
"""

from __future__ import annotations

import hashlib
import json
from typing import Any, Dict, List

from .domain_types import OrgTree


def canonical_serialize(tree: OrgTree) -> bytes:
    obj = _build_canonical_dict(tree)
    return json.dumps(obj, ensure_ascii=True, separators=(",", ":"), sort_keys=False).encode("utf-8")


def canonical_hash(tree: OrgTree) -> str:
    """SHA-256 of canonical serialization. Lowercase hex string."""
    return hashlib.sha256(canonical_serialize(tree)).hexdigest()


def _build_canonical_dict(tree: OrgTree) -> Dict[str, Any]:
    nodes: List[Dict[str, Any]] = []
    for nid in sorted(tree.positions):
        p = tree.positions[nid]
        nodes.append({
            "id": p.id,
            "parent_id": tree.parent_ids.get(nid, ""),
            "department_code": p.department_code,
            "department": p.department,
            "team_code": p.team_code,
            "team": p.team,
            "is_department_head": p.is_department_head,
        })
    return {
        "kernel_version": 1,
        "nodes": nodes,
    }
