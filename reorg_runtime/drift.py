"""
Drift Comparator — pure function, no side effects.

Compares the session's in-memory tree with a directory snapshot and
lists the nodes whose structural fields differ. After a partial commit
this is exactly the set the operator still has to resolve.
"""

from __future__ import annotations

from typing import Dict, Iterable, List

from reorg_kernel.domain_types import OrgTree, Position

from .commit import PAYLOAD_FIELDS, payload_from_position


def compare_with_directory(tree: OrgTree, positions: Iterable[Position]) -> List[dict]:
    """
    Return one entry per divergent node:
        {"node_id", "fields": {name: {"local": ..., "remote": ...}}}

    Nodes missing on either side are reported with ``missing`` set to
    ``"local"`` or ``"remote"``.
    """
    remote: Dict[str, Position] = {p.id: p for p in positions}
    divergent: List[dict] = []

    for nid in tree.ids():
        if nid not in remote:
            divergent.append({"node_id": nid, "missing": "remote", "fields": {}})
            continue
        local_payload = payload_from_position(tree.positions[nid], tree.parent_of(nid))
        remote_payload = payload_from_position(remote[nid])
        fields = {
            name: {"local": local_payload[name], "remote": remote_payload[name]}
            for name in PAYLOAD_FIELDS
            if local_payload[name] != remote_payload[name]
        }
        if fields:
            divergent.append({"node_id": nid, "fields": fields})

    for rid in remote:
        if rid not in tree:
            divergent.append({"node_id": rid, "missing": "local", "fields": {}})

    return divergent
