"""
Hierarchy Kernel — Graph Utilities v1.0

Pure dict-based traversal over parent links. No external dependencies.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Set

from .domain_types import OrgTree


# ---------------------------------------------------------------------------
# Parent-chain walks
# ---------------------------------------------------------------------------

def walk_parent_chain(
    start_id: str, parent_ids: Dict[str, str],
) -> Optional[List[str]]:
    """
    Follow parent links from *start_id* (exclusive) up to the root.

    Returns the ancestors nearest-first, or ``None`` if the walk
    revisits a node (the chain contains a cycle).
    """
    visited: Set[str] = {start_id}
    chain: List[str] = []
    current = parent_ids.get(start_id, "")
    while current:
        if current in visited:
            return None
        visited.add(current)
        chain.append(current)
        current = parent_ids.get(current, "")
    return chain


def find_cycle_entry(start_id: str, parent_ids: Dict[str, str]) -> Optional[str]:
    """
    First id revisited while walking up from *start_id*, or ``None``.

    Equals *start_id* only when *start_id* itself lies on the cycle; a
    node whose chain merely leads into a cycle gets another id back.
    """
    visited: Set[str] = {start_id}
    current = parent_ids.get(start_id, "")
    while current:
        if current in visited:
            return current
        visited.add(current)
        current = parent_ids.get(current, "")
    return None


def ancestors_of(tree: OrgTree, node_id: str) -> List[str]:
    """Ancestors nearest-first. Empty for the root."""
    chain = walk_parent_chain(node_id, tree.parent_ids)
    if chain is None:
        raise ValueError(f"Parent chain of {node_id!r} contains a cycle")
    return chain


def is_descendant(tree: OrgTree, node_id: str, ancestor_id: str) -> bool:
    """True if *ancestor_id* lies on the parent chain of *node_id*."""
    chain = walk_parent_chain(node_id, tree.parent_ids)
    return chain is not None and ancestor_id in chain


def depth_of(tree: OrgTree, node_id: str) -> int:
    """Number of edges between *node_id* and the root."""
    return len(ancestors_of(tree, node_id))


# ---------------------------------------------------------------------------
# Roots
# ---------------------------------------------------------------------------

def find_roots(parent_ids: Dict[str, str], order: List[str]) -> List[str]:
    """Ids with an empty parent, in *order*."""
    return [nid for nid in order if parent_ids.get(nid, "") == ""]
