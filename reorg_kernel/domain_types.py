"""
Hierarchy Kernel — Core Domain Types v1.0

Pure data. No behaviour beyond copying and serialisation.

────────────────────────────────────────────────
DOMAIN GLOSSARY
────────────────────────────────────────────────

Position:
    One entry of the organizational directory (a role-slot held by an
    employee). Owned by the Directory Store; the kernel only holds copies.

Tree:
    Arena of Positions plus a validated ``parent_id`` per Position.
    ``""`` marks the single root.

Move Action:
    One reparenting event, carrying enough to invert it.

────────────────────────────────────────────────
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


def validate_position_id(position_id: Any) -> None:
    """Position ids must be non-empty strings. Hard fail."""
    if not isinstance(position_id, str) or not position_id.strip():
        raise ValueError(
            f"Invalid position ID {position_id!r}: must be a non-empty string"
        )


def _optional_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    value = str(value)
    return value if value != "" else None


# ── Core Domain Types ─────────────────────────────────────────

@dataclass
class Position:
    """A single position in the directory."""

    id: str
    name: str = ""
    title: str = ""
    manager_id: Optional[str] = None
    department_code: str = ""
    department: str = ""
    team_code: Optional[str] = None
    team: Optional[str] = None
    is_department_head: bool = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "title": self.title,
            "manager_id": self.manager_id,
            "department_code": self.department_code,
            "department": self.department,
            "team_code": self.team_code,
            "team": self.team,
            "is_department_head": self.is_department_head,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Position":
        """Build a Position from a store record; empty strings become None."""
        validate_position_id(data.get("id"))
        return cls(
            id=str(data["id"]),
            name=str(data.get("name") or ""),
            title=str(data.get("title") or ""),
            manager_id=_optional_str(data.get("manager_id")),
            department_code=str(data.get("department_code") or ""),
            department=str(data.get("department") or ""),
            team_code=_optional_str(data.get("team_code")),
            team=_optional_str(data.get("team")),
            is_department_head=bool(data.get("is_department_head", False)),
        )


@dataclass(frozen=True)
class AttributeAssignment:
    """Department/team attributes carried by a Position."""

    department: str = ""
    department_code: str = ""
    team: Optional[str] = None
    team_code: Optional[str] = None

    @classmethod
    def of(cls, position: Position) -> "AttributeAssignment":
        return cls(
            department=position.department,
            department_code=position.department_code,
            team=position.team,
            team_code=position.team_code,
        )

    def apply_to(self, position: Position) -> None:
        position.department = self.department
        position.department_code = self.department_code
        position.team = self.team
        position.team_code = self.team_code

    def to_dict(self) -> dict:
        return {
            "department": self.department,
            "department_code": self.department_code,
            "team": self.team,
            "team_code": self.team_code,
        }


@dataclass(frozen=True)
class MoveAction:
    """
    One reparenting event.

    Applying the action restores ``node_id`` to ``previous_parent_id``
    and, when recorded, to ``previous_attributes``.
    """

    node_id: str
    previous_parent_id: str
    previous_attributes: Optional[AttributeAssignment] = None

    def to_dict(self) -> dict:
        d: Dict[str, Any] = {
            "node_id": self.node_id,
            "previous_parent_id": self.previous_parent_id,
        }
        if self.previous_attributes is not None:
            d["previous_attributes"] = self.previous_attributes.to_dict()
        return d


@dataclass(frozen=True)
class BuildDiagnostic:
    """A structural anomaly corrected during hierarchy construction."""

    kind: str          # dangling_manager | cycle_broken | extra_root | forced_root
    node_id: str
    detail: str = ""


@dataclass
class OrgTree:
    """
    Arena of Positions plus validated parent links.

    ``positions`` preserves input order. ``parent_ids`` maps every
    position id to its parent id (``""`` for the root). The children
    index is derived and rebuilt lazily after any mutation.
    """

    positions: Dict[str, Position] = field(default_factory=dict)
    parent_ids: Dict[str, str] = field(default_factory=dict)
    _children: Optional[Dict[str, List[str]]] = field(
        default=None, repr=False, compare=False,
    )

    # -- Lookups ------------------------------------------------------------

    def __contains__(self, node_id: object) -> bool:
        return node_id in self.positions

    def __len__(self) -> int:
        return len(self.positions)

    def ids(self) -> List[str]:
        return list(self.positions)

    def get(self, node_id: str) -> Optional[Position]:
        return self.positions.get(node_id)

    def parent_of(self, node_id: str) -> str:
        return self.parent_ids[node_id]

    @property
    def root_id(self) -> Optional[str]:
        for nid in self.positions:
            if self.parent_ids.get(nid, "") == "":
                return nid
        return None

    def children_of(self, node_id: str) -> List[str]:
        if self._children is None:
            index: Dict[str, List[str]] = {nid: [] for nid in self.positions}
            for nid in self.positions:
                pid = self.parent_ids.get(nid, "")
                if pid and pid in index:
                    index[pid].append(nid)
            self._children = index
        return self._children.get(node_id, [])

    # -- Mutation -----------------------------------------------------------

    def set_parent(self, node_id: str, parent_id: str) -> None:
        self.parent_ids[node_id] = parent_id
        self._children = None

    # -- Copy / serialise ---------------------------------------------------

    def copy(self) -> "OrgTree":
        """Deep copy; the children index is not carried over."""
        return OrgTree(
            positions=copy.deepcopy(self.positions),
            parent_ids=dict(self.parent_ids),
        )

    def to_dict(self) -> dict:
        """Serialise to a plain dict (for the API and for logging)."""
        return {
            "root_id": self.root_id or "",
            "nodes": [
                dict(self.positions[nid].to_dict(), parent_id=self.parent_ids[nid])
                for nid in self.positions
            ],
        }
