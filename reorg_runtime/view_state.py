"""
View-State Cache — expand/collapse map and viewport transform.

Independent of the edit protocol: the blob is read and written wholesale
through the directory store and survives reloads of the hierarchy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Optional

from .directory_store import DirectoryStore

logger = logging.getLogger(__name__)

DEFAULT_TRANSFORM = "translate(0,0) scale(1)"


@dataclass
class ViewState:
    expanded: Dict[str, bool] = field(default_factory=dict)
    transform: str = DEFAULT_TRANSFORM

    def to_dict(self) -> dict:
        return {"expanded": dict(self.expanded), "transform": self.transform}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ViewState":
        if not data:
            return cls()
        expanded = data.get("expanded") or {}
        if not isinstance(expanded, dict):
            raise ValueError(f"view state 'expanded' must be a mapping, got {type(expanded).__name__}")
        return cls(
            expanded={str(k): bool(v) for k, v in expanded.items()},
            transform=str(data.get("transform") or DEFAULT_TRANSFORM),
        )


class ViewStateCache:
    """In-memory view state with explicit load/save against the store."""

    def __init__(self, store: DirectoryStore) -> None:
        self._store = store
        self._state = ViewState()

    @property
    def state(self) -> ViewState:
        return self._state

    async def load(self) -> ViewState:
        """Replace the cached state with the stored blob; a malformed blob is discarded."""
        raw = await self._store.load_view_state()
        try:
            self._state = ViewState.from_dict(raw)
        except ValueError as exc:
            logger.warning("view state: stored blob ignored: %s", exc)
            self._state = ViewState()
        return self._state

    async def save(self) -> None:
        await self._store.save_view_state(self._state.to_dict())

    def replace(self, state: ViewState) -> None:
        self._state = state

    def is_expanded(self, node_id: str, default: bool = True) -> bool:
        return self._state.expanded.get(node_id, default)

    def set_expanded(self, node_id: str, expanded: bool) -> None:
        self._state.expanded[node_id] = expanded

    def toggle(self, node_id: str) -> bool:
        value = not self.is_expanded(node_id)
        self._state.expanded[node_id] = value
        return value

    def set_transform(self, transform: str) -> None:
        self._state.transform = transform

    def prune(self, known_ids: Iterable[str]) -> int:
        """Drop entries for nodes that no longer exist. Returns the number removed."""
        known = set(known_ids)
        stale = [nid for nid in self._state.expanded if nid not in known]
        for nid in stale:
            del self._state.expanded[nid]
        return len(stale)
