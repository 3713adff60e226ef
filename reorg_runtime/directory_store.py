"""
Directory Store — the authoritative list of Positions.

Interface consumed by the reorganization session and commit manager:

    async list_all() -> List[Position]
    async update(position_id, patch) -> Position      (raises on failure)
    async load_view_state() -> Optional[dict]
    async save_view_state(state) -> None

Two implementations live here:
  - InMemoryDirectoryStore: dict-backed, with failure injection.
  - SqliteDirectoryStore: sqlite3-backed; blocking calls run in a worker
    thread so concurrent commit updates do not block the event loop.

The PostgreSQL implementation lives in backend/ next to the service.
"""

from __future__ import annotations

import asyncio
import copy
import json
import sqlite3
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set

from reorg_kernel.domain_types import Position

_SCHEMA_PATH = Path(__file__).parent / "schema.sql"

# Fields a patch may carry. ``id`` is never patched.
PATCHABLE_FIELDS = (
    "name",
    "title",
    "manager_id",
    "department_code",
    "department",
    "team_code",
    "team",
    "is_department_head",
)

VIEW_STATE_KEY = "orgchart"


class DirectoryStoreError(Exception):
    """Raised when the store cannot apply an update for a position."""

    def __init__(self, position_id: str, detail: str) -> None:
        self.position_id = position_id
        self.detail = detail
        super().__init__(f"Directory update failed for {position_id!r}: {detail}")


class DirectoryStore(Protocol):
    async def list_all(self) -> List[Position]: ...

    async def update(self, position_id: str, patch: Dict[str, Any]) -> Position: ...

    async def load_view_state(self) -> Optional[dict]: ...

    async def save_view_state(self, state: dict) -> None: ...


def validate_patch(position_id: str, patch: Dict[str, Any]) -> None:
    unknown = sorted(set(patch) - set(PATCHABLE_FIELDS))
    if unknown:
        raise DirectoryStoreError(position_id, f"unknown fields in patch: {unknown}")


# ---------------------------------------------------------------------------
# In-memory
# ---------------------------------------------------------------------------

class InMemoryDirectoryStore:
    """
    Dict-backed store.

    ``failing_ids`` makes update() raise for those positions, which is
    how partial commit failures are exercised. Every update call is
    recorded in ``update_calls``.
    """

    def __init__(
        self,
        positions: Iterable[Position] = (),
        failing_ids: Optional[Set[str]] = None,
    ) -> None:
        self._positions: Dict[str, Position] = {
            p.id: copy.deepcopy(p) for p in positions
        }
        self._view_state: Optional[dict] = None
        self.failing_ids: Set[str] = set(failing_ids or ())
        self.update_calls: List[tuple] = []
        self.list_calls: int = 0

    async def list_all(self) -> List[Position]:
        self.list_calls += 1
        return [copy.deepcopy(p) for p in self._positions.values()]

    async def update(self, position_id: str, patch: Dict[str, Any]) -> Position:
        self.update_calls.append((position_id, dict(patch)))
        if position_id in self.failing_ids:
            raise DirectoryStoreError(position_id, "simulated store failure")
        existing = self._positions.get(position_id)
        if existing is None:
            raise DirectoryStoreError(position_id, "position not found")
        validate_patch(position_id, patch)
        for key, value in patch.items():
            setattr(existing, key, value)
        return copy.deepcopy(existing)

    async def load_view_state(self) -> Optional[dict]:
        return copy.deepcopy(self._view_state)

    async def save_view_state(self, state: dict) -> None:
        self._view_state = copy.deepcopy(state)

    def get(self, position_id: str) -> Optional[Position]:
        p = self._positions.get(position_id)
        return copy.deepcopy(p) if p is not None else None


# ---------------------------------------------------------------------------
# SQLite
# ---------------------------------------------------------------------------

class SqliteDirectoryStore:
    """
    Position store backed by sqlite3.

    A single connection is shared by worker threads; a lock serialises
    access to it.
    """

    def __init__(self, db_path: str | Path) -> None:
        self._db_path = str(db_path)
        self._lock = threading.Lock()
        self._conn = sqlite3.connect(self._db_path, check_same_thread=False)
        self._conn.execute("PRAGMA journal_mode=WAL")
        self._ensure_schema()

    def _ensure_schema(self) -> None:
        schema_sql = _SCHEMA_PATH.read_text(encoding="utf-8")
        self._conn.executescript(schema_sql)

    # ------------------------------------------------------------------
    # Seeding
    # ------------------------------------------------------------------

    def import_positions(self, positions: Iterable[Position]) -> int:
        """Insert or replace positions, preserving their order. Returns the count."""
        now = datetime.now(timezone.utc).isoformat()
        count = 0
        with self._lock, self._conn:
            row = self._conn.execute("SELECT COALESCE(MAX(seq), 0) FROM positions").fetchone()
            seq = row[0]
            for p in positions:
                seq += 1
                self._conn.execute(
                    """
                    INSERT OR REPLACE INTO positions
                        (id, seq, name, title, manager_id, department_code,
                         department, team_code, team, is_department_head, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        p.id, seq, p.name, p.title, p.manager_id,
                        p.department_code, p.department, p.team_code, p.team,
                        1 if p.is_department_head else 0, now,
                    ),
                )
                count += 1
        return count

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_all_sync(self) -> List[Position]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT id, name, title, manager_id, department_code, department,
                       team_code, team, is_department_head
                FROM positions
                ORDER BY seq
                """
            ).fetchall()
        return [_row_to_position(r) for r in rows]

    async def list_all(self) -> List[Position]:
        return await asyncio.to_thread(self.list_all_sync)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def update_sync(self, position_id: str, patch: Dict[str, Any]) -> Position:
        validate_patch(position_id, patch)
        now = datetime.now(timezone.utc).isoformat()
        with self._lock:
            with self._conn:
                if patch:
                    columns = sorted(patch)
                    assignments = ", ".join(f"{c} = ?" for c in columns)
                    values = [_to_column(c, patch[c]) for c in columns]
                    cursor = self._conn.execute(
                        f"UPDATE positions SET {assignments}, updated_at = ? WHERE id = ?",
                        (*values, now, position_id),
                    )
                    if cursor.rowcount == 0:
                        raise DirectoryStoreError(position_id, "position not found")
            row = self._conn.execute(
                """
                SELECT id, name, title, manager_id, department_code, department,
                       team_code, team, is_department_head
                FROM positions WHERE id = ?
                """,
                (position_id,),
            ).fetchone()
        if row is None:
            raise DirectoryStoreError(position_id, "position not found")
        return _row_to_position(row)

    async def update(self, position_id: str, patch: Dict[str, Any]) -> Position:
        return await asyncio.to_thread(self.update_sync, position_id, patch)

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------

    def load_view_state_sync(self) -> Optional[dict]:
        with self._lock:
            row = self._conn.execute(
                "SELECT state_json FROM view_state WHERE state_key = ?",
                (VIEW_STATE_KEY,),
            ).fetchone()
        if row is None:
            return None
        return json.loads(row[0])

    def save_view_state_sync(self, state: dict) -> None:
        now = datetime.now(timezone.utc).isoformat()
        with self._lock, self._conn:
            self._conn.execute(
                """
                INSERT OR REPLACE INTO view_state (state_key, state_json, updated_at)
                VALUES (?, ?, ?)
                """,
                (VIEW_STATE_KEY, json.dumps(state, ensure_ascii=False), now),
            )

    async def load_view_state(self) -> Optional[dict]:
        return await asyncio.to_thread(self.load_view_state_sync)

    async def save_view_state(self, state: dict) -> None:
        await asyncio.to_thread(self.save_view_state_sync, state)

    def close(self) -> None:
        self._conn.close()


def _to_column(column: str, value: Any) -> Any:
    if column == "is_department_head":
        return 1 if value else 0
    return value


def _row_to_position(row: tuple) -> Position:
    return Position.from_dict({
        "id": row[0],
        "name": row[1],
        "title": row[2],
        "manager_id": row[3],
        "department_code": row[4],
        "department": row[5],
        "team_code": row[6],
        "team": row[7],
        "is_department_head": bool(row[8]),
    })
