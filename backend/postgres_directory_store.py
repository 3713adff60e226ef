"""
PostgreSQL Directory Store.

Drop-in replacement for the SQLite store. Same interface, PostgreSQL
storage via pg8000.

Stateless: no in-memory caching. Every read hits the DB, one connection
per operation. Blocking calls run in a worker thread.
"""

from __future__ import annotations

import asyncio
import json
from typing import Any, Dict, List, Optional

import pg8000.exceptions
import pg8000.native

from reorg_kernel.domain_types import Position
from reorg_runtime.directory_store import (
    VIEW_STATE_KEY,
    DirectoryStoreError,
    validate_patch,
)

_INIT_SQL = """
CREATE TABLE IF NOT EXISTS positions (
    id                  TEXT PRIMARY KEY,
    seq                 SERIAL,
    name                TEXT NOT NULL DEFAULT '',
    title               TEXT NOT NULL DEFAULT '',
    manager_id          TEXT,
    department_code     TEXT NOT NULL DEFAULT '',
    department          TEXT NOT NULL DEFAULT '',
    team_code           TEXT,
    team                TEXT,
    is_department_head  BOOLEAN NOT NULL DEFAULT FALSE,
    updated_at          TIMESTAMPTZ DEFAULT NOW()
);

CREATE INDEX IF NOT EXISTS idx_positions_seq
    ON positions(seq);

CREATE TABLE IF NOT EXISTS view_state (
    state_key   TEXT PRIMARY KEY,
    payload     JSONB NOT NULL,
    updated_at  TIMESTAMPTZ DEFAULT NOW()
);
"""

_SELECT_COLUMNS = (
    "id, name, title, manager_id, department_code, department, "
    "team_code, team, is_department_head"
)


def parse_database_url(database_url: str) -> Dict[str, Any]:
    """
    Split a postgres URL into pg8000 connection kwargs.

    Manual parser: urlparse chokes on special chars ([], @) in passwords.
    """
    url = database_url.split("://", 1)[1]
    # Split at LAST @ to separate credentials from host (password may contain @)
    at_idx = url.rfind("@")
    credentials = url[:at_idx]
    host_part = url[at_idx + 1:]
    # Split credentials at FIRST : to get user and password
    colon_idx = credentials.find(":")
    user = credentials[:colon_idx]
    password = credentials[colon_idx + 1:]
    if "/" in host_part:
        host_port, database = host_part.split("/", 1)
    else:
        host_port, database = host_part, ""
    if ":" in host_port:
        host, port_str = host_port.rsplit(":", 1)
    else:
        host, port_str = host_port, "5432"
    return {
        "user": user,
        "password": password,
        "host": host,
        "port": int(port_str),
        "database": database or "postgres",
    }


class PostgresDirectoryStore:
    """
    PostgreSQL-backed directory store.

    Thread-safe via connection-per-operation pattern.
    """

    def __init__(self, database_url: str, ssl: bool = True) -> None:
        self._connect_kwargs = parse_database_url(database_url)
        self._ssl = ssl
        self._ensure_schema()

    def _get_conn(self) -> pg8000.native.Connection:
        return pg8000.native.Connection(ssl_context=self._ssl, **self._connect_kwargs)

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            for stmt in _INIT_SQL.split(";"):
                if stmt.strip():
                    conn.run(stmt)
        finally:
            conn.close()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def list_all_sync(self) -> List[Position]:
        conn = self._get_conn()
        try:
            rows = conn.run(f"SELECT {_SELECT_COLUMNS} FROM positions ORDER BY seq")
        finally:
            conn.close()
        return [_row_to_position(r) for r in rows]

    async def list_all(self) -> List[Position]:
        return await asyncio.to_thread(self.list_all_sync)

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def update_sync(self, position_id: str, patch: Dict[str, Any]) -> Position:
        validate_patch(position_id, patch)
        conn = self._get_conn()
        try:
            if patch:
                columns = sorted(patch)
                assignments = ", ".join(f"{c} = :{c}" for c in columns)
                try:
                    conn.run(
                        f"UPDATE positions SET {assignments}, updated_at = NOW() WHERE id = :pid",
                        pid=position_id,
                        **{c: patch[c] for c in columns},
                    )
                except pg8000.exceptions.DatabaseError as exc:
                    raise DirectoryStoreError(position_id, str(exc)) from exc
            rows = conn.run(
                f"SELECT {_SELECT_COLUMNS} FROM positions WHERE id = :pid",
                pid=position_id,
            )
        finally:
            conn.close()
        if not rows:
            raise DirectoryStoreError(position_id, "position not found")
        return _row_to_position(rows[0])

    async def update(self, position_id: str, patch: Dict[str, Any]) -> Position:
        return await asyncio.to_thread(self.update_sync, position_id, patch)

    # ------------------------------------------------------------------
    # View state
    # ------------------------------------------------------------------

    def load_view_state_sync(self) -> Optional[dict]:
        conn = self._get_conn()
        try:
            rows = conn.run(
                "SELECT payload FROM view_state WHERE state_key = :key",
                key=VIEW_STATE_KEY,
            )
        finally:
            conn.close()
        if not rows:
            return None
        payload = rows[0][0]
        return payload if isinstance(payload, dict) else json.loads(payload)

    def save_view_state_sync(self, state: dict) -> None:
        conn = self._get_conn()
        try:
            conn.run(
                """
                INSERT INTO view_state (state_key, payload, updated_at)
                VALUES (:key, CAST(:payload AS JSONB), NOW())
                ON CONFLICT (state_key) DO UPDATE SET
                    payload = EXCLUDED.payload,
                    updated_at = NOW()
                """,
                key=VIEW_STATE_KEY,
                payload=json.dumps(state),
            )
        finally:
            conn.close()

    async def load_view_state(self) -> Optional[dict]:
        return await asyncio.to_thread(self.load_view_state_sync)

    async def save_view_state(self, state: dict) -> None:
        await asyncio.to_thread(self.save_view_state_sync, state)


def _row_to_position(row: list) -> Position:
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
