"""SQLite implementation of the progress repository."""

from __future__ import annotations

import asyncio
import sqlite3
from pathlib import Path
from typing import Any

from .migrations import decode_snapshot
from .models import PersistedSnapshot
from .repository import ProgressRepository


class SQLiteProgressRepository(ProgressRepository):
    """Persist progress snapshots using SQLite."""

    def __init__(self, db_path: str | Path):
        self.db_path = str(db_path)
        self._conn = sqlite3.connect(self.db_path, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        self._ensure_schema()

    # ------------------------------------------------------------------
    # Schema management
    def _ensure_schema(self) -> None:
        cur = self._conn.cursor()
        cur.execute(
            """
            CREATE TABLE IF NOT EXISTS intake_progress (
                session_id TEXT PRIMARY KEY,
                schema_version INTEGER NOT NULL,
                snapshot TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
            """
        )
        self._conn.commit()

    # ------------------------------------------------------------------
    # Helper methods
    def _execute(self, query: str, *params: Any) -> None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        self._conn.commit()

    def _fetchone(self, query: str, *params: Any) -> sqlite3.Row | None:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchone()

    def _fetchall(self, query: str, *params: Any) -> list[sqlite3.Row]:
        cur = self._conn.cursor()
        cur.execute(query, params)
        return cur.fetchall()

    def close(self) -> None:
        self._conn.close()

    # ------------------------------------------------------------------
    # Repository API
    async def load(self, session_id: str) -> PersistedSnapshot | None:
        row = await asyncio.to_thread(
            self._fetchone,
            "SELECT snapshot FROM intake_progress WHERE session_id = ?",
            session_id,
        )
        if not row:
            return None
        return decode_snapshot(row["snapshot"])

    async def save(self, session_id: str, snapshot: PersistedSnapshot) -> None:
        await asyncio.to_thread(
            self._execute,
            """
            INSERT INTO intake_progress (session_id, schema_version, snapshot, updated_at)
            VALUES (?, ?, ?, ?)
            ON CONFLICT(session_id) DO UPDATE SET
                schema_version = excluded.schema_version,
                snapshot = excluded.snapshot,
                updated_at = excluded.updated_at
            """,
            session_id,
            snapshot.schema_version,
            snapshot.to_json(),
            snapshot.updated_at.isoformat(),
        )

    async def clear(self, session_id: str) -> None:
        await asyncio.to_thread(
            self._execute,
            "DELETE FROM intake_progress WHERE session_id = ?",
            session_id,
        )

    async def list_sessions(self) -> list[str]:
        rows = await asyncio.to_thread(
            self._fetchall,
            "SELECT session_id FROM intake_progress ORDER BY session_id",
        )
        return [row["session_id"] for row in rows]
