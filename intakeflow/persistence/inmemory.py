"""In-memory implementation of the progress repository."""

from __future__ import annotations

from typing import Dict

from .migrations import decode_snapshot
from .models import PersistedSnapshot
from .repository import ProgressRepository


class InMemoryProgressRepository(ProgressRepository):
    """Store progress snapshots in local memory.

    Useful for tests or when no database is configured. Snapshots are kept
    serialized, so a load always returns a fresh copy just like a real
    backend would.
    """

    def __init__(self) -> None:
        self._records: Dict[str, str] = {}

    async def load(self, session_id: str) -> PersistedSnapshot | None:
        record = self._records.get(session_id)
        if record is None:
            return None
        return decode_snapshot(record)

    async def save(self, session_id: str, snapshot: PersistedSnapshot) -> None:
        self._records[session_id] = snapshot.to_json()

    async def clear(self, session_id: str) -> None:
        self._records.pop(session_id, None)

    async def list_sessions(self) -> list[str]:
        return sorted(self._records)

    def put_raw(self, session_id: str, record: str) -> None:
        """Store an undecoded record, e.g. one written by an older release."""
        self._records[session_id] = record
