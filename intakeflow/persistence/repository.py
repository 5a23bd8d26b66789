"""Repository abstraction for intake progress persistence."""

from __future__ import annotations

from typing import Protocol

from .models import PersistedSnapshot


class ProgressRepository(Protocol):
    """Protocol for progress snapshot storage backends.

    One snapshot per session id; writes are last-write-wins.
    """

    async def load(self, session_id: str) -> PersistedSnapshot | None:
        """Return the stored snapshot, migrated to the current schema."""

    async def save(self, session_id: str, snapshot: PersistedSnapshot) -> None:
        """Persist ``snapshot``, replacing any previous one."""

    async def clear(self, session_id: str) -> None:
        """Delete the stored snapshot, if any."""

    async def list_sessions(self) -> list[str]:
        """Return all session ids with a stored snapshot."""
