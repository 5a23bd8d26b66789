"""Redis implementation of the progress repository."""

from __future__ import annotations

from typing import Any, Optional

try:
    import redis.asyncio as redis
except ImportError:
    redis = None

from .migrations import decode_snapshot
from .models import PersistedSnapshot
from .repository import ProgressRepository


class RedisProgressRepository(ProgressRepository):
    """Store progress snapshots as Redis strings, one key per session."""

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        db: int = 0,
        password: Optional[str] = None,
        key_prefix: str = "intakeflow:progress:",
    ) -> None:
        if redis is None:
            raise ImportError("redis package is required for RedisProgressRepository")

        self.host = host
        self.port = port
        self.db = db
        self.password = password
        self.key_prefix = key_prefix
        self._redis: Optional[Any] = None

    async def _client(self) -> Any:
        if self._redis is None:
            self._redis = redis.Redis(
                host=self.host,
                port=self.port,
                db=self.db,
                password=self.password,
                decode_responses=True,
            )
        return self._redis

    def _key(self, session_id: str) -> str:
        return f"{self.key_prefix}{session_id}"

    async def load(self, session_id: str) -> PersistedSnapshot | None:
        client = await self._client()
        record = await client.get(self._key(session_id))
        if record is None:
            return None
        return decode_snapshot(record)

    async def save(self, session_id: str, snapshot: PersistedSnapshot) -> None:
        client = await self._client()
        await client.set(self._key(session_id), snapshot.to_json())

    async def clear(self, session_id: str) -> None:
        client = await self._client()
        await client.delete(self._key(session_id))

    async def list_sessions(self) -> list[str]:
        client = await self._client()
        sessions = []
        async for key in client.scan_iter(match=f"{self.key_prefix}*"):
            sessions.append(key[len(self.key_prefix):])
        return sorted(sessions)
