"""Persistence layer for intake progress."""

from __future__ import annotations

import os
from typing import Optional
from urllib.parse import urlparse

from ..config import IntakeConfig, load_config
from .inmemory import InMemoryProgressRepository
from .migrations import decode_snapshot, migrate_snapshot
from .models import PersistedSnapshot
from .repository import ProgressRepository
from .sqlite import SQLiteProgressRepository

_repository_instance: ProgressRepository | None = None


def get_repository(
    database_url: Optional[str] = None, config: Optional[IntakeConfig] = None
) -> ProgressRepository:
    """Factory function to obtain a progress repository.

    The backend is selected from ``database_url``, which can be provided
    explicitly, via the ``INTAKEFLOW_DATABASE_URL`` environment variable, or
    from loaded configuration. When nothing is configured an in-memory
    repository is returned.
    """

    global _repository_instance
    if _repository_instance is not None and database_url is None and config is None:
        return _repository_instance

    config = config or load_config()
    database_url = (
        database_url
        or os.getenv("INTAKEFLOW_DATABASE_URL")
        or config.storage.database_url
    )

    if not database_url:
        _repository_instance = InMemoryProgressRepository()
        return _repository_instance

    if database_url.startswith("sqlite://"):
        path = database_url.replace("sqlite://", "", 1)
        _repository_instance = SQLiteProgressRepository(path)
    elif database_url.startswith("redis://"):
        from .redis import RedisProgressRepository

        parsed = urlparse(database_url)
        redis_conf = config.storage.redis
        _repository_instance = RedisProgressRepository(
            host=parsed.hostname or redis_conf.host,
            port=parsed.port or redis_conf.port,
            db=int(parsed.path.lstrip("/") or redis_conf.db),
            password=parsed.password or redis_conf.password,
        )
    else:
        raise ValueError(f"Unsupported database backend: {database_url}")

    return _repository_instance


__all__ = [
    "InMemoryProgressRepository",
    "PersistedSnapshot",
    "ProgressRepository",
    "SQLiteProgressRepository",
    "decode_snapshot",
    "get_repository",
    "migrate_snapshot",
]
