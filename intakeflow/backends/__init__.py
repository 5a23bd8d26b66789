"""Backend factory and initialization."""

from __future__ import annotations

import os
from typing import Optional

from ..config import IntakeConfig, load_config
from .base import BaseIntakeBackend
from .inmemory import InMemoryIntakeBackend


def get_backend(
    kind: Optional[str] = None, config: Optional[IntakeConfig] = None
) -> BaseIntakeBackend:
    """Factory function to get the configured intake service client."""

    config = config or load_config()
    kind = (kind or os.getenv("INTAKEFLOW_BACKEND") or config.backend.kind).lower()

    if kind == "inmemory":
        return InMemoryIntakeBackend()
    elif kind == "http":
        from .http import HttpIntakeBackend

        return HttpIntakeBackend(
            base_url=config.backend.base_url, timeout=config.backend.timeout
        )
    else:
        raise ValueError(f"Unsupported intake backend: {kind}")


__all__ = ["BaseIntakeBackend", "InMemoryIntakeBackend", "get_backend"]
