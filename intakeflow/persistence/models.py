"""Data models for persisted intake progress."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from ..constants import SNAPSHOT_SCHEMA_VERSION
from ..contracts import AnswerSet
from ..steps import LAST_STEP_INDEX


class PersistedSnapshot(BaseModel):
    """Everything needed to resume a session after a reload."""

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    answers: AnswerSet = Field(default_factory=AnswerSet)
    current_step_index: int = Field(0, ge=0, le=LAST_STEP_INDEX)
    completed: bool = False
    draft_id: Optional[str] = None
    conflict_email: Optional[str] = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_json(self) -> str:
        return self.model_dump_json()
