"""Generation task schema and status."""

from __future__ import annotations

import secrets
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TaskStatus(str, Enum):
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self is not TaskStatus.PROCESSING


class Clip(BaseModel):
    """One synthesized audio result."""

    id: str
    title: str = ""
    audio_url: str
    image_url: str | None = None


class GenerationTask(BaseModel):
    """One logical music-generation request, tracked until a terminal status."""

    task_id: str
    provider_job_ids: list[str] = Field(default_factory=list)
    status: TaskStatus = TaskStatus.PROCESSING
    audio_clips: list[Clip] = Field(default_factory=list)
    completed_clips: int = 0
    total_expected: int = 2
    lyrics: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    start_time: datetime = Field(default_factory=_utcnow)
    last_update: datetime = Field(default_factory=_utcnow)
    error: str | None = None

    @property
    def provider_task_id(self) -> str:
        """Value sent as ``taskId`` when polling the provider."""
        return ",".join(self.provider_job_ids)

    @property
    def clip_ids(self) -> set[str]:
        return {c.id for c in self.audio_clips}

    def merge_clips(self, clips: Iterable[Clip]) -> list[Clip]:
        """Append clips with unseen ids. Returns the clips actually added."""
        if self.status.is_terminal:
            return []
        known = self.clip_ids
        added: list[Clip] = []
        for clip in clips:
            if clip.id in known:
                continue
            known.add(clip.id)
            added.append(clip)
        if added:
            self.audio_clips.extend(added)
            self.completed_clips = len(self.audio_clips)
            self.last_update = _utcnow()
        return added

    def transition(self, status: TaskStatus, error: str | None = None) -> bool:
        """Move to a terminal status once. False if already terminal."""
        if self.status.is_terminal or not status.is_terminal:
            return False
        self.status = status
        if status is TaskStatus.FAILED:
            self.error = error
        self.last_update = _utcnow()
        return True


_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_task_id() -> str:
    """``task_<epoch-ms>_<9 random base36 chars>``."""
    suffix = "".join(secrets.choice(_ID_ALPHABET) for _ in range(9))
    return f"task_{int(time.time() * 1000)}_{suffix}"
