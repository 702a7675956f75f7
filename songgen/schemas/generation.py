"""Pydantic models for the song generation endpoints.

The browser client speaks camelCase, so every model aliases its fields with
``to_camel`` and accepts either spelling on input.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from songgen.tasks.models import Clip, GenerationTask, TaskStatus


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Request
# ---------------------------------------------------------------------------

class GenerateSongRequest(_CamelModel):
    """Body for POST /api/generate."""

    # Briefing (required for both wizard steps)
    occasion: str = Field(min_length=1)
    recipient_name: str = Field(min_length=1)
    relationship: str = Field(min_length=1)
    sender_name: str = Field(min_length=1)
    hobbies: str | None = None
    qualities: str | None = None
    unique_traits: str | None = None
    memories: str | None = None

    # Music step
    song_title: str | None = None
    emotional_tone: str | None = None
    genre: str | None = None
    mood: str | None = None
    tempo: str | None = None
    duration: str = "3:00"
    vocal_preference: str | None = None
    instruments: list[str] | None = None
    personal_message: str | None = None
    special_memories: str | None = None
    lyrics: str | None = None
    language: str | None = None

    lyrics_only: bool = False

    @property
    def style(self) -> str:
        """Provider style tag, e.g. ``pop, happy, male vocals``."""
        return f"{self.genre or 'pop'}, {self.mood or 'happy'}, {self.vocal_preference or 'male'} vocals"


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------

class GenerateMusicResponse(_CamelModel):
    success: bool = True
    task_id: str
    status: TaskStatus = TaskStatus.PROCESSING
    message: str = "Generation started. Use the taskId to check progress."
    expected_clips: int = 2


class LyricsOnlyResponse(_CamelModel):
    success: bool = True
    song_title: str
    lyrics: str


class TaskStatusResponse(_CamelModel):
    """Response for GET /api/check-music-status/{task_id}."""

    success: bool = True
    task_id: str
    status: TaskStatus
    audio_clips: list[Clip] = Field(default_factory=list)
    completed_clips: int = 0
    total_expected: int = 2
    lyrics: str = ""
    metadata: dict[str, Any] = Field(default_factory=dict)
    elapsed_time: str = "0m 0s"
    elapsed_seconds: float = 0.0
    error: str | None = None

    def to_json(self) -> dict[str, Any]:
        data = self.model_dump(mode="json", by_alias=True)
        if self.error is None:
            data.pop("error", None)
        return data


def format_elapsed(seconds: float) -> str:
    seconds = max(0, int(seconds))
    return f"{seconds // 60}m {seconds % 60}s"


def build_status_payload(task: GenerationTask, now: datetime | None = None) -> TaskStatusResponse:
    """Read-only view of a task for polling clients."""
    now = now or datetime.now(timezone.utc)
    elapsed = (now - task.start_time).total_seconds()
    elapsed_time = format_elapsed(elapsed)
    metadata = {
        **task.metadata,
        "elapsed_time": elapsed_time,
        "last_update": task.last_update.isoformat(),
    }
    return TaskStatusResponse(
        task_id=task.task_id,
        status=task.status,
        audio_clips=list(task.audio_clips),
        completed_clips=task.completed_clips,
        total_expected=task.total_expected,
        lyrics=task.lyrics,
        metadata=metadata,
        elapsed_time=elapsed_time,
        elapsed_seconds=elapsed,
        error=task.error,
    )
