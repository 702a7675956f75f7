"""Song record schema."""

from __future__ import annotations

from datetime import datetime, timezone

from pydantic import BaseModel, Field


class SongRecord(BaseModel):
    """A generated song as written to the song store."""

    id: str = ""
    user_id: str | None = None
    guest_id: str | None = None
    title: str = ""
    lyrics: str | None = None
    prompt: str = ""
    genre: str | None = None
    mood: str | None = None
    audio_url_option1: str | None = None
    audio_url_option2: str | None = None
    image_url: str | None = None
    task_id: str = ""  # provider task id
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class UsageRecord(BaseModel):
    """Free-song usage for one user or device."""

    user_id: str | None = None
    device_id: str | None = None
    free_songs_used: int = 0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class PaymentRecord(BaseModel):
    payment_intent_id: str
    status: str = "succeeded"
    user_id: str | None = None
    device_id: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
