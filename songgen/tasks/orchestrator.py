"""Request-time flow: paywall, lyrics, provider submit, task registration."""

from __future__ import annotations

import asyncio
import logging
from typing import Union

from songgen.config import Settings
from songgen.cover import CoverArtService
from songgen.errors import ConfigurationError, PaywallError, ValidationFailed
from songgen.identity import Identity
from songgen.lyrics.generator import Lyricist
from songgen.paywall import check_paywall
from songgen.persistence import SongPersister
from songgen.provider.retry import Sleep
from songgen.provider.suno_client import SunoClient
from songgen.schemas.generation import (
    GenerateMusicResponse,
    GenerateSongRequest,
    LyricsOnlyResponse,
)
from songgen.songs.store import SongStore
from songgen.tasks.models import GenerationTask, TaskStatus, new_task_id
from songgen.tasks.poller import TaskPoller
from songgen.tasks.store import TaskStore
from songgen.tasks.supervisor import TaskSupervisor

logger = logging.getLogger(__name__)

GenerationResult = Union[GenerateMusicResponse, LyricsOnlyResponse]


class GenerationOrchestrator:
    """Validates a request, submits it and hands the task to a background poller.

    The response is returned as soon as the task is registered; the poller
    owns the task from then on.
    """

    def __init__(
        self,
        settings: Settings,
        task_store: TaskStore,
        song_store: SongStore,
        provider: SunoClient,
        lyricist: Lyricist | None,
        supervisor: TaskSupervisor,
        cover: CoverArtService | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self.settings = settings
        self.tasks = task_store
        self.songs = song_store
        self.provider = provider
        self.lyricist = lyricist
        self.supervisor = supervisor
        self.cover = cover
        self.persister = SongPersister(song_store, settings.free_song_limit)
        self.poller = TaskPoller(
            task_store,
            provider,
            on_finished=self._on_finished,
            initial_wait=settings.poll_initial_wait_s,
            poll_interval=settings.poll_interval_s,
            max_attempts=settings.poll_max_attempts,
            status_attempts=settings.poll_status_attempts,
            sleep=sleep,
        )

    async def generate(self, request: GenerateSongRequest, identity: Identity) -> GenerationResult:
        if request.lyrics_only:
            return await self._lyrics_only(request)
        return await self._start_music(request, identity)

    async def _lyrics_only(self, request: GenerateSongRequest) -> LyricsOnlyResponse:
        if self.lyricist is None or not self.settings.lyrics_api_key:
            raise ConfigurationError("LLM API key is not configured")
        title, lyrics = await self.lyricist.write_title_and_lyrics(request)
        logger.info("Lyrics-only request for %s answered", request.recipient_name)
        return LyricsOnlyResponse(song_title=title, lyrics=lyrics)

    async def _start_music(self, request: GenerateSongRequest, identity: Identity) -> GenerateMusicResponse:
        settings = self.settings
        if not settings.suno_api_key:
            raise ConfigurationError("Suno API key is not configured")
        needs_lyrics = not (request.lyrics and request.lyrics.strip())
        if needs_lyrics and (self.lyricist is None or not settings.lyrics_api_key):
            raise ConfigurationError("LLM API key is not configured")
        if identity.is_anonymous:
            raise ValidationFailed("A user id, guest id or device id is required")

        decision = check_paywall(self.songs, identity, settings.free_song_limit)
        if not decision.allowed:
            raise PaywallError(decision.free_songs_used, decision.limit)

        if needs_lyrics:
            lyrics = await self.lyricist.write_lyrics(request)
        else:
            lyrics = request.lyrics.strip()

        title = request.song_title or f"Song for {request.recipient_name}"
        provider_task_id = await self.provider.submit(
            prompt=lyrics,
            style=request.style,
            title=title,
            model=settings.suno_model,
        )

        task = GenerationTask(
            task_id=new_task_id(),
            provider_job_ids=[provider_task_id],
            total_expected=settings.expected_clips,
            lyrics=lyrics,
            metadata={
                "song_title": title,
                "recipient_name": request.recipient_name,
                "sender_name": request.sender_name,
                "occasion": request.occasion,
                "relationship": request.relationship,
                "emotional_tone": request.emotional_tone,
                "genre": request.genre,
                "mood": request.mood,
                "tempo": request.tempo,
                "duration": request.duration,
                "model": settings.suno_model,
                "user_id": identity.user_id,
                "guest_id": identity.guest_id,
                "device_id": identity.device_id,
            },
        )
        self.tasks.create(task)
        logger.info(
            "[%s] Registered for %s (provider task %s)",
            task.task_id, identity.describe(), provider_task_id,
        )
        self.supervisor.spawn(task.task_id, self.poller.run(task.task_id))
        return GenerateMusicResponse(task_id=task.task_id, expected_clips=task.total_expected)

    def resume(self) -> int:
        """Restart polling for tasks still PROCESSING in the registry."""
        return self.supervisor.resume_processing(self.tasks, self.poller)

    async def _on_finished(self, task: GenerationTask) -> None:
        song = await self.persister.persist(task)
        if task.status is not TaskStatus.COMPLETED or self.cover is None:
            return
        cover_task_id = await self.cover.request(task.provider_task_id, song.id if song else None)
        if cover_task_id:
            task.metadata["cover_task_id"] = cover_task_id
            self.supervisor.spawn(f"cover:{cover_task_id}", self.cover.poll_until_ready(cover_task_id))
