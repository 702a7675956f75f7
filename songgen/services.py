"""Wires settings, stores, provider client and background jobs together."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from songgen.config import Settings, get_settings
from songgen.cover import CoverArtService
from songgen.llm import get_provider
from songgen.lyrics.generator import Lyricist
from songgen.provider.retry import Sleep
from songgen.provider.suno_client import SunoClient
from songgen.songs.store import SongStore, get_song_store
from songgen.tasks.orchestrator import GenerationOrchestrator
from songgen.tasks.store import TaskStore, get_task_store
from songgen.tasks.supervisor import TaskSupervisor

logger = logging.getLogger(__name__)


def build_lyricist(settings: Settings) -> Lyricist | None:
    """Lyricist for the configured LLM, or None when no key is set."""
    api_key = settings.lyrics_api_key
    if not api_key:
        return None
    llm = get_provider(settings.songgen_llm_provider, api_key=api_key, model=settings.lyrics_model)
    return Lyricist(llm)


@dataclass
class Services:
    settings: Settings
    task_store: TaskStore
    song_store: SongStore
    client: SunoClient
    supervisor: TaskSupervisor
    cover: CoverArtService
    orchestrator: GenerationOrchestrator

    async def aclose(self) -> None:
        await self.supervisor.shutdown()
        await self.client.aclose()


def build_services(
    settings: Settings | None = None,
    task_store: TaskStore | None = None,
    song_store: SongStore | None = None,
    client: SunoClient | None = None,
    lyricist: Lyricist | None = None,
    sleep: Sleep = asyncio.sleep,
) -> Services:
    settings = settings or get_settings()
    task_store = task_store if task_store is not None else get_task_store()
    song_store = song_store if song_store is not None else get_song_store()
    if client is None:
        client = SunoClient(
            api_key=settings.suno_api_key or "",
            base_url=settings.suno_api_base,
            callback_url=settings.provider_callback_url,
            timeout=settings.suno_timeout_s,
            submit_attempts=settings.submit_attempts,
            sleep=sleep,
        )
    if lyricist is None:
        lyricist = build_lyricist(settings)
    supervisor = TaskSupervisor()
    cover = CoverArtService(
        client,
        song_store,
        callback_url=f"{settings.callback_base_url}/api/suno-cover-callback",
        poll_timeout=settings.cover_poll_timeout_s,
        poll_interval=settings.cover_poll_interval_s,
        sleep=sleep,
    )
    orchestrator = GenerationOrchestrator(
        settings,
        task_store,
        song_store,
        client,
        lyricist,
        supervisor,
        cover=cover,
        sleep=sleep,
    )
    if not settings.suno_api_key:
        logger.warning("SUNO_API_KEY is not set; music generation requests will fail")
    if lyricist is None:
        logger.warning("No LLM key for provider '%s'; lyrics must be supplied by the client", settings.songgen_llm_provider)
    return Services(settings, task_store, song_store, client, supervisor, cover, orchestrator)
