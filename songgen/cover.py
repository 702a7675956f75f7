"""Cover art for finished songs: request, poll as a fallback, accept callbacks."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any

from songgen.provider.retry import Sleep
from songgen.provider.suno_client import SunoClient, parse_cover_payload
from songgen.songs.store import SongStore

logger = logging.getLogger(__name__)


@dataclass
class CoverMapping:
    provider_task_id: str
    song_id: str | None = None


class CoverArtService:
    def __init__(
        self,
        provider: SunoClient,
        song_store: SongStore,
        callback_url: str,
        poll_timeout: float = 120.0,
        poll_interval: float = 5.0,
        sleep: Sleep = asyncio.sleep,
        clock=time.monotonic,
    ):
        self._provider = provider
        self._songs = song_store
        self._callback_url = callback_url
        self.poll_timeout = poll_timeout
        self.poll_interval = poll_interval
        self._sleep = sleep
        self._clock = clock
        self.pending: dict[str, CoverMapping] = {}

    async def request(self, provider_task_id: str, song_id: str | None = None) -> str | None:
        """Ask the provider for a cover. Returns the cover task id, if any."""
        try:
            cover_task_id = await self._provider.request_cover(provider_task_id, self._callback_url)
        except Exception as e:
            logger.warning("Cover request failed for %s: %s", provider_task_id, e)
            return None
        if not cover_task_id:
            logger.info("Cover response had no taskId for %s", provider_task_id)
            return None
        self.pending[cover_task_id] = CoverMapping(provider_task_id, song_id)
        logger.info("Cover task %s -> provider task %s (song %s)", cover_task_id, provider_task_id, song_id)
        return cover_task_id

    async def poll_until_ready(self, cover_task_id: str) -> str | None:
        """Fallback for when the callback URL is not publicly reachable."""
        mapping = self.pending.get(cover_task_id)
        if mapping is None:
            return None
        deadline = self._clock() + self.poll_timeout
        while self._clock() < deadline:
            if cover_task_id not in self.pending:
                return None  # callback already handled it
            try:
                status = await self._provider.get_cover_status(cover_task_id)
            except Exception as e:
                logger.warning("Cover poll error for %s: %s", cover_task_id, e)
                status = None
            if status is not None and status.is_ready:
                self._apply(cover_task_id, mapping, status.image_url)
                return status.image_url
            await self._sleep(self.poll_interval)
        logger.warning("Timed out waiting for cover %s", cover_task_id)
        self.pending.pop(cover_task_id, None)
        return None

    def handle_callback(self, payload: dict[str, Any]) -> str | None:
        """Apply a provider callback. Returns the updated song id, if any."""
        data = payload.get("data") if isinstance(payload.get("data"), dict) else {}
        cover_task_id = data.get("taskId") or payload.get("taskId") or data.get("id")
        image_url = parse_cover_payload(payload).image_url or data.get("url")
        if not cover_task_id or not image_url:
            logger.info("Cover callback without task id or image, acknowledging")
            return None
        mapping = self.pending.get(cover_task_id)
        if mapping is None:
            logger.info("Cover callback for unknown task %s", cover_task_id)
            return None
        return self._apply(cover_task_id, mapping, image_url)

    def _apply(self, cover_task_id: str, mapping: CoverMapping, image_url: str) -> str | None:
        self.pending.pop(cover_task_id, None)
        try:
            song_id = self._songs.update_image_by_task(mapping.provider_task_id, image_url)
        except Exception as e:
            logger.warning("Could not store cover for %s: %s", mapping.provider_task_id, e)
            return None
        logger.info("Cover stored for provider task %s (song %s)", mapping.provider_task_id, song_id)
        return song_id
