"""Best-effort save of a finished task and free-quota accounting.

Nothing here raises into the poller: the client already holds a task handle,
so failures are logged and recorded on ``task.metadata``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from songgen.paywall import FREE_SONG_LIMIT, normalize_ids, should_consume_free_song
from songgen.songs.models import SongRecord
from songgen.songs.store import SongStore
from songgen.tasks.models import GenerationTask

logger = logging.getLogger(__name__)


def build_song_record(task: GenerationTask) -> SongRecord:
    meta = task.metadata
    clips = task.audio_clips
    return SongRecord(
        user_id=meta.get("user_id") or None,
        guest_id=meta.get("guest_id") or None,
        title=meta.get("song_title") or "Generated Song",
        lyrics=task.lyrics or None,
        prompt=(
            f"Song for {meta.get('recipient_name')} on the occasion: {meta.get('occasion')}. "
            f"Relationship: {meta.get('relationship')}. Emotional tone: {meta.get('emotional_tone')}"
        ),
        genre=meta.get("genre") or None,
        mood=meta.get("mood") or meta.get("emotional_tone") or None,
        audio_url_option1=clips[0].audio_url if len(clips) > 0 else None,
        audio_url_option2=clips[1].audio_url if len(clips) > 1 else None,
        image_url=clips[0].image_url if clips else None,
        task_id=task.provider_task_id,
    )


class SongPersister:
    """Writes the song and bumps the free counter for its user or canonical device."""

    def __init__(self, song_store: SongStore, free_song_limit: int = FREE_SONG_LIMIT):
        self._songs = song_store
        self._limit = free_song_limit

    async def persist(self, task: GenerationTask) -> SongRecord | None:
        tid = task.task_id
        if not task.audio_clips:
            logger.info("[%s] No audio clips to save", tid)
            return None

        song = self._save(task)
        # Delivered clips spend the quota whether or not the save succeeded.
        self._consume_free_song(task)
        return song

    def _save(self, task: GenerationTask) -> SongRecord | None:
        tid = task.task_id
        if not task.metadata.get("user_id") and not task.metadata.get("guest_id"):
            logger.error("[%s] Cannot save song without user or guest id", tid)
            self._record_failure(task, "Missing user identification")
            return None

        try:
            song = self._songs.create_song(build_song_record(task))
        except Exception as e:
            logger.error("[%s] Failed to save song: %s", tid, e)
            self._record_failure(task, str(e))
            return None

        task.metadata["saved_to_database"] = True
        task.metadata["saved_song_id"] = song.id
        logger.info("[%s] Song saved with id %s", tid, song.id)
        return song

    def _consume_free_song(self, task: GenerationTask) -> None:
        tid = task.task_id
        user_id = task.metadata.get("user_id") or None
        device_ids = normalize_ids([task.metadata.get("device_id"), task.metadata.get("guest_id")])
        if user_id:
            owner, lookup_ids, key = f"user {user_id}", [], {"user_id": user_id}
        elif device_ids:
            owner, lookup_ids, key = f"device {device_ids[0]}", device_ids, {"device_id": device_ids[0]}
        else:
            return

        try:
            used = self._songs.get_free_songs_used(user_id, lookup_ids)
            if should_consume_free_song(used, self._limit):
                new_count = self._songs.increment_free_counter(**key)
                logger.info("[%s] Free song counter for %s: %d -> %d", tid, owner, used, new_count)
        except Exception as e:
            logger.warning("[%s] Free song counter update failed for %s: %s", tid, owner, e)

    @staticmethod
    def _record_failure(task: GenerationTask, message: str) -> None:
        task.metadata["save_error"] = message
        task.metadata["save_failed_at"] = datetime.now(timezone.utc).isoformat()
