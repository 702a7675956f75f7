"""Background poller: drives a PROCESSING task to COMPLETED, PARTIAL or FAILED.

Sequence per task:
  1. wait ``initial_wait`` seconds after submission;
  2. up to ``max_attempts`` status checks, ``poll_interval`` apart, while the
     task is still PROCESSING; new clips are merged as they appear and the
     task completes as soon as ``total_expected`` clips are known;
  3. on exhaustion, keep what arrived (PARTIAL) or fail with a timeout;
  4. COMPLETED / PARTIAL tasks are handed to ``on_finished`` exactly once.

Errors on one attempt are logged and the loop moves on, except on the last
attempt, where they end the task as FAILED without calling ``on_finished``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Protocol

from songgen.provider.errors import ProviderHTTPError
from songgen.provider.retry import Sleep
from songgen.provider.suno_client import ProviderStatus
from songgen.tasks.models import GenerationTask, TaskStatus
from songgen.tasks.store import TaskStore

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = (
    "Timeout: song generation is taking longer than expected. Please try again later."
)

FinishedHook = Callable[[GenerationTask], Awaitable[None]]


class StatusSource(Protocol):
    async def get_status(self, provider_task_id: str, max_attempts: int = 2) -> ProviderStatus: ...


class TaskPoller:
    def __init__(
        self,
        task_store: TaskStore,
        provider: StatusSource,
        on_finished: FinishedHook | None = None,
        initial_wait: float = 10.0,
        poll_interval: float = 7.0,
        max_attempts: int = 45,
        status_attempts: int = 2,
        sleep: Sleep = asyncio.sleep,
    ):
        self._store = task_store
        self._provider = provider
        self._on_finished = on_finished
        self.initial_wait = initial_wait
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts
        self.status_attempts = status_attempts
        self._sleep = sleep

    async def run(self, task_id: str) -> GenerationTask | None:
        task = self._store.get(task_id)
        if task is None:
            logger.warning("[%s] Task not found, nothing to poll", task_id)
            return None
        if task.status.is_terminal:
            return task

        attempts = 0
        try:
            logger.info("[%s] Waiting %.0fs before first status check", task_id, self.initial_wait)
            await self._sleep(self.initial_wait)

            while attempts < self.max_attempts and task.status is TaskStatus.PROCESSING:
                attempts += 1
                last = attempts >= self.max_attempts
                logger.info("[%s] Status check %d/%d", task_id, attempts, self.max_attempts)
                try:
                    await self._poll_once(task, attempts)
                except asyncio.CancelledError:
                    raise
                except ProviderHTTPError as e:
                    logger.warning("[%s] Status check %d failed: %s", task_id, attempts, e)
                    if last:
                        raise
                except Exception as e:
                    logger.warning("[%s] Error on attempt %d: %s", task_id, attempts, e)
                    if last:
                        raise

                if not last and task.status is TaskStatus.PROCESSING:
                    await self._sleep(self.poll_interval)

            if task.status is TaskStatus.PROCESSING:
                if task.audio_clips:
                    task.transition(TaskStatus.PARTIAL)
                    task.metadata["total_clips"] = len(task.audio_clips)
                    task.metadata["processing_time"] = f"{attempts} attempts (partial)"
                    logger.warning(
                        "[%s] Timed out with %d/%d clips, keeping partial result",
                        task_id, len(task.audio_clips), task.total_expected,
                    )
                else:
                    task.transition(TaskStatus.FAILED, TIMEOUT_MESSAGE)
                    logger.error("[%s] Timed out with no clips after %d attempts", task_id, attempts)
                self._store.update(task)

        except asyncio.CancelledError:
            logger.info("[%s] Poller cancelled after %d attempts", task_id, attempts)
            raise
        except Exception as e:
            logger.error("[%s] Background processing failed: %s", task_id, e)
            task.transition(TaskStatus.FAILED, str(e) or type(e).__name__)
            self._store.update(task)
            return task

        if task.status in (TaskStatus.COMPLETED, TaskStatus.PARTIAL) and self._on_finished:
            try:
                await self._on_finished(task)
            except Exception:
                logger.exception("[%s] Post-completion hook failed", task_id)
            self._store.update(task)
        return task

    async def _poll_once(self, task: GenerationTask, attempt: int) -> None:
        tid = task.task_id
        status = await self._provider.get_status(task.provider_task_id, max_attempts=self.status_attempts)

        if status.is_success:
            clips = status.extract_clips(
                fallback_title=task.metadata.get("song_title") or "Song",
                start_index=len(task.audio_clips),
            )
            added = task.merge_clips(clips)
            if added:
                logger.info(
                    "[%s] %d new clips (total %d/%d)",
                    tid, len(added), len(task.audio_clips), task.total_expected,
                )
                self._store.update(task)
            if len(task.audio_clips) >= task.total_expected:
                task.transition(TaskStatus.COMPLETED)
                task.metadata["total_clips"] = len(task.audio_clips)
                task.metadata["processing_time"] = f"{attempt} attempts"
                self._store.update(task)
                logger.info("[%s] All clips ready", tid)
        elif status.is_pending:
            logger.debug("[%s] Provider still processing (%s)", tid, status.status)
        else:
            logger.warning("[%s] Unrecognised provider status: %r", tid, status.status)
