"""Owns detached background jobs (pollers, cover polling, registry purge)."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Coroutine

from songgen.tasks.store import TaskStore

logger = logging.getLogger(__name__)


class TaskSupervisor:
    """Keeps strong references to spawned jobs, logs their crashes and
    cancels whatever is still running on shutdown."""

    def __init__(self) -> None:
        self._jobs: dict[str, asyncio.Task[Any]] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._jobs

    def __len__(self) -> int:
        return len(self._jobs)

    def spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> asyncio.Task[Any]:
        existing = self._jobs.get(name)
        if existing is not None and not existing.done():
            coro.close()
            logger.debug("Job %s already running", name)
            return existing
        job = asyncio.create_task(coro, name=name)
        self._jobs[name] = job
        job.add_done_callback(lambda t, n=name: self._on_done(n, t))
        return job

    def _on_done(self, name: str, job: asyncio.Task[Any]) -> None:
        if self._jobs.get(name) is job:
            del self._jobs[name]
        if job.cancelled():
            return
        exc = job.exception()
        if exc is not None:
            logger.error("Background job %s crashed: %r", name, exc, exc_info=exc)

    async def join(self, name: str) -> Any:
        job = self._jobs.get(name)
        if job is None:
            return None
        return await job

    async def shutdown(self) -> None:
        jobs = list(self._jobs.values())
        if not jobs:
            return
        logger.info("Cancelling %d background jobs", len(jobs))
        for job in jobs:
            job.cancel()
        await asyncio.gather(*jobs, return_exceptions=True)
        self._jobs.clear()

    def resume_processing(self, task_store: TaskStore, poller) -> int:
        """Restart pollers for PROCESSING tasks left by a previous process."""
        pending = task_store.list_processing()
        for task in pending:
            self.spawn(task.task_id, poller.run(task.task_id))
        if pending:
            logger.info("Resumed polling for %d tasks", len(pending))
        return len(pending)

    def start_purge_loop(self, task_store: TaskStore, interval_s: float) -> asyncio.Task[Any]:
        return self.spawn("registry-purge", _purge_forever(task_store, interval_s))


async def _purge_forever(task_store: TaskStore, interval_s: float) -> None:
    while True:
        await asyncio.sleep(interval_s)
        try:
            task_store.purge_expired()
        except Exception:
            logger.exception("Task registry purge failed")
