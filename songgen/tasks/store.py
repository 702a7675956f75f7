"""Task registry: in-memory (default) or file-based, with TTL eviction."""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from songgen.config import get_settings
from songgen.tasks.models import GenerationTask, TaskStatus

logger = logging.getLogger(__name__)


class TaskStore(Protocol):
    def create(self, task: GenerationTask) -> GenerationTask: ...
    def get(self, task_id: str) -> GenerationTask | None: ...
    def update(self, task: GenerationTask) -> None: ...
    def purge_expired(self, now: datetime | None = None) -> int: ...
    def list_processing(self) -> list[GenerationTask]: ...


def _is_expired(task: GenerationTask, ttl: timedelta, now: datetime) -> bool:
    return now - task.last_update > ttl


# ---------------------------------------------------------------------------
# In-memory implementation
# ---------------------------------------------------------------------------

class InMemoryTaskStore:
    """Process-local registry. Readers get the live object, so updates made
    by the poller between awaits are visible without a copy."""

    def __init__(self, ttl: timedelta = timedelta(hours=24)):
        self._ttl = ttl
        self._tasks: dict[str, GenerationTask] = {}

    def __len__(self) -> int:
        return len(self._tasks)

    def create(self, task: GenerationTask) -> GenerationTask:
        self._tasks[task.task_id] = task
        return task

    def get(self, task_id: str) -> GenerationTask | None:
        return self._tasks.get(task_id)

    def update(self, task: GenerationTask) -> None:
        self._tasks[task.task_id] = task

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        expired = [tid for tid, t in self._tasks.items() if _is_expired(t, self._ttl, now)]
        for tid in expired:
            del self._tasks[tid]
        if expired:
            logger.info("Purged %d expired tasks", len(expired))
        return len(expired)

    def list_processing(self) -> list[GenerationTask]:
        return [t for t in self._tasks.values() if t.status is TaskStatus.PROCESSING]


# ---------------------------------------------------------------------------
# File-based implementation (survives restarts)
# ---------------------------------------------------------------------------

class FileTaskStore:
    """Persist tasks as JSON files, one per task."""

    def __init__(self, tasks_dir: Path, ttl: timedelta = timedelta(hours=24)):
        self._dir = Path(tasks_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._ttl = ttl

    def _task_path(self, task_id: str) -> Path:
        return self._dir / f"{task_id}.json"

    def create(self, task: GenerationTask) -> GenerationTask:
        self._write_task(task)
        return task

    def get(self, task_id: str) -> GenerationTask | None:
        path = self._task_path(task_id)
        if not path.exists():
            return None
        return self._read_task(path)

    def update(self, task: GenerationTask) -> None:
        self._write_task(task)

    def purge_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(timezone.utc)
        removed = 0
        for path in self._dir.glob("task_*.json"):
            try:
                task = self._read_task(path)
            except (OSError, ValueError) as e:
                logger.warning("Unreadable task file %s (%s), removing", path.name, e)
                path.unlink(missing_ok=True)
                removed += 1
                continue
            if _is_expired(task, self._ttl, now):
                path.unlink(missing_ok=True)
                removed += 1
        if removed:
            logger.info("Purged %d expired task files", removed)
        return removed

    def list_processing(self) -> list[GenerationTask]:
        tasks = []
        for path in self._dir.glob("task_*.json"):
            try:
                task = self._read_task(path)
            except (OSError, ValueError) as e:
                logger.warning("Skipping unreadable task file %s: %s", path.name, e)
                continue
            if task.status is TaskStatus.PROCESSING:
                tasks.append(task)
        return tasks

    def _write_task(self, task: GenerationTask) -> None:
        path = self._task_path(task.task_id)
        tmp = path.with_suffix(".json.tmp")
        with open(tmp, "w", encoding="utf-8") as f:
            json.dump(task.model_dump(mode="json"), f, indent=2, default=str)
        tmp.replace(path)

    def _read_task(self, path: Path) -> GenerationTask:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        return GenerationTask.model_validate(data)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_store: TaskStore | None = None


def get_task_store() -> TaskStore:
    """Return singleton task store (``SONGGEN_TASK_BACKEND``: memory | file)."""
    global _store
    if _store is not None:
        return _store
    settings = get_settings()
    ttl = timedelta(hours=settings.task_ttl_hours)
    backend = settings.songgen_task_backend.lower()
    if backend == "file":
        _store = FileTaskStore(settings.tasks_dir, ttl=ttl)
        logger.info("Using file-based task store (%s)", settings.tasks_dir)
    else:
        if backend != "memory":
            logger.warning("Unknown task backend '%s', using in-memory store", backend)
        _store = InMemoryTaskStore(ttl=ttl)
        logger.info("Using in-memory task store")
    return _store


def reset_task_store() -> None:
    global _store
    _store = None
