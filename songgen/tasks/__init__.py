"""Generation task registry and background processing."""

from songgen.tasks.models import Clip, GenerationTask, TaskStatus, new_task_id
from songgen.tasks.store import (
    FileTaskStore,
    InMemoryTaskStore,
    TaskStore,
    get_task_store,
    reset_task_store,
)

__all__ = [
    "Clip",
    "GenerationTask",
    "TaskStatus",
    "new_task_id",
    "TaskStore",
    "InMemoryTaskStore",
    "FileTaskStore",
    "get_task_store",
    "reset_task_store",
]
