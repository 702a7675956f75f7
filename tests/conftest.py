"""Pytest configuration and shared fixtures."""

from datetime import timedelta

import pytest

from fakes import FakeSleep
from songgen.config import Settings
from songgen.songs.store import FileSongStore
from songgen.tasks.models import GenerationTask
from songgen.tasks.store import InMemoryTaskStore


@pytest.fixture
def settings(tmp_path):
    s = Settings(
        _env_file=None,
        suno_api_key="suno-test-key",
        openai_api_key="sk-test",
        songgen_llm_provider="openai",
        songgen_data_dir=str(tmp_path / "data"),
        supabase_url=None,
        supabase_service_key=None,
    )
    s.ensure_dirs()
    return s


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def task_store():
    return InMemoryTaskStore(ttl=timedelta(hours=24))


@pytest.fixture
def song_store(tmp_path):
    return FileSongStore(tmp_path / "songs")


@pytest.fixture
def make_task(task_store):
    """Register a PROCESSING task polled as provider task ``abc``."""

    def _make(**kwargs) -> GenerationTask:
        defaults = {
            "task_id": "task_1_abcdefghi",
            "provider_job_ids": ["abc"],
            "lyrics": "La la la",
            "metadata": {"song_title": "Birthday Song", "user_id": "user-1"},
        }
        defaults.update(kwargs)
        task = GenerationTask(**defaults)
        task_store.create(task)
        return task

    return _make
