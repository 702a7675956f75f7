"""Tests for the request-time flow: lyrics-only, paywall, submit, background hand-off."""

import pytest

from fakes import FakeLyricist, FakeProvider, suno_status
from songgen.cover import CoverArtService
from songgen.errors import ConfigurationError, LyricsQuotaError, PaywallError, ValidationFailed
from songgen.identity import Identity
from songgen.provider.errors import ProviderAuthError
from songgen.provider.suno_client import CoverStatus
from songgen.schemas.generation import GenerateMusicResponse, GenerateSongRequest, LyricsOnlyResponse
from songgen.tasks.models import TaskStatus
from songgen.tasks.orchestrator import GenerationOrchestrator
from songgen.tasks.supervisor import TaskSupervisor

BRIEFING = {
    "occasion": "birthday",
    "recipientName": "Ana",
    "relationship": "sister",
    "senderName": "Bruno",
    "genre": "pop",
    "mood": "joyful",
    "vocalPreference": "female",
}


def _request(**overrides) -> GenerateSongRequest:
    return GenerateSongRequest.model_validate({**BRIEFING, **overrides})


@pytest.fixture
def provider():
    return FakeProvider(
        [suno_status("PENDING"), suno_status("SUCCESS", ["c1", "c2"])],
        submit_result="abc",
        cover_statuses=[CoverStatus(status="SUCCESS", image_url="https://img/cover.png")],
    )


@pytest.fixture
def lyricist():
    return FakeLyricist()


@pytest.fixture
async def orchestrator(settings, task_store, song_store, provider, lyricist, fake_sleep):
    supervisor = TaskSupervisor()
    cover = CoverArtService(provider, song_store, "https://api.test/api/suno-cover-callback", sleep=fake_sleep)
    orch = GenerationOrchestrator(
        settings, task_store, song_store, provider, lyricist, supervisor, cover=cover, sleep=fake_sleep,
    )
    yield orch
    await supervisor.shutdown()


class TestLyricsOnly:
    async def test_returns_title_and_lyrics_without_provider(self, orchestrator, provider):
        result = await orchestrator.generate(_request(lyricsOnly=True), Identity())
        assert isinstance(result, LyricsOnlyResponse)
        assert result.song_title == "Song Title"
        assert provider.submitted == []

    async def test_requires_llm_key(self, orchestrator, settings):
        settings.openai_api_key = None
        with pytest.raises(ConfigurationError):
            await orchestrator.generate(_request(lyricsOnly=True), Identity())

    async def test_ignores_paywall(self, orchestrator, song_store):
        song_store.set_free_songs_used(5, device_id="dev-1")
        result = await orchestrator.generate(_request(lyricsOnly=True), Identity(device_id="dev-1"))
        assert result.success


class TestMusicPath:
    async def test_end_to_end_completion(self, orchestrator, task_store, song_store, provider, fake_sleep):
        result = await orchestrator.generate(_request(), Identity(user_id="user-1"))

        assert isinstance(result, GenerateMusicResponse)
        assert result.status is TaskStatus.PROCESSING
        assert result.expected_clips == 2
        assert result.task_id.startswith("task_")
        assert provider.submitted[0]["style"] == "pop, joyful, female vocals"
        assert provider.submitted[0]["model"] == "V4_5PLUS"
        assert provider.submitted[0]["prompt"] == "Verse one\nChorus"

        task = await orchestrator.supervisor.join(result.task_id)
        assert task.status is TaskStatus.COMPLETED
        assert provider.status_calls == ["abc", "abc"]
        assert fake_sleep.calls[:2] == [10, 7]

        song_id = task.metadata["saved_song_id"]
        assert song_store.get_song(song_id).audio_url_option2.endswith("c2.mp3")
        assert song_store.get_free_songs_used("user-1", []) == 1

        assert provider.cover_requests == [("abc", "https://api.test/api/suno-cover-callback")]
        await orchestrator.supervisor.join("cover:cover-1")
        assert song_store.get_song(song_id).image_url == "https://img/cover.png"
        assert task_store.get(result.task_id).metadata["cover_task_id"] == "cover-1"

    async def test_metadata_recorded_on_task(self, orchestrator, task_store):
        result = await orchestrator.generate(_request(songTitle="Ana's Day"), Identity(guest_id="g-1", device_id="d-1"))
        task = task_store.get(result.task_id)
        assert task.metadata["song_title"] == "Ana's Day"
        assert task.metadata["guest_id"] == "g-1"
        assert task.metadata["device_id"] == "d-1"
        assert task.metadata["user_id"] is None
        assert task.provider_job_ids == ["abc"]

    async def test_supplied_lyrics_skip_lyricist(self, orchestrator, lyricist, provider):
        await orchestrator.generate(_request(lyrics="My own words"), Identity(guest_id="g-1"))
        assert lyricist.calls == 0
        assert provider.submitted[0]["prompt"] == "My own words"

    async def test_supplied_lyrics_work_without_llm_key(self, orchestrator, settings):
        settings.openai_api_key = None
        result = await orchestrator.generate(_request(lyrics="Words"), Identity(guest_id="g-1"))
        assert result.task_id

    async def test_missing_provider_key(self, orchestrator, settings, provider):
        settings.suno_api_key = None
        with pytest.raises(ConfigurationError):
            await orchestrator.generate(_request(), Identity(guest_id="g-1"))
        assert provider.submitted == []

    async def test_anonymous_caller_rejected(self, orchestrator, provider):
        with pytest.raises(ValidationFailed):
            await orchestrator.generate(_request(), Identity())
        assert provider.submitted == []

    async def test_paywall_blocks_before_provider(self, orchestrator, song_store, provider, lyricist, task_store):
        song_store.set_free_songs_used(1, device_id="dev-1")
        with pytest.raises(PaywallError) as info:
            await orchestrator.generate(_request(), Identity(guest_id="g-1", device_id="dev-1"))
        assert info.value.status_code == 402
        assert info.value.extra["requiresPayment"] is True
        assert provider.submitted == []
        assert lyricist.calls == 0
        assert len(task_store) == 0

    async def test_guest_second_song_hits_paywall(self, orchestrator, song_store, provider):
        guest = Identity(guest_id="guest-1", device_id="dev-1")
        first = await orchestrator.generate(_request(), guest)
        task = await orchestrator.supervisor.join(first.task_id)
        assert task.status is TaskStatus.COMPLETED
        assert song_store.get_free_songs_used(None, guest.device_ids) == 1

        with pytest.raises(PaywallError) as info:
            await orchestrator.generate(_request(), guest)
        assert info.value.status_code == 402
        assert info.value.extra["freeSongsUsed"] == 1
        assert len(provider.submitted) == 1

    async def test_same_device_under_new_guest_id_is_still_blocked(self, orchestrator, song_store):
        first = await orchestrator.generate(_request(), Identity(guest_id="guest-1", device_id="dev-1"))
        await orchestrator.supervisor.join(first.task_id)
        with pytest.raises(PaywallError):
            await orchestrator.generate(_request(), Identity(guest_id="guest-2", device_id="dev-1"))

    async def test_lyrics_failure_surfaces(self, orchestrator, lyricist, provider):
        lyricist.error = LyricsQuotaError("busy")
        with pytest.raises(LyricsQuotaError):
            await orchestrator.generate(_request(), Identity(guest_id="g-1"))
        assert provider.submitted == []

    async def test_submit_failure_registers_nothing(self, orchestrator, provider, task_store):
        provider.submit_result = ProviderAuthError("bad key", 401)
        with pytest.raises(ProviderAuthError):
            await orchestrator.generate(_request(), Identity(guest_id="g-1"))
        assert len(task_store) == 0


async def test_resume_restarts_processing_tasks(orchestrator, make_task):
    make_task(task_id="task_9_resumeme1")
    assert orchestrator.resume() == 1
    task = await orchestrator.supervisor.join("task_9_resumeme1")
    assert task.status is TaskStatus.COMPLETED
