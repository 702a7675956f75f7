"""Tests for cover art: request bookkeeping, polling fallback, callbacks."""

from fakes import FakeProvider
from songgen.cover import CoverArtService
from songgen.provider.suno_client import CoverStatus
from songgen.songs.models import SongRecord


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def _service(provider, song_store, sleep, clock=None):
    return CoverArtService(
        provider,
        song_store,
        callback_url="https://api.test/api/suno-cover-callback",
        poll_timeout=120,
        poll_interval=5,
        sleep=sleep,
        clock=clock or Clock(),
    )


def _song(song_store):
    return song_store.create_song(SongRecord(user_id="user-1", title="x", task_id="abc"))


async def test_request_registers_pending_cover(song_store, fake_sleep):
    provider = FakeProvider(cover_task_id="cover-7")
    service = _service(provider, song_store, fake_sleep)
    assert await service.request("abc", "song-1") == "cover-7"
    assert service.pending["cover-7"].provider_task_id == "abc"
    assert provider.cover_requests == [("abc", "https://api.test/api/suno-cover-callback")]


async def test_request_without_task_id_registers_nothing(song_store, fake_sleep):
    service = _service(FakeProvider(cover_task_id=None), song_store, fake_sleep)
    assert await service.request("abc") is None
    assert service.pending == {}


async def test_poll_updates_song_image(song_store, fake_sleep):
    song = _song(song_store)
    provider = FakeProvider(cover_statuses=[
        CoverStatus(status="PENDING"),
        CoverStatus(status="SUCCESS", image_url="https://img/cover.png"),
    ])
    service = _service(provider, song_store, fake_sleep)
    await service.request("abc", song.id)
    assert await service.poll_until_ready("cover-1") == "https://img/cover.png"
    assert song_store.get_song(song.id).image_url == "https://img/cover.png"
    assert fake_sleep.calls == [5]
    assert service.pending == {}


async def test_poll_gives_up_after_timeout(song_store):
    clock = Clock()

    async def advancing_sleep(seconds):
        clock.now += seconds

    service = _service(FakeProvider(), song_store, advancing_sleep, clock)
    await service.request("abc")
    assert await service.poll_until_ready("cover-1") is None
    assert clock.now >= 120
    assert service.pending == {}


async def test_poll_stops_when_callback_already_applied(song_store, fake_sleep):
    _song(song_store)
    service = _service(FakeProvider(), song_store, fake_sleep)
    await service.request("abc")
    service.handle_callback({"data": {"taskId": "cover-1", "imageUrl": "https://img/cb.png"}})
    assert await service.poll_until_ready("cover-1") is None


async def test_callback_updates_song(song_store, fake_sleep):
    song = _song(song_store)
    service = _service(FakeProvider(), song_store, fake_sleep)
    await service.request("abc", song.id)
    song_id = service.handle_callback({"code": 200, "data": {"taskId": "cover-1", "imageUrl": "https://img/cb.png"}})
    assert song_id == song.id
    assert song_store.get_song(song.id).image_url == "https://img/cb.png"


def test_callback_for_unknown_cover_is_ignored(song_store, fake_sleep):
    service = _service(FakeProvider(), song_store, fake_sleep)
    assert service.handle_callback({"data": {"taskId": "nope", "imageUrl": "https://img/x.png"}}) is None
    assert service.handle_callback({"unexpected": True}) is None
