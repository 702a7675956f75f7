"""Tests for saving finished songs and consuming the free quota."""

from songgen.persistence import SongPersister, build_song_record
from songgen.songs.store import SongStoreError
from songgen.tasks.models import Clip, GenerationTask, TaskStatus


def _finished_task(status=TaskStatus.COMPLETED, clips=2, **meta):
    metadata = {
        "song_title": "For Ana",
        "recipient_name": "Ana",
        "occasion": "birthday",
        "relationship": "sister",
        "emotional_tone": "joyful",
        "genre": "pop",
        **meta,
    }
    task = GenerationTask(task_id="task_1_abcdefghi", provider_job_ids=["abc"], lyrics="La la", metadata=metadata)
    task.merge_clips([
        Clip(id=f"c{i}", title=f"Option {i}", audio_url=f"https://cdn/{i}.mp3", image_url=f"https://cdn/{i}.jpg")
        for i in range(1, clips + 1)
    ])
    task.transition(status)
    return task


def test_build_song_record_maps_first_two_clips():
    record = build_song_record(_finished_task(clips=3, user_id="user-1"))
    assert record.title == "For Ana"
    assert record.audio_url_option1 == "https://cdn/1.mp3"
    assert record.audio_url_option2 == "https://cdn/2.mp3"
    assert record.image_url == "https://cdn/1.jpg"
    assert record.task_id == "abc"
    assert record.mood == "joyful"
    assert "Ana" in record.prompt


async def test_user_song_is_saved_and_counter_incremented(song_store):
    task = _finished_task(user_id="user-1")
    song = await SongPersister(song_store).persist(task)

    assert song is not None
    assert song_store.get_song(song.id).user_id == "user-1"
    assert task.metadata["saved_to_database"] is True
    assert task.metadata["saved_song_id"] == song.id
    assert song_store.get_free_songs_used("user-1", []) == 1


async def test_counter_not_incremented_past_limit(song_store):
    song_store.set_free_songs_used(1, user_id="user-1")
    await SongPersister(song_store).persist(_finished_task(user_id="user-1"))
    assert song_store.get_free_songs_used("user-1", []) == 1


async def test_counter_follows_configured_limit(song_store):
    song_store.set_free_songs_used(1, user_id="user-1")
    await SongPersister(song_store, free_song_limit=2).persist(_finished_task(user_id="user-1"))
    assert song_store.get_free_songs_used("user-1", []) == 2


async def test_partial_task_is_saved_with_one_clip(song_store):
    task = _finished_task(status=TaskStatus.PARTIAL, clips=1, user_id="user-1")
    song = await SongPersister(song_store).persist(task)
    assert song.audio_url_option2 is None
    assert song_store.get_free_songs_used("user-1", []) == 1


async def test_guest_song_counts_against_canonical_device(song_store):
    task = _finished_task(guest_id="guest-1", device_id="dev-1")
    song = await SongPersister(song_store).persist(task)
    assert song.guest_id == "guest-1"
    assert song_store.get_free_songs_used(None, ["dev-1"]) == 1
    assert song_store.get_free_songs_used(None, ["guest-1"]) == 0
    assert song_store.get_free_songs_used(None, ["dev-1", "guest-1"]) == 1


async def test_guest_without_device_counts_against_guest_id(song_store):
    await SongPersister(song_store).persist(_finished_task(guest_id="guest-1"))
    assert song_store.get_free_songs_used(None, ["guest-1"]) == 1


async def test_guest_counter_not_incremented_past_limit(song_store):
    song_store.set_free_songs_used(1, device_id="dev-1")
    await SongPersister(song_store).persist(_finished_task(guest_id="guest-1", device_id="dev-1"))
    assert song_store.get_free_songs_used(None, ["dev-1"]) == 1


async def test_device_only_song_still_spends_quota(song_store):
    task = _finished_task(device_id="dev-1")
    assert await SongPersister(song_store).persist(task) is None
    assert task.metadata["save_error"] == "Missing user identification"
    assert song_store.get_free_songs_used(None, ["dev-1"]) == 1


async def test_no_clips_is_a_no_op(song_store):
    task = GenerationTask(task_id="t", metadata={"user_id": "user-1"})
    task.transition(TaskStatus.FAILED, "boom")
    assert await SongPersister(song_store).persist(task) is None
    assert "save_error" not in task.metadata


async def test_missing_owner_records_error(song_store):
    task = _finished_task()
    assert await SongPersister(song_store).persist(task) is None
    assert task.metadata["save_error"] == "Missing user identification"


async def test_store_failure_is_recorded_not_raised(song_store):
    def broken(record):
        raise SongStoreError("connection reset")

    song_store.create_song = broken
    task = _finished_task(user_id="user-1")
    assert await SongPersister(song_store).persist(task) is None
    assert task.metadata["save_error"] == "connection reset"
    assert "save_failed_at" in task.metadata
    assert task.status is TaskStatus.COMPLETED
    assert song_store.get_free_songs_used("user-1", []) == 1
