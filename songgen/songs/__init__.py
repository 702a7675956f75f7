"""Song storage and free-usage counters."""

from songgen.songs.models import PaymentRecord, SongRecord, UsageRecord
from songgen.songs.store import (
    FileSongStore,
    PostgresSongStore,
    SongStore,
    SongStoreError,
    get_song_store,
    reset_song_store,
)

__all__ = [
    "FileSongStore",
    "PaymentRecord",
    "PostgresSongStore",
    "SongRecord",
    "SongStore",
    "SongStoreError",
    "UsageRecord",
    "get_song_store",
    "reset_song_store",
]
