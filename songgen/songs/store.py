"""Song and free-usage storage: Postgres or file-based fallback."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Protocol

from songgen.config import get_settings
from songgen.paywall import normalize_ids
from songgen.songs.models import PaymentRecord, SongRecord, UsageRecord

logger = logging.getLogger(__name__)

UNLIMITED_ACCESS_WINDOW = timedelta(hours=24)


class SongStoreError(Exception):
    """A song store write or read failed."""


class SongStore(Protocol):
    def create_song(self, record: SongRecord) -> SongRecord: ...
    def get_song(self, song_id: str) -> SongRecord | None: ...
    def update_image_by_task(self, task_id: str, image_url: str) -> str | None: ...
    def get_free_songs_used(self, user_id: str | None, device_ids: list[str]) -> int: ...
    def increment_free_counter(self, user_id: str | None = None, device_id: str | None = None) -> int: ...
    def has_unlimited_access(self, user_id: str | None, device_ids: list[str]) -> bool: ...
    def record_payment(self, payment: PaymentRecord) -> None: ...


def _new_song_id() -> str:
    return str(uuid.uuid4())


def _counter_key(user_id: str | None, device_id: str | None) -> tuple[str, str]:
    """Usage rows are keyed by user id when known, else by canonical device id."""
    if user_id:
        return "user_id", user_id
    if device_id:
        return "device_id", device_id
    raise ValueError("increment_free_counter needs a user_id or device_id")


# ---------------------------------------------------------------------------
# Postgres implementation
# ---------------------------------------------------------------------------

class PostgresSongStore:
    """Persist songs, usage counters and payments in Postgres."""

    def __init__(self, database_url: str):
        self._url = database_url
        self._conn = self._connect()

    def _connect(self):
        try:
            import psycopg
        except ImportError:
            raise ImportError(
                "psycopg required for Postgres song store. pip install 'songgen[postgres]'"
            )
        conn = psycopg.connect(self._url, autocommit=True)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS songs (
                id TEXT PRIMARY KEY,
                user_id TEXT,
                guest_id TEXT,
                title TEXT NOT NULL,
                lyrics TEXT,
                prompt TEXT,
                genre TEXT,
                mood TEXT,
                audio_url_option1 TEXT,
                audio_url_option2 TEXT,
                image_url TEXT,
                task_id TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                CONSTRAINT songs_user_or_guest_check CHECK (user_id IS NOT NULL OR guest_id IS NOT NULL)
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS user_creations (
                device_id TEXT,
                user_id TEXT,
                freesongsused INT NOT NULL DEFAULT 0,
                updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS stripe_transactions (
                payment_intent_id TEXT PRIMARY KEY,
                status TEXT NOT NULL,
                user_id TEXT,
                device_id TEXT,
                created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_songs_task_id ON songs (task_id)")
        return conn

    def create_song(self, record: SongRecord) -> SongRecord:
        song = record.model_copy(update={"id": record.id or _new_song_id()})
        try:
            self._conn.execute(
                """
                INSERT INTO songs
                (id, user_id, guest_id, title, lyrics, prompt, genre, mood,
                 audio_url_option1, audio_url_option2, image_url, task_id, created_at, updated_at)
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, %s, NOW(), NOW())
                """,
                (
                    song.id, song.user_id, song.guest_id, song.title, song.lyrics, song.prompt,
                    song.genre, song.mood, song.audio_url_option1, song.audio_url_option2,
                    song.image_url, song.task_id,
                ),
            )
        except Exception as e:
            raise SongStoreError(str(e)) from e
        return song

    def get_song(self, song_id: str) -> SongRecord | None:
        row = self._conn.execute(
            """
            SELECT id, user_id, guest_id, title, lyrics, prompt, genre, mood,
                   audio_url_option1, audio_url_option2, image_url, task_id, created_at, updated_at
            FROM songs WHERE id = %s
            """,
            (song_id,),
        ).fetchone()
        if not row:
            return None
        keys = list(SongRecord.model_fields)
        return SongRecord(**dict(zip(keys, row)))

    def update_image_by_task(self, task_id: str, image_url: str) -> str | None:
        row = self._conn.execute(
            "UPDATE songs SET image_url = %s, updated_at = NOW() WHERE task_id = %s RETURNING id",
            (image_url, task_id),
        ).fetchone()
        return row[0] if row else None

    def get_free_songs_used(self, user_id: str | None, device_ids: list[str]) -> int:
        ids = normalize_ids(device_ids)
        if not user_id and not ids:
            return 0
        row = self._conn.execute(
            """
            SELECT COALESCE(MAX(freesongsused), 0) FROM user_creations
            WHERE (%s::text IS NOT NULL AND user_id = %s) OR device_id = ANY(%s)
            """,
            (user_id, user_id, ids),
        ).fetchone()
        return int(row[0]) if row else 0

    def increment_free_counter(self, user_id: str | None = None, device_id: str | None = None) -> int:
        column, key = _counter_key(user_id, device_id)
        row = self._conn.execute(
            f"""
            UPDATE user_creations SET freesongsused = freesongsused + 1, updated_at = NOW()
            WHERE {column} = %s RETURNING freesongsused
            """,
            (key,),
        ).fetchone()
        if row:
            return int(row[0])
        self._conn.execute(
            f"INSERT INTO user_creations ({column}, freesongsused, updated_at) VALUES (%s, 1, NOW())",
            (key,),
        )
        return 1

    def has_unlimited_access(self, user_id: str | None, device_ids: list[str]) -> bool:
        ids = normalize_ids(device_ids)
        if (not user_id or user_id == "guest") and not ids:
            return False
        since = datetime.now(timezone.utc) - UNLIMITED_ACCESS_WINDOW
        try:
            row = self._conn.execute(
                """
                SELECT payment_intent_id FROM stripe_transactions
                WHERE status = 'succeeded' AND created_at >= %s
                  AND ((%s::text IS NOT NULL AND user_id = %s) OR device_id = ANY(%s))
                ORDER BY created_at DESC LIMIT 1
                """,
                (since, user_id, user_id, ids),
            ).fetchone()
        except Exception as e:
            logger.error("Unlimited access lookup failed: %s", e)
            return False
        return row is not None

    def record_payment(self, payment: PaymentRecord) -> None:
        self._conn.execute(
            """
            INSERT INTO stripe_transactions (payment_intent_id, status, user_id, device_id, created_at)
            VALUES (%s, %s, %s, %s, %s)
            ON CONFLICT (payment_intent_id) DO UPDATE SET status = EXCLUDED.status
            """,
            (payment.payment_intent_id, payment.status, payment.user_id, payment.device_id, payment.created_at),
        )


# ---------------------------------------------------------------------------
# File-based implementation
# ---------------------------------------------------------------------------

class FileSongStore:
    """Persist songs as JSON files; usage and payments in small index files."""

    def __init__(self, songs_dir: Path):
        self._dir = Path(songs_dir)
        self._dir.mkdir(parents=True, exist_ok=True)
        self._usage_path = self._dir / "usage.json"
        self._payments_path = self._dir / "payments.json"
        self._task_index_path = self._dir / "task_index.json"

    def _song_path(self, song_id: str) -> Path:
        return self._dir / f"song_{song_id}.json"

    def _load(self, path: Path, default):
        if path.exists():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    return json.load(f)
            except (OSError, ValueError) as e:
                logger.warning("Could not read %s: %s", path.name, e)
        return default

    def _save(self, path: Path, data) -> None:
        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2, default=str)

    def create_song(self, record: SongRecord) -> SongRecord:
        if not record.user_id and not record.guest_id:
            raise SongStoreError("songs_user_or_guest_check: user_id or guest_id is required")
        song = record.model_copy(update={"id": record.id or _new_song_id()})
        try:
            self._save(self._song_path(song.id), song.model_dump(mode="json"))
            index = self._load(self._task_index_path, {})
            if song.task_id:
                index[song.task_id] = song.id
                self._save(self._task_index_path, index)
        except OSError as e:
            raise SongStoreError(str(e)) from e
        return song

    def get_song(self, song_id: str) -> SongRecord | None:
        path = self._song_path(song_id)
        if not path.exists():
            return None
        return SongRecord.model_validate(self._load(path, {}))

    def update_image_by_task(self, task_id: str, image_url: str) -> str | None:
        song_id = self._load(self._task_index_path, {}).get(task_id)
        if not song_id:
            return None
        song = self.get_song(song_id)
        if song is None:
            return None
        song.image_url = image_url
        song.updated_at = datetime.now(timezone.utc)
        self._save(self._song_path(song_id), song.model_dump(mode="json"))
        return song_id

    def _usage(self) -> list[UsageRecord]:
        return [UsageRecord.model_validate(r) for r in self._load(self._usage_path, [])]

    def get_free_songs_used(self, user_id: str | None, device_ids: list[str]) -> int:
        ids = set(normalize_ids(device_ids))
        counts = [
            r.free_songs_used
            for r in self._usage()
            if (user_id and r.user_id == user_id) or (r.device_id and r.device_id in ids)
        ]
        return max(counts, default=0)

    def increment_free_counter(self, user_id: str | None = None, device_id: str | None = None) -> int:
        column, key = _counter_key(user_id, device_id)
        records = self._usage()
        for r in records:
            if getattr(r, column) == key:
                r.free_songs_used += 1
                r.updated_at = datetime.now(timezone.utc)
                new_count = r.free_songs_used
                break
        else:
            records.append(UsageRecord(**{column: key, "free_songs_used": 1}))
            new_count = 1
        self._save(self._usage_path, [r.model_dump(mode="json") for r in records])
        return new_count

    def set_free_songs_used(self, count: int, user_id: str | None = None, device_id: str | None = None) -> None:
        """Seed a usage record (admin scripts and tests)."""
        records = [
            r for r in self._usage()
            if not ((user_id and r.user_id == user_id) or (device_id and r.device_id == device_id))
        ]
        records.append(UsageRecord(user_id=user_id, device_id=device_id, free_songs_used=count))
        self._save(self._usage_path, [r.model_dump(mode="json") for r in records])

    def has_unlimited_access(self, user_id: str | None, device_ids: list[str]) -> bool:
        ids = set(normalize_ids(device_ids))
        if (not user_id or user_id == "guest") and not ids:
            return False
        since = datetime.now(timezone.utc) - UNLIMITED_ACCESS_WINDOW
        for raw in self._load(self._payments_path, []):
            p = PaymentRecord.model_validate(raw)
            if p.status != "succeeded" or p.created_at < since:
                continue
            if (user_id and p.user_id == user_id) or (p.device_id and p.device_id in ids):
                logger.info("Unlimited access from recent payment %s", p.payment_intent_id)
                return True
        return False

    def record_payment(self, payment: PaymentRecord) -> None:
        payments = [
            p for p in self._load(self._payments_path, [])
            if p.get("payment_intent_id") != payment.payment_intent_id
        ]
        payments.append(payment.model_dump(mode="json"))
        self._save(self._payments_path, payments)


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_store: SongStore | None = None


def get_song_store() -> SongStore:
    """Return singleton song store (Postgres if configured, else file-based)."""
    global _store
    if _store is not None:
        return _store
    settings = get_settings()
    if settings.songgen_database_url:
        try:
            _store = PostgresSongStore(settings.songgen_database_url)
            logger.info("Using Postgres song store")
        except Exception as e:
            logger.warning("Postgres song store failed (%s), falling back to file store", e)
            _store = FileSongStore(settings.songs_dir)
    else:
        _store = FileSongStore(settings.songs_dir)
        logger.info("Using file-based song store (SONGGEN_DATA_DIR/songs)")
    return _store


def reset_song_store() -> None:
    global _store
    _store = None
