"""Local storage for offline playback.

A versioned SQLite file with three keyed stores:

- ``audio_files``: audio bytes by chapter id
- ``progress``: last known position by chapter id
- ``metadata``: arbitrary JSON values by key

There is no eviction policy; entries live until explicitly deleted.
"""

from __future__ import annotations

import json
import shutil
import sqlite3
import tempfile
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator
from urllib.parse import unquote, urlparse

import httpx
import structlog

logger = structlog.get_logger(__name__)

DB_VERSION = 1


class OfflineStorageError(Exception):
    """Error reading or writing offline storage."""

    pass


@dataclass
class OfflineAudio:
    chapter_id: str
    title: str
    size: int
    downloaded_at: str
    last_accessed_at: str


@dataclass
class OfflineProgress:
    chapter_id: str
    current_time: float
    duration: float
    is_completed: bool
    last_updated: str


@dataclass
class StorageUsage:
    used: int
    quota: int


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class OfflineStorage:
    """Keyed offline stores backed by one SQLite file."""

    def __init__(self, path: Path, url_dir: Path | None = None):
        """Open (and if needed create or upgrade) the store.

        Args:
            path: SQLite file
            url_dir: Directory for transient playback files (system temp by default)
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._url_dir = Path(url_dir) if url_dir else Path(tempfile.gettempdir())
        self._upgrade()

    @contextmanager
    def _connect(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(self.path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _upgrade(self) -> None:
        with self._connect() as conn:
            version = conn.execute("PRAGMA user_version").fetchone()[0]
            if version >= DB_VERSION:
                return
            conn.executescript(
                """
                CREATE TABLE IF NOT EXISTS audio_files (
                    id TEXT PRIMARY KEY,
                    chapter_id TEXT NOT NULL UNIQUE,
                    title TEXT NOT NULL,
                    blob BLOB NOT NULL,
                    downloaded_at TEXT NOT NULL,
                    last_accessed_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS progress (
                    chapter_id TEXT PRIMARY KEY,
                    current_time_s REAL NOT NULL,
                    duration REAL NOT NULL,
                    is_completed INTEGER NOT NULL,
                    last_updated TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS metadata (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );
                """
            )
            conn.execute(f"PRAGMA user_version = {DB_VERSION}")
        logger.info("offline_storage.upgraded", path=str(self.path), version=DB_VERSION)

    # -------------------------------------------------------------------------
    # Audio files
    # -------------------------------------------------------------------------

    def store_audio_file(self, chapter_id: str, title: str, data: bytes) -> None:
        """Store (or replace) the audio bytes of a chapter."""
        now = _now()
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO audio_files (id, chapter_id, title, blob, downloaded_at, last_accessed_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(chapter_id) DO UPDATE SET
                    title = excluded.title,
                    blob = excluded.blob,
                    downloaded_at = excluded.downloaded_at,
                    last_accessed_at = excluded.last_accessed_at
                """,
                (f"audio_{chapter_id}", chapter_id, title, sqlite3.Binary(data), now, now),
            )
        logger.info("offline_storage.audio_stored", chapter_id=chapter_id, bytes=len(data))

    async def download_audio_file(
        self,
        chapter_id: str,
        title: str,
        audio_url: str,
        client: httpx.AsyncClient,
    ) -> None:
        """Fetch audio over HTTP and store it.

        Raises:
            OfflineStorageError: If the download fails
        """
        try:
            response = await client.get(audio_url)
        except httpx.HTTPError as e:
            raise OfflineStorageError(f"Failed to download audio: {e}") from e
        if response.is_error:
            raise OfflineStorageError(
                f"Failed to download audio: {response.status_code} {response.reason_phrase}"
            )
        self.store_audio_file(chapter_id, title, response.content)

    def get_audio_file(self, chapter_id: str) -> bytes | None:
        """Audio bytes of a chapter, refreshing its last-accessed time."""
        with self._connect() as conn:
            row = conn.execute(
                "SELECT blob FROM audio_files WHERE chapter_id = ?", (chapter_id,)
            ).fetchone()
            if row is None:
                return None
            conn.execute(
                "UPDATE audio_files SET last_accessed_at = ? WHERE chapter_id = ?",
                (_now(), chapter_id),
            )
        return bytes(row["blob"])

    def get_audio_info(self, chapter_id: str) -> OfflineAudio | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT chapter_id, title, length(blob) AS size, downloaded_at, last_accessed_at "
                "FROM audio_files WHERE chapter_id = ?",
                (chapter_id,),
            ).fetchone()
        if row is None:
            return None
        return OfflineAudio(
            chapter_id=row["chapter_id"],
            title=row["title"],
            size=row["size"],
            downloaded_at=row["downloaded_at"],
            last_accessed_at=row["last_accessed_at"],
        )

    def delete_audio_file(self, chapter_id: str) -> None:
        """Delete a downloaded chapter together with its progress entry."""
        with self._connect() as conn:
            conn.execute("DELETE FROM audio_files WHERE chapter_id = ?", (chapter_id,))
            conn.execute("DELETE FROM progress WHERE chapter_id = ?", (chapter_id,))
        logger.info("offline_storage.audio_deleted", chapter_id=chapter_id)

    def get_all_downloaded_chapters(self) -> list[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT chapter_id FROM audio_files ORDER BY downloaded_at"
            ).fetchall()
        return [row["chapter_id"] for row in rows]

    def is_audio_downloaded(self, chapter_id: str) -> bool:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT 1 FROM audio_files WHERE chapter_id = ?", (chapter_id,)
            ).fetchone()
        return row is not None

    # -------------------------------------------------------------------------
    # Playback URLs
    # -------------------------------------------------------------------------

    def create_audio_url(self, chapter_id: str) -> str | None:
        """Write the stored audio to a transient file and return its URL.

        The caller owns the URL and must hand it to ``revoke_audio_url``
        when done.
        """
        data = self.get_audio_file(chapter_id)
        if data is None:
            return None
        self._url_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            dir=self._url_dir, prefix=f"audiolearn-{chapter_id}-", suffix=".mp3", delete=False
        ) as handle:
            handle.write(data)
        return Path(handle.name).as_uri()

    def revoke_audio_url(self, url: str) -> None:
        path = Path(unquote(urlparse(url).path))
        path.unlink(missing_ok=True)

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    def save_progress(
        self,
        chapter_id: str,
        current_time: float,
        duration: float = 0.0,
        is_completed: bool = False,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO progress (chapter_id, current_time_s, duration, is_completed, last_updated)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(chapter_id) DO UPDATE SET
                    current_time_s = excluded.current_time_s,
                    duration = excluded.duration,
                    is_completed = excluded.is_completed,
                    last_updated = excluded.last_updated
                """,
                (chapter_id, float(current_time), float(duration), bool(is_completed), _now()),
            )

    def get_progress(self, chapter_id: str) -> OfflineProgress | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM progress WHERE chapter_id = ?", (chapter_id,)
            ).fetchone()
        if row is None:
            return None
        return OfflineProgress(
            chapter_id=row["chapter_id"],
            current_time=row["current_time_s"],
            duration=row["duration"],
            is_completed=bool(row["is_completed"]),
            last_updated=row["last_updated"],
        )

    def clear_progress(self, chapter_id: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM progress WHERE chapter_id = ?", (chapter_id,))

    # -------------------------------------------------------------------------
    # Metadata
    # -------------------------------------------------------------------------

    def set_metadata(self, key: str, value: Any) -> None:
        try:
            encoded = json.dumps(value)
        except TypeError as e:
            raise OfflineStorageError(f"Metadata for {key!r} is not JSON serializable") from e
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO metadata (key, value) VALUES (?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value = excluded.value",
                (key, encoded),
            )

    def get_metadata(self, key: str, default: Any = None) -> Any:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM metadata WHERE key = ?", (key,)).fetchone()
        return json.loads(row["value"]) if row else default

    def delete_metadata(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM metadata WHERE key = ?", (key,))

    # -------------------------------------------------------------------------
    # Housekeeping
    # -------------------------------------------------------------------------

    def get_storage_usage(self) -> StorageUsage:
        """Bytes used by the store file and free bytes on its volume."""
        used = self.path.stat().st_size if self.path.exists() else 0
        quota = shutil.disk_usage(self.path.parent).free
        return StorageUsage(used=used, quota=quota)

    def clear_all(self) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM audio_files")
            conn.execute("DELETE FROM progress")
            conn.execute("DELETE FROM metadata")
        logger.info("offline_storage.cleared", path=str(self.path))
