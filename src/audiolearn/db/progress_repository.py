"""Repository functions for listening progress and downloaded content."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

import structlog

from audiolearn.db.database import RecordNotFoundError, get_db, new_id, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class ProgressRecord:
    """Listening position of one user in one chapter."""

    id: str
    user_id: str
    chapter_id: str
    current_time: float
    is_completed: bool
    last_accessed_at: str
    created_at: str
    updated_at: str


@dataclass
class DownloadRecord:
    """A chapter audio file downloaded for offline use."""

    id: str
    user_id: str
    chapter_id: str
    local_path: str
    downloaded_at: str


# =============================================================================
# PROGRESS
# =============================================================================


def get_progress(user_id: str, chapter_id: str) -> ProgressRecord | None:
    """Get progress for a user/chapter pair."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM user_progress WHERE user_id = ? AND chapter_id = ?",
            (user_id, chapter_id),
        ).fetchone()
    return _row_to_progress(row) if row else None


def list_progress(user_id: str) -> list[ProgressRecord]:
    """Get all progress rows of a user, most recently accessed first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM user_progress WHERE user_id = ? ORDER BY last_accessed_at DESC",
            (user_id,),
        ).fetchall()
    return [_row_to_progress(row) for row in rows]


def upsert_progress(
    user_id: str,
    chapter_id: str,
    current_time: float,
    is_completed: bool = False,
) -> ProgressRecord:
    """Insert or update progress for a user/chapter pair.

    Raises:
        sqlite3.IntegrityError: If the user or chapter does not exist
    """
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO user_progress (
                id, user_id, chapter_id, current_position, is_completed,
                last_accessed_at, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT(user_id, chapter_id) DO UPDATE SET
                current_position = excluded.current_position,
                is_completed = excluded.is_completed,
                last_accessed_at = excluded.last_accessed_at,
                updated_at = excluded.updated_at
            """,
            (new_id(), user_id, chapter_id, float(current_time), bool(is_completed), now, now, now),
        )

    logger.debug(
        "progress.upserted",
        user_id=user_id,
        chapter_id=chapter_id,
        current_time=current_time,
        is_completed=is_completed,
    )
    progress = get_progress(user_id, chapter_id)
    if progress is None:
        raise RecordNotFoundError("user_progress", f"{user_id}/{chapter_id}")
    return progress


def clear_progress(user_id: str, chapter_id: str) -> bool:
    """Delete progress for a user/chapter pair."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM user_progress WHERE user_id = ? AND chapter_id = ?",
            (user_id, chapter_id),
        )
        return cursor.rowcount > 0


# =============================================================================
# DOWNLOADS
# =============================================================================


def list_downloads(user_id: str) -> list[DownloadRecord]:
    """Get downloads of a user, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM downloaded_content WHERE user_id = ? "
            "ORDER BY downloaded_at DESC, rowid DESC",
            (user_id,),
        ).fetchall()
    return [_row_to_download(row) for row in rows]


def get_download(user_id: str, chapter_id: str) -> DownloadRecord | None:
    """Get the download row for a user/chapter pair."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM downloaded_content WHERE user_id = ? AND chapter_id = ?",
            (user_id, chapter_id),
        ).fetchone()
    return _row_to_download(row) if row else None


def add_download(user_id: str, chapter_id: str, local_path: str) -> DownloadRecord:
    """Record a download. Downloading the same chapter again replaces the row."""
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO downloaded_content (id, user_id, chapter_id, local_path, downloaded_at)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(user_id, chapter_id) DO UPDATE SET
                local_path = excluded.local_path,
                downloaded_at = excluded.downloaded_at
            """,
            (new_id(), user_id, chapter_id, local_path, utc_now()),
        )

    logger.info("downloads.added", user_id=user_id, chapter_id=chapter_id)
    download = get_download(user_id, chapter_id)
    if download is None:
        raise RecordNotFoundError("downloaded_content", f"{user_id}/{chapter_id}")
    return download


def remove_download(user_id: str, chapter_id: str) -> bool:
    """Delete the download row for a user/chapter pair."""
    with get_db() as conn:
        cursor = conn.execute(
            "DELETE FROM downloaded_content WHERE user_id = ? AND chapter_id = ?",
            (user_id, chapter_id),
        )
        removed = cursor.rowcount > 0
    if removed:
        logger.info("downloads.removed", user_id=user_id, chapter_id=chapter_id)
    return removed


def count_chapter_downloads(chapter_id: str) -> int:
    """Number of users holding a download of this chapter."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT COUNT(*) FROM downloaded_content WHERE chapter_id = ?", (chapter_id,)
        ).fetchone()
    return int(row[0])


def _row_to_progress(row: sqlite3.Row) -> ProgressRecord:
    return ProgressRecord(
        id=row["id"],
        user_id=row["user_id"],
        chapter_id=row["chapter_id"],
        current_time=float(row["current_position"]),
        is_completed=bool(row["is_completed"]),
        last_accessed_at=row["last_accessed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_download(row: sqlite3.Row) -> DownloadRecord:
    return DownloadRecord(
        id=row["id"],
        user_id=row["user_id"],
        chapter_id=row["chapter_id"],
        local_path=row["local_path"],
        downloaded_at=row["downloaded_at"],
    )
