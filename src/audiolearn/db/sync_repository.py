"""Repository functions for the content-sync status log."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass

import structlog

from audiolearn.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)

SYNC_STATUSES = ("success", "error", "in_progress")


@dataclass
class SyncLogRecord:
    """Outcome of one content sync run."""

    id: str
    status: str
    message: str | None
    synced_at: str


def create_sync_log(status: str, message: str | None = None) -> SyncLogRecord:
    """Append a sync log entry.

    Raises:
        ValueError: If status is not one of SYNC_STATUSES
    """
    if status not in SYNC_STATUSES:
        raise ValueError(f"Invalid sync status: {status!r}")

    record = SyncLogRecord(id=new_id(), status=status, message=message, synced_at=utc_now())
    with get_db() as conn:
        conn.execute(
            "INSERT INTO sync_logs (id, status, message, synced_at) VALUES (?, ?, ?, ?)",
            (record.id, record.status, record.message, record.synced_at),
        )

    logger.debug("sync_logs.created", status=status)
    return record


def get_latest_sync_log() -> SyncLogRecord | None:
    """Get the most recent sync log entry."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM sync_logs ORDER BY synced_at DESC, rowid DESC LIMIT 1"
        ).fetchone()
    return _row_to_record(row) if row else None


def list_sync_logs(limit: int = 20) -> list[SyncLogRecord]:
    """Get recent sync log entries, newest first."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM sync_logs ORDER BY synced_at DESC, rowid DESC LIMIT ?",
            (limit,),
        ).fetchall()
    return [_row_to_record(row) for row in rows]


def _row_to_record(row: sqlite3.Row) -> SyncLogRecord:
    return SyncLogRecord(
        id=row["id"],
        status=row["status"],
        message=row["message"],
        synced_at=row["synced_at"],
    )
