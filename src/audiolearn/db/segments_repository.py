"""Repository functions for read-along text segments."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Iterable

import structlog

from audiolearn.db.database import get_db, new_id, utc_now

logger = structlog.get_logger(__name__)

SEGMENT_TYPES = ("sentence", "paragraph", "word")


@dataclass
class TextSegment:
    """A timed span of chapter text, ``[start_time, end_time)`` in seconds."""

    segment_index: int
    segment_type: str
    text: str
    start_time: float
    end_time: float
    word_index: int | None = None
    character_start: int | None = None
    character_end: int | None = None
    id: str | None = None


def get_segments(chapter_id: str) -> list[TextSegment]:
    """Get all segments of a chapter ordered by segment_index."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM text_segments WHERE chapter_id = ? ORDER BY segment_index, start_time",
            (chapter_id,),
        ).fetchall()
    return [_row_to_segment(row) for row in rows]


def replace_segments(
    chapter_id: str,
    text_content: str,
    segments: Iterable[TextSegment],
) -> int:
    """Replace the read-along data of a chapter.

    Deletes existing segments, inserts the new ones and updates the
    chapter's ``text_content``/``has_read_along`` in one transaction.

    Returns:
        Number of segments stored

    Raises:
        ValueError: If a segment has an unknown type or an inverted window
        sqlite3.IntegrityError: If the chapter does not exist
    """
    now = utc_now()
    rows = []
    for segment in segments:
        if segment.segment_type not in SEGMENT_TYPES:
            raise ValueError(f"Unknown segment type: {segment.segment_type!r}")
        if segment.end_time < segment.start_time:
            raise ValueError(
                f"Segment {segment.segment_index} ends before it starts "
                f"({segment.start_time} > {segment.end_time})"
            )
        rows.append(
            (
                segment.id or new_id(),
                chapter_id,
                segment.segment_index,
                segment.segment_type,
                segment.text,
                float(segment.start_time),
                float(segment.end_time),
                segment.word_index,
                segment.character_start,
                segment.character_end,
                now,
            )
        )

    with get_db() as conn:
        conn.execute("DELETE FROM text_segments WHERE chapter_id = ?", (chapter_id,))
        conn.executemany(
            """
            INSERT INTO text_segments (
                id, chapter_id, segment_index, segment_type, text,
                start_time, end_time, word_index, character_start, character_end,
                created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            rows,
        )
        conn.execute(
            "UPDATE chapters SET text_content = ?, has_read_along = ?, updated_at = ? WHERE id = ?",
            (text_content, bool(rows), now, chapter_id),
        )

    logger.info("segments.replaced", chapter_id=chapter_id, count=len(rows))
    return len(rows)


def _row_to_segment(row: sqlite3.Row) -> TextSegment:
    return TextSegment(
        id=row["id"],
        segment_index=row["segment_index"],
        segment_type=row["segment_type"],
        text=row["text"],
        start_time=float(row["start_time"]),
        end_time=float(row["end_time"]),
        word_index=row["word_index"],
        character_start=row["character_start"],
        character_end=row["character_end"],
    )
