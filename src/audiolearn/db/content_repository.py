"""Repository functions for courses, assignments and chapters.

Provides CRUD operations for the content hierarchy
Course -> Assignment -> Chapter. Rows synced from the content API are
matched on ``external_id``.
"""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

import structlog

from audiolearn.db.database import RecordNotFoundError, get_db, new_id, utc_now

logger = structlog.get_logger(__name__)

COURSE_FIELDS = ("code", "name", "description", "external_id", "is_active")
ASSIGNMENT_FIELDS = ("course_id", "title", "description", "order_index", "external_id")
CHAPTER_FIELDS = (
    "assignment_id",
    "title",
    "description",
    "audio_url",
    "duration",
    "order_index",
    "external_id",
    "text_content",
    "has_read_along",
)


@dataclass
class CourseRecord:
    """Course record from database."""

    id: str
    code: str | None
    name: str
    description: str | None
    external_id: str | None
    is_active: bool
    created_at: str
    updated_at: str


@dataclass
class AssignmentRecord:
    """Assignment record from database."""

    id: str
    course_id: str
    title: str
    description: str | None
    order_index: int
    external_id: str | None
    created_at: str
    updated_at: str


@dataclass
class ChapterRecord:
    """Chapter record from database."""

    id: str
    assignment_id: str
    title: str
    description: str | None
    audio_url: str
    duration: int | None
    order_index: int
    external_id: str | None
    text_content: str | None
    has_read_along: bool
    created_at: str
    updated_at: str


def _insert(table: str, allowed: tuple[str, ...], values: dict[str, Any]) -> str:
    """Insert a row with a fresh id and timestamps, returning the id."""
    unknown = set(values) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown {table} fields: {sorted(unknown)}")

    row_id = new_id()
    now = utc_now()
    columns = ["id", *values.keys(), "created_at", "updated_at"]
    params = [row_id, *values.values(), now, now]
    placeholders = ", ".join("?" for _ in columns)

    with get_db() as conn:
        conn.execute(
            f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",
            params,
        )

    logger.debug(f"{table}.inserted", id=row_id)
    return row_id


def _update(table: str, allowed: tuple[str, ...], row_id: str, values: dict[str, Any]) -> bool:
    """Update selected columns of a row. Returns False if the row is missing."""
    unknown = set(values) - set(allowed)
    if unknown:
        raise ValueError(f"Unknown {table} fields: {sorted(unknown)}")

    assignments = [f"{column} = ?" for column in values]
    assignments.append("updated_at = ?")
    params = [*values.values(), utc_now(), row_id]

    with get_db() as conn:
        cursor = conn.execute(
            f"UPDATE {table} SET {', '.join(assignments)} WHERE id = ?",
            params,
        )
        updated = cursor.rowcount > 0

    if updated:
        logger.debug(f"{table}.updated", id=row_id, fields=sorted(values))
    return updated


# =============================================================================
# COURSES
# =============================================================================


def list_courses(include_inactive: bool = False) -> list[CourseRecord]:
    """Get courses ordered by name.

    Args:
        include_inactive: Also return soft-deleted courses.
    """
    query = "SELECT * FROM courses"
    if not include_inactive:
        query += " WHERE is_active = 1"
    query += " ORDER BY name"

    with get_db() as conn:
        rows = conn.execute(query).fetchall()

    return [_row_to_course(row) for row in rows]


def get_course(course_id: str) -> CourseRecord | None:
    """Get course by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM courses WHERE id = ?", (course_id,)).fetchone()
    return _row_to_course(row) if row else None


def get_course_by_external_id(external_id: str) -> CourseRecord | None:
    """Get course by its content API identifier."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM courses WHERE external_id = ?", (external_id,)
        ).fetchone()
    return _row_to_course(row) if row else None


def create_course(name: str, **fields: Any) -> CourseRecord:
    """Create a course.

    Args:
        name: Course name
        **fields: Optional code, description, external_id, is_active

    Raises:
        sqlite3.IntegrityError: If external_id already exists
    """
    course_id = _insert("courses", COURSE_FIELDS, {"name": name, **fields})
    course = get_course(course_id)
    if course is None:
        raise RecordNotFoundError("courses", course_id)
    return course


def update_course(course_id: str, **fields: Any) -> CourseRecord | None:
    """Update a course. Returns None if it does not exist."""
    if fields and not _update("courses", COURSE_FIELDS, course_id, fields):
        return None
    return get_course(course_id)


def delete_course(course_id: str) -> bool:
    """Soft-delete a course by marking it inactive."""
    return _update("courses", COURSE_FIELDS, course_id, {"is_active": False})


def count_courses() -> int:
    """Number of active courses."""
    with get_db() as conn:
        row = conn.execute("SELECT COUNT(*) FROM courses WHERE is_active = 1").fetchone()
    return int(row[0])


# =============================================================================
# ASSIGNMENTS
# =============================================================================


def list_assignments(course_id: str) -> list[AssignmentRecord]:
    """Get assignments of a course ordered by order_index."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM assignments WHERE course_id = ? ORDER BY order_index",
            (course_id,),
        ).fetchall()
    return [_row_to_assignment(row) for row in rows]


def get_assignment(assignment_id: str) -> AssignmentRecord | None:
    """Get assignment by ID."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM assignments WHERE id = ?", (assignment_id,)
        ).fetchone()
    return _row_to_assignment(row) if row else None


def get_assignment_by_external_id(external_id: str) -> AssignmentRecord | None:
    """Get assignment by its content API identifier."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM assignments WHERE external_id = ?", (external_id,)
        ).fetchone()
    return _row_to_assignment(row) if row else None


def create_assignment(course_id: str, title: str, order_index: int, **fields: Any) -> AssignmentRecord:
    """Create an assignment under a course.

    Raises:
        sqlite3.IntegrityError: If the course does not exist or external_id is taken
    """
    assignment_id = _insert(
        "assignments",
        ASSIGNMENT_FIELDS,
        {"course_id": course_id, "title": title, "order_index": order_index, **fields},
    )
    assignment = get_assignment(assignment_id)
    if assignment is None:
        raise RecordNotFoundError("assignments", assignment_id)
    return assignment


def update_assignment(assignment_id: str, **fields: Any) -> AssignmentRecord | None:
    """Update an assignment. Returns None if it does not exist."""
    if fields and not _update("assignments", ASSIGNMENT_FIELDS, assignment_id, fields):
        return None
    return get_assignment(assignment_id)


def delete_assignment(assignment_id: str) -> bool:
    """Delete an assignment and, by cascade, its chapters."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM assignments WHERE id = ?", (assignment_id,))
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info("assignments.deleted", id=assignment_id)
    return deleted


# =============================================================================
# CHAPTERS
# =============================================================================


def list_chapters(assignment_id: str) -> list[ChapterRecord]:
    """Get chapters of an assignment ordered by order_index."""
    with get_db() as conn:
        rows = conn.execute(
            "SELECT * FROM chapters WHERE assignment_id = ? ORDER BY order_index",
            (assignment_id,),
        ).fetchall()
    return [_row_to_chapter(row) for row in rows]


def get_chapter(chapter_id: str) -> ChapterRecord | None:
    """Get chapter by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM chapters WHERE id = ?", (chapter_id,)).fetchone()
    return _row_to_chapter(row) if row else None


def get_chapter_by_external_id(external_id: str) -> ChapterRecord | None:
    """Get chapter by its content API identifier."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM chapters WHERE external_id = ?", (external_id,)
        ).fetchone()
    return _row_to_chapter(row) if row else None


def create_chapter(
    assignment_id: str,
    title: str,
    audio_url: str,
    order_index: int,
    **fields: Any,
) -> ChapterRecord:
    """Create a chapter under an assignment.

    Raises:
        sqlite3.IntegrityError: If the assignment does not exist or external_id is taken
    """
    chapter_id = _insert(
        "chapters",
        CHAPTER_FIELDS,
        {
            "assignment_id": assignment_id,
            "title": title,
            "audio_url": audio_url,
            "order_index": order_index,
            **fields,
        },
    )
    chapter = get_chapter(chapter_id)
    if chapter is None:
        raise RecordNotFoundError("chapters", chapter_id)
    return chapter


def update_chapter(chapter_id: str, **fields: Any) -> ChapterRecord | None:
    """Update a chapter. Returns None if it does not exist."""
    if fields and not _update("chapters", CHAPTER_FIELDS, chapter_id, fields):
        return None
    return get_chapter(chapter_id)


def delete_chapter(chapter_id: str) -> bool:
    """Delete a chapter together with its progress, downloads and segments."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM chapters WHERE id = ?", (chapter_id,))
        deleted = cursor.rowcount > 0
    if deleted:
        logger.info("chapters.deleted", id=chapter_id)
    return deleted


# =============================================================================
# ROW MAPPING
# =============================================================================


def _row_to_course(row: sqlite3.Row) -> CourseRecord:
    return CourseRecord(
        id=row["id"],
        code=row["code"],
        name=row["name"],
        description=row["description"],
        external_id=row["external_id"],
        is_active=bool(row["is_active"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_assignment(row: sqlite3.Row) -> AssignmentRecord:
    return AssignmentRecord(
        id=row["id"],
        course_id=row["course_id"],
        title=row["title"],
        description=row["description"],
        order_index=row["order_index"],
        external_id=row["external_id"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _row_to_chapter(row: sqlite3.Row) -> ChapterRecord:
    return ChapterRecord(
        id=row["id"],
        assignment_id=row["assignment_id"],
        title=row["title"],
        description=row["description"],
        audio_url=row["audio_url"],
        duration=row["duration"],
        order_index=row["order_index"],
        external_id=row["external_id"],
        text_content=row["text_content"],
        has_read_along=bool(row["has_read_along"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
