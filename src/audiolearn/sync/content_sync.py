"""Full-snapshot content synchronization.

Pulls every course from the content API and upserts courses,
assignments and chapters by external id, sequentially, parent before
child. Local fields are overwritten by the pulled values (last pull
wins). A sync-status record tracks the outcome of each run; failed
runs are not retried.
"""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from audiolearn.db import content_repository as content
from audiolearn.db.sync_repository import create_sync_log
from audiolearn.sync.content_api import (
    ContentApiClient,
    RemoteAssignment,
    RemoteChapter,
    RemoteCourse,
)

logger = structlog.get_logger(__name__)


@dataclass
class SyncResult:
    """Counts of rows touched by one sync run."""

    courses_created: int = 0
    courses_updated: int = 0
    assignments_created: int = 0
    assignments_updated: int = 0
    chapters_created: int = 0
    chapters_updated: int = 0

    @property
    def total(self) -> int:
        return (
            self.courses_created
            + self.courses_updated
            + self.assignments_created
            + self.assignments_updated
            + self.chapters_created
            + self.chapters_updated
        )

    def summary(self) -> str:
        return (
            f"courses {self.courses_created} new/{self.courses_updated} updated, "
            f"assignments {self.assignments_created} new/{self.assignments_updated} updated, "
            f"chapters {self.chapters_created} new/{self.chapters_updated} updated"
        )


class ContentSyncService:
    """Upserts a content API snapshot into the local database."""

    def __init__(self, client: ContentApiClient):
        self.client = client

    def sync_content(self) -> SyncResult:
        """Pull the full snapshot and upsert it.

        Raises:
            ContentApiError: If the snapshot cannot be fetched
            sqlite3.Error: If a row cannot be written
        """
        result = SyncResult()
        courses = self.client.fetch_courses()

        for remote_course in courses:
            self._sync_course(remote_course, result)

        logger.info("sync.content_applied", total=result.total, summary=result.summary())
        return result

    def _sync_course(self, remote: RemoteCourse, result: SyncResult) -> None:
        fields = {
            "name": remote.name,
            "description": remote.description,
            "code": remote.code,
        }
        existing = content.get_course_by_external_id(remote.external_id)
        course = content.update_course(existing.id, **fields) if existing else None
        if course is None:
            # Not stored yet, or deleted since the lookup.
            course = content.create_course(external_id=remote.external_id, **fields)
            result.courses_created += 1
        else:
            result.courses_updated += 1

        for remote_assignment in remote.assignments:
            self._sync_assignment(course.id, remote_assignment, result)

    def _sync_assignment(self, course_id: str, remote: RemoteAssignment, result: SyncResult) -> None:
        fields = {
            "course_id": course_id,
            "title": remote.title,
            "description": remote.description,
            "order_index": remote.order,
        }
        existing = content.get_assignment_by_external_id(remote.external_id)
        assignment = content.update_assignment(existing.id, **fields) if existing else None
        if assignment is None:
            assignment = content.create_assignment(external_id=remote.external_id, **fields)
            result.assignments_created += 1
        else:
            result.assignments_updated += 1

        for remote_chapter in remote.chapters:
            self._sync_chapter(assignment.id, remote_chapter, result)

    def _sync_chapter(self, assignment_id: str, remote: RemoteChapter, result: SyncResult) -> None:
        fields = {
            "assignment_id": assignment_id,
            "title": remote.title,
            "description": remote.description,
            "audio_url": remote.audio_url,
            "duration": remote.duration,
            "order_index": remote.order,
        }
        existing = content.get_chapter_by_external_id(remote.external_id)
        if existing is not None and content.update_chapter(existing.id, **fields) is not None:
            result.chapters_updated += 1
        else:
            content.create_chapter(external_id=remote.external_id, **fields)
            result.chapters_created += 1


def run_sync(client: ContentApiClient | None = None) -> SyncResult:
    """Run one sync and record its outcome in the sync log.

    Writes ``in_progress`` first, then ``success`` or ``error``. The
    error is re-raised; nothing is retried.
    """
    owns_client = client is None
    client = client or ContentApiClient()
    create_sync_log("in_progress", "Starting sync from content API")
    logger.info("sync.started", base_url=client.config.base_url)

    try:
        result = ContentSyncService(client).sync_content()
    except Exception as e:
        create_sync_log("error", f"Sync failed: {e}")
        logger.error("sync.failed", error=str(e), error_type=type(e).__name__)
        raise
    finally:
        if owns_client:
            client.close()

    create_sync_log("success", f"Sync completed successfully: {result.summary()}")
    logger.info("sync.completed", total=result.total)
    return result
