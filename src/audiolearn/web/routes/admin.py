"""Admin endpoints: content sync and manual content editing."""

import sqlite3
from dataclasses import asdict

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from audiolearn.db import content_repository as content
from audiolearn.db.sync_repository import get_latest_sync_log
from audiolearn.db.users_repository import UserRecord
from audiolearn.sync import ContentApiClient, ContentApiError, run_sync
from audiolearn.web.deps import get_content_client, require_admin, validate_id
from audiolearn.web.schemas import (
    AssignmentCreate,
    AssignmentResponse,
    AssignmentUpdate,
    ChapterCreate,
    ChapterResponse,
    ChapterUpdate,
    SyncLogResponse,
    SyncResponse,
    SyncStatusResponse,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])


def _not_found(kind: str, item_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"{kind} '{item_id}' not found",
    )


def _conflict(kind: str, external_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"{kind} with external id '{external_id}' already exists",
    )


# =============================================================================
# SYNC
# =============================================================================

@router.post("/sync", response_model=SyncResponse)
def sync_content(
    admin: UserRecord = Depends(require_admin),
    client: ContentApiClient = Depends(get_content_client),
) -> SyncResponse:
    """Pull the course catalogue from the content API."""
    logger.info("admin.sync_requested", user_id=admin.id)
    try:
        result = run_sync(client)
    except (ContentApiError, sqlite3.Error) as e:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Sync failed: {e}",
        )
    finally:
        client.close()

    return SyncResponse(status="success", message=result.summary(), **asdict(result))


@router.get("/sync-status", response_model=SyncStatusResponse)
async def sync_status(admin: UserRecord = Depends(require_admin)) -> SyncStatusResponse:
    """Get the latest sync log entry."""
    latest = get_latest_sync_log()
    if latest is None:
        return SyncStatusResponse()
    return SyncStatusResponse(last_sync=SyncLogResponse.model_validate(latest))


# =============================================================================
# ASSIGNMENTS
# =============================================================================


@router.post(
    "/assignments",
    response_model=AssignmentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_assignment(
    body: AssignmentCreate,
    admin: UserRecord = Depends(require_admin),
) -> AssignmentResponse:
    """Create an assignment under an existing course."""
    if content.get_course(body.course_id) is None:
        raise _not_found("Course", body.course_id)
    if body.external_id and content.get_assignment_by_external_id(body.external_id):
        raise _conflict("Assignment", body.external_id)

    fields = body.model_dump(exclude={"course_id", "title", "order_index"}, exclude_none=True)
    assignment = content.create_assignment(body.course_id, body.title, body.order_index, **fields)
    logger.info("admin.assignment_created", id=assignment.id, user_id=admin.id)
    return AssignmentResponse.model_validate(assignment)


@router.put("/assignments/{assignment_id}", response_model=AssignmentResponse)
async def update_assignment(
    assignment_id: str,
    body: AssignmentUpdate,
    admin: UserRecord = Depends(require_admin),
) -> AssignmentResponse:
    """Update the provided fields of an assignment."""
    validate_id(assignment_id, "assignment id")
    assignment = content.update_assignment(assignment_id, **body.model_dump(exclude_unset=True))
    if assignment is None:
        raise _not_found("Assignment", assignment_id)
    return AssignmentResponse.model_validate(assignment)


@router.delete("/assignments/{assignment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_assignment(
    assignment_id: str,
    admin: UserRecord = Depends(require_admin),
) -> None:
    """Delete an assignment together with its chapters."""
    validate_id(assignment_id, "assignment id")
    if not content.delete_assignment(assignment_id):
        raise _not_found("Assignment", assignment_id)


# =============================================================================
# CHAPTERS
# =============================================================================


@router.post(
    "/chapters",
    response_model=ChapterResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_chapter(
    body: ChapterCreate,
    admin: UserRecord = Depends(require_admin),
) -> ChapterResponse:
    """Create a chapter under an existing assignment."""
    if content.get_assignment(body.assignment_id) is None:
        raise _not_found("Assignment", body.assignment_id)
    if body.external_id and content.get_chapter_by_external_id(body.external_id):
        raise _conflict("Chapter", body.external_id)

    fields = body.model_dump(
        exclude={"assignment_id", "title", "audio_url", "order_index"},
        exclude_none=True,
    )
    chapter = content.create_chapter(
        body.assignment_id, body.title, body.audio_url, body.order_index, **fields
    )
    logger.info("admin.chapter_created", id=chapter.id, user_id=admin.id)
    return ChapterResponse.model_validate(chapter)


@router.put("/chapters/{chapter_id}", response_model=ChapterResponse)
async def update_chapter(
    chapter_id: str,
    body: ChapterUpdate,
    admin: UserRecord = Depends(require_admin),
) -> ChapterResponse:
    """Update the provided fields of a chapter."""
    validate_id(chapter_id, "chapter id")
    chapter = content.update_chapter(chapter_id, **body.model_dump(exclude_unset=True))
    if chapter is None:
        raise _not_found("Chapter", chapter_id)
    return ChapterResponse.model_validate(chapter)


@router.delete("/chapters/{chapter_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_chapter(
    chapter_id: str,
    admin: UserRecord = Depends(require_admin),
) -> None:
    """Delete a chapter with its progress, downloads and read-along segments."""
    validate_id(chapter_id, "chapter id")
    if not content.delete_chapter(chapter_id):
        raise _not_found("Chapter", chapter_id)
