"""Listening progress endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from audiolearn.db import content_repository as content
from audiolearn.db import progress_repository as progress
from audiolearn.db.users_repository import UserRecord
from audiolearn.web.deps import get_current_user, validate_id
from audiolearn.web.schemas import (
    ProgressBatchRequest,
    ProgressBatchResponse,
    ProgressResponse,
    ProgressUpdateRequest,
)

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api/progress", tags=["progress"])


def _save(user: UserRecord, update: ProgressUpdateRequest) -> ProgressResponse:
    if content.get_chapter(update.chapter_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chapter '{update.chapter_id}' not found",
        )
    record = progress.upsert_progress(
        user.id,
        update.chapter_id,
        update.current_time,
        update.is_completed,
    )
    return ProgressResponse.model_validate(record)


@router.get("/{chapter_id}", response_model=ProgressResponse)
async def get_progress(
    chapter_id: str,
    user: UserRecord = Depends(get_current_user),
) -> ProgressResponse:
    """Get progress for a chapter; a fresh default if never listened."""
    validate_id(chapter_id, "chapter id")
    record = progress.get_progress(user.id, chapter_id)
    if record is None:
        return ProgressResponse(chapter_id=chapter_id)
    return ProgressResponse.model_validate(record)


@router.post("", response_model=ProgressResponse)
async def save_progress(
    body: ProgressUpdateRequest,
    user: UserRecord = Depends(get_current_user),
) -> ProgressResponse:
    """Save one progress report."""
    return _save(user, body)


@router.post("/batch", response_model=ProgressBatchResponse)
async def save_progress_batch(
    body: ProgressBatchRequest,
    user: UserRecord = Depends(get_current_user),
) -> ProgressBatchResponse:
    """Save several progress reports; the last report per chapter wins.

    Reports for chapters that do not exist are skipped and listed in
    `unknown`.
    """
    latest: dict[str, ProgressUpdateRequest] = {}
    for update in body.updates:
        latest[update.chapter_id] = update

    saved: list[ProgressResponse] = []
    unknown: list[str] = []
    for chapter_id, update in latest.items():
        if content.get_chapter(chapter_id) is None:
            unknown.append(chapter_id)
            continue
        saved.append(_save(user, update))

    if unknown:
        logger.warning("progress.batch_unknown_chapters", user_id=user.id, chapters=unknown)
    return ProgressBatchResponse(saved=len(saved), progress=saved, unknown=unknown)
