"""Read-along text endpoints."""

from fastapi import APIRouter, Depends, HTTPException, status

from audiolearn.db import content_repository as content
from audiolearn.db import segments_repository as segments
from audiolearn.db.users_repository import UserRecord
from audiolearn.web.deps import get_current_user, require_admin, validate_id
from audiolearn.web.schemas import ReadAlongResponse, ReadAlongUpdate, SegmentSchema

router = APIRouter(prefix="/api/read-along", tags=["read-along"])


def _read_along_response(chapter_id: str) -> ReadAlongResponse:
    chapter = content.get_chapter(chapter_id)
    if chapter is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chapter '{chapter_id}' not found",
        )
    return ReadAlongResponse(
        chapter_id=chapter.id,
        text_content=chapter.text_content or "",
        has_read_along=chapter.has_read_along,
        segments=[SegmentSchema.model_validate(s) for s in segments.get_segments(chapter_id)],
    )


@router.get("/{chapter_id}", response_model=ReadAlongResponse)
async def get_read_along(
    chapter_id: str,
    user: UserRecord = Depends(get_current_user),
) -> ReadAlongResponse:
    """Get the text and timed segments of a chapter."""
    validate_id(chapter_id, "chapter id")
    return _read_along_response(chapter_id)


@router.put("/{chapter_id}", response_model=ReadAlongResponse)
async def put_read_along(
    chapter_id: str,
    body: ReadAlongUpdate,
    admin: UserRecord = Depends(require_admin),
) -> ReadAlongResponse:
    """Replace the read-along data of a chapter."""
    validate_id(chapter_id, "chapter id")
    if content.get_chapter(chapter_id) is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chapter '{chapter_id}' not found",
        )

    try:
        segments.replace_segments(
            chapter_id,
            body.text_content,
            [segments.TextSegment(**s.model_dump()) for s in body.segments],
        )
    except ValueError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    return _read_along_response(chapter_id)
