"""Audio download endpoints."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, status

from audiolearn.db import content_repository as content
from audiolearn.db import progress_repository as progress
from audiolearn.db.users_repository import UserRecord
from audiolearn.services import AudioDownloadError, AudioService
from audiolearn.web.deps import get_audio_service, get_current_user, validate_id
from audiolearn.web.schemas import DownloadListResponse, DownloadResponse, MessageResponse

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/api", tags=["downloads"])


@router.post("/download/{chapter_id}", response_model=DownloadResponse)
def download_chapter(
    chapter_id: str,
    user: UserRecord = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
) -> DownloadResponse:
    """Fetch a chapter's audio to server storage and record the download."""
    validate_id(chapter_id, "chapter id")
    chapter = content.get_chapter(chapter_id)
    if chapter is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Chapter '{chapter_id}' not found",
        )

    try:
        local_path = audio.download_audio(chapter.audio_url, chapter_id)
    except AudioDownloadError as e:
        logger.error("download.failed", chapter_id=chapter_id, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to download audio",
        )

    record = progress.add_download(user.id, chapter_id, str(local_path))
    return DownloadResponse.model_validate(record)


@router.get("/downloads", response_model=DownloadListResponse)
async def list_downloads(user: UserRecord = Depends(get_current_user)) -> DownloadListResponse:
    """List the user's downloads, newest first."""
    downloads = [DownloadResponse.model_validate(d) for d in progress.list_downloads(user.id)]
    return DownloadListResponse(downloads=downloads, count=len(downloads))


@router.delete("/downloads/{chapter_id}", response_model=MessageResponse)
def remove_download(
    chapter_id: str,
    user: UserRecord = Depends(get_current_user),
    audio: AudioService = Depends(get_audio_service),
) -> MessageResponse:
    """Remove a download; the file goes once no user holds it."""
    validate_id(chapter_id, "chapter id")
    if not progress.remove_download(user.id, chapter_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Download for chapter '{chapter_id}' not found",
        )

    if progress.count_chapter_downloads(chapter_id) == 0:
        audio.delete_downloaded_audio(chapter_id)
    return MessageResponse(ok=True, message="Download removed")
