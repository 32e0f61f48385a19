"""Server-side audio download service.

Fetches remote chapter audio and stores it on local disk as
``<download_dir>/<chapter_id>.mp3``.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

import httpx
import structlog

logger = structlog.get_logger(__name__)

AUDIO_SUFFIX = ".mp3"
CHUNK_SIZE = 64 * 1024


class AudioDownloadError(Exception):
    """Error downloading or storing chapter audio."""

    pass


class AudioService:
    """Downloads chapter audio to a local directory."""

    def __init__(
        self,
        download_dir: Path,
        base_url: str = "http://localhost:5000",
        http_client: httpx.Client | None = None,
        timeout: float = 120.0,
    ):
        """Initialize the service.

        Args:
            download_dir: Directory where audio files are stored
            base_url: Used to resolve audio URLs that start with '/'
            http_client: Pre-built httpx client, mainly for tests
            timeout: Request timeout in seconds
        """
        self.download_dir = Path(download_dir)
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.Client(timeout=timeout, follow_redirects=True)
        self.download_dir.mkdir(parents=True, exist_ok=True)

    def resolve_url(self, audio_url: str) -> str:
        """Turn a server-relative audio URL into an absolute one."""
        if audio_url.startswith("/"):
            return f"{self.base_url}{audio_url}"
        return audio_url

    def get_local_audio_path(self, chapter_id: str) -> Path:
        return self.download_dir / f"{chapter_id}{AUDIO_SUFFIX}"

    def is_audio_downloaded(self, chapter_id: str) -> bool:
        return self.get_local_audio_path(chapter_id).is_file()

    def download_audio(self, audio_url: str, chapter_id: str) -> Path:
        """Download audio for a chapter.

        Bytes are streamed to a temporary file that is renamed into place
        once complete, so a failed download never leaves a partial file.

        Returns:
            Path of the stored file

        Raises:
            AudioDownloadError: On transport failure or error status
        """
        url = self.resolve_url(audio_url)
        target = self.get_local_audio_path(chapter_id)
        fd, tmp_name = tempfile.mkstemp(dir=self.download_dir, suffix=".part")
        tmp_path = Path(tmp_name)

        try:
            with os.fdopen(fd, "wb") as handle:
                with self._client.stream("GET", url) as response:
                    if response.is_error:
                        raise AudioDownloadError(
                            f"Failed to download audio: {response.status_code} {response.reason_phrase}"
                        )
                    for chunk in response.iter_bytes(CHUNK_SIZE):
                        handle.write(chunk)
            os.replace(tmp_path, target)
        except httpx.HTTPError as e:
            tmp_path.unlink(missing_ok=True)
            logger.error("audio.download_failed", chapter_id=chapter_id, url=url, error=str(e))
            raise AudioDownloadError(f"Failed to download audio from {url}: {e}") from e
        except AudioDownloadError:
            tmp_path.unlink(missing_ok=True)
            logger.error("audio.download_failed", chapter_id=chapter_id, url=url)
            raise

        logger.info(
            "audio.downloaded",
            chapter_id=chapter_id,
            path=str(target),
            bytes=target.stat().st_size,
        )
        return target

    def delete_downloaded_audio(self, chapter_id: str) -> bool:
        """Delete the stored audio of a chapter.

        Returns:
            True if a file was removed, False if none existed
        """
        path = self.get_local_audio_path(chapter_id)
        if not path.exists():
            logger.debug("audio.delete_missing", chapter_id=chapter_id)
            return False
        path.unlink()
        logger.info("audio.deleted", chapter_id=chapter_id)
        return True
