"""One listening session: the current chapter, its element and its reporting."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Iterable

import httpx
import structlog

from audiolearn.client.api_client import ApiClient, ApiError
from audiolearn.client.audio_pool import AudioPool, MediaElement
from audiolearn.client.offline_storage import OfflineStorage
from audiolearn.client.progress_tracker import ProgressBatcher, ProgressDeliveryError
from audiolearn.client.read_along import ReadAlongSync

logger = structlog.get_logger(__name__)


@dataclass
class NowPlaying:
    chapter_id: str
    title: str
    src: str
    duration: float | None
    resume_at: float = 0.0
    offline: bool = False


class PlaybackSession:
    """Wires a media element to progress batching and read-along sync.

    The owner of the media element calls the three hooks:
    ``on_time_update`` on every position tick, ``on_ended`` when the track
    finishes and ``on_error`` when playback fails. Use as an async
    context manager so pending progress is flushed on exit.

    Offline progress is written when the page is hidden or unloaded, when
    the chapter changes or ends and on close, not on every tick.
    """

    def __init__(
        self,
        api: ApiClient,
        pool: AudioPool,
        *,
        storage: OfflineStorage | None = None,
        batcher: ProgressBatcher | None = None,
        on_error: Callable[[Exception], None] | None = None,
    ):
        self.api = api
        self.pool = pool
        self.storage = storage
        self.batcher = batcher or ProgressBatcher(api.send_progress, beacon=api.beacon_progress)
        self.batcher.add_error_handler(self._on_delivery_error)
        self._error_handler = on_error

        self.now_playing: NowPlaying | None = None
        self.element: MediaElement | None = None
        self.read_along: ReadAlongSync | None = None
        self.current_time = 0.0
        self.last_error: Exception | None = None
        self._object_url: str | None = None
        self._local_dirty = False

    async def __aenter__(self) -> PlaybackSession:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def load(self, chapter: dict[str, Any]) -> NowPlaying:
        """Make ``chapter`` the current track.

        Downloaded chapters play from offline storage; others come from
        the pool. The resume position is taken from the server, or from
        offline storage when the server is unreachable.
        """
        await self._leave_current()

        chapter_id = chapter["id"]
        offline_url = None
        if self.storage is not None and self.storage.is_audio_downloaded(chapter_id):
            offline_url = self.storage.create_audio_url(chapter_id)
            self._object_url = offline_url

        src = offline_url or chapter["audio_url"]
        self.element = self.pool.get(src)
        self.now_playing = NowPlaying(
            chapter_id=chapter_id,
            title=chapter.get("title", ""),
            src=src,
            duration=chapter.get("duration"),
            resume_at=await self._resume_position(chapter_id),
            offline=offline_url is not None,
        )
        self.current_time = self.now_playing.resume_at

        self.read_along = None
        if chapter.get("has_read_along"):
            try:
                data = await self.api.get_read_along(chapter_id)
            except (ApiError, httpx.HTTPError) as e:
                logger.warning("playback.read_along_unavailable", chapter_id=chapter_id, error=str(e))
            else:
                self.read_along = ReadAlongSync(data)

        logger.info(
            "playback.loaded",
            chapter_id=chapter_id,
            offline=self.now_playing.offline,
            resume_at=self.now_playing.resume_at,
        )
        return self.now_playing

    async def _resume_position(self, chapter_id: str) -> float:
        try:
            progress = await self.api.get_progress(chapter_id)
            return float(progress.get("current_time") or 0.0)
        except (ApiError, httpx.HTTPError) as e:
            logger.debug("playback.progress_unavailable", chapter_id=chapter_id, error=str(e))
        if self.storage is not None:
            local = self.storage.get_progress(chapter_id)
            if local is not None:
                return local.current_time
        return 0.0

    def preload(self, urls: Iterable[str]) -> None:
        self.pool.preload(urls)

    # -------------------------------------------------------------------------
    # Element hooks
    # -------------------------------------------------------------------------

    def on_time_update(self, current_time: float) -> None:
        if self.now_playing is None:
            return
        self.current_time = current_time
        chapter_id = self.now_playing.chapter_id
        self.batcher.update(chapter_id, current_time)
        if self.read_along is not None:
            self.read_along.on_time_update(current_time)
        self._local_dirty = True

    def on_ended(self) -> None:
        if self.now_playing is None:
            return
        chapter_id = self.now_playing.chapter_id
        final = self.now_playing.duration or self.current_time
        self.batcher.update(chapter_id, final, is_completed=True)
        if self.storage is not None:
            self.storage.save_progress(
                chapter_id, final, self.now_playing.duration or 0.0, is_completed=True
            )
        self._local_dirty = False
        logger.info("playback.ended", chapter_id=chapter_id)

    def on_error(self, error: Exception) -> None:
        self.last_error = error
        chapter_id = self.now_playing.chapter_id if self.now_playing else None
        logger.error("playback.error", chapter_id=chapter_id, error=str(error))
        if self._error_handler is not None:
            self._error_handler(error)

    def _on_delivery_error(self, error: ProgressDeliveryError) -> None:
        self.on_error(error)

    # -------------------------------------------------------------------------
    # Lifetime
    # -------------------------------------------------------------------------

    def _save_local(self) -> None:
        """Write the last position to offline storage if it moved since the last write."""
        if not self._local_dirty or self.storage is None or self.now_playing is None:
            return
        self.storage.save_progress(
            self.now_playing.chapter_id,
            self.current_time,
            self.now_playing.duration or 0.0,
        )
        self._local_dirty = False

    async def _leave_current(self) -> None:
        if self.read_along is not None:
            self.read_along.cancel()
        self.batcher.flush()
        self._save_local()
        if self._object_url is not None and self.storage is not None:
            self.storage.revoke_audio_url(self._object_url)
        self._object_url = None

    def page_hidden(self) -> None:
        self.batcher.page_hidden()
        self._save_local()

    def page_unload(self) -> None:
        self.batcher.page_unload()
        self._save_local()

    async def close(self) -> None:
        await self._leave_current()
        await self.batcher.close()
        self.pool.cleanup()
        self.now_playing = None
        self.element = None
