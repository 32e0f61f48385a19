"""Pooled audio elements for chapter-to-chapter navigation.

Creating and tearing down media elements for every chapter switch is
wasteful, so elements are cached by normalized URL in a bounded pool.
The oldest entry is evicted first (FIFO, lookups do not refresh it) and
evicted elements are explicitly released.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Iterable, Protocol
from urllib.parse import urljoin

import httpx
import structlog

logger = structlog.get_logger(__name__)

DEFAULT_MAX_POOL_SIZE = 5
DEFAULT_READY_TIMEOUT = 10.0


class MediaElement(Protocol):
    """Minimal surface of a playable audio element."""

    src: str | None

    def pause(self) -> None: ...

    def release(self) -> None:
        """Detach the source and drop any buffered media."""
        ...

    async def wait_ready(self, timeout: float) -> None:
        """Return once playable; raise on error or timeout."""
        ...


ElementFactory = Callable[[str], MediaElement]


class BufferedAudio:
    """Media element that buffers the whole file in memory via httpx."""

    def __init__(self, src: str, client: httpx.AsyncClient):
        self.src: str | None = src
        self.data: bytes | None = None
        self.paused = True
        self.current_time = 0.0
        self._client = client
        self._load_task: asyncio.Task[None] | None = None

    def _ensure_loading(self, src: str) -> asyncio.Task[None]:
        if self._load_task is None:
            self._load_task = asyncio.get_running_loop().create_task(self._load(src))
        return self._load_task

    async def _load(self, src: str) -> None:
        response = await self._client.get(src)
        response.raise_for_status()
        self.data = response.content

    async def wait_ready(self, timeout: float) -> None:
        if self.src is None:
            raise RuntimeError("Audio element has been released")
        await asyncio.wait_for(asyncio.shield(self._ensure_loading(self.src)), timeout)

    def play(self) -> None:
        self.paused = False

    def pause(self) -> None:
        self.paused = True

    def release(self) -> None:
        self.pause()
        if self._load_task is not None and not self._load_task.done():
            self._load_task.cancel()
        self._load_task = None
        self.src = None
        self.data = None
        self.current_time = 0.0


class AudioPool:
    """Bounded cache of media elements keyed by normalized URL.

    Args:
        factory: Creates a new element for a URL.
        max_size: Maximum number of pooled elements.
        base_url: Origin used to absolutize relative URLs.
        ready_timeout: Seconds a preload may wait for readiness.
    """

    def __init__(
        self,
        factory: ElementFactory,
        max_size: int = DEFAULT_MAX_POOL_SIZE,
        base_url: str = "http://localhost:5000",
        ready_timeout: float = DEFAULT_READY_TIMEOUT,
    ):
        if max_size < 1:
            raise ValueError("max_size must be at least 1")
        self._factory = factory
        self.max_size = max_size
        self.base_url = base_url
        self.ready_timeout = ready_timeout
        self._pool: dict[str, MediaElement] = {}
        self._preloading: dict[str, asyncio.Task[None]] = {}

    def __len__(self) -> int:
        return len(self._pool)

    def __contains__(self, url: object) -> bool:
        return isinstance(url, str) and self.normalize_url(url) in self._pool

    def keys(self) -> list[str]:
        return list(self._pool)

    def normalize_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        return urljoin(self.base_url.rstrip("/") + "/", url)

    def get(self, src: str) -> MediaElement:
        """Return the pooled element for ``src``, creating it if needed."""
        key = self.normalize_url(src)
        element = self._pool.get(key)
        if element is not None:
            return element

        element = self._factory(key)
        self._insert(key, element)
        logger.debug("audio_pool.created", url=key, size=len(self._pool))
        return element

    def _insert(self, key: str, element: MediaElement) -> None:
        if len(self._pool) >= self.max_size:
            self._evict_oldest()
        self._pool[key] = element

    def _evict_oldest(self) -> None:
        oldest_key = next(iter(self._pool))
        oldest = self._pool.pop(oldest_key)
        oldest.release()
        logger.debug("audio_pool.evicted", url=oldest_key)

    def preload(self, urls: Iterable[str]) -> None:
        """Warm up upcoming tracks in the background.

        Each URL is loaded after the current loop iteration; it joins the
        pool only if it becomes ready within ``ready_timeout``. Failures
        are discarded quietly.
        """
        loop = asyncio.get_running_loop()
        for url in urls:
            key = self.normalize_url(url)
            if key in self._pool or key in self._preloading:
                continue
            task = loop.create_task(self._preload_one(key))
            self._preloading[key] = task
            task.add_done_callback(lambda _t, k=key: self._preloading.pop(k, None))

    async def _preload_one(self, key: str) -> None:
        await asyncio.sleep(0)
        element = self._factory(key)
        try:
            await asyncio.wait_for(element.wait_ready(self.ready_timeout), self.ready_timeout)
        except asyncio.CancelledError:
            element.release()
            raise
        except (asyncio.TimeoutError, httpx.HTTPError, OSError, RuntimeError) as e:
            element.release()
            logger.debug("audio_pool.preload_failed", url=key, error=str(e) or type(e).__name__)
            return

        if key in self._pool:
            element.release()
            return
        self._insert(key, element)
        logger.debug("audio_pool.preloaded", url=key, size=len(self._pool))

    async def wait_preloads(self) -> None:
        """Wait for every scheduled preload to settle."""
        if self._preloading:
            await asyncio.gather(*list(self._preloading.values()), return_exceptions=True)

    def cleanup(self) -> None:
        """Release every element and cancel outstanding preloads."""
        for task in list(self._preloading.values()):
            task.cancel()
        self._preloading.clear()
        for element in self._pool.values():
            element.release()
        self._pool.clear()
        logger.debug("audio_pool.cleared")
