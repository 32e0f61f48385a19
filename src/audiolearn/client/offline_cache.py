"""Offline-aware fetching of same-origin GET requests.

Each request is routed to one strategy:

- navigation: network first, then the cached offline page
- ``/api/``: network first, then the cached copy, else a 503 JSON reply
- audio: cache first; successful audio responses are cached
- anything else: network first, caching successful responses

Cross-origin and non-GET requests bypass the cache entirely.
"""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Iterable
from urllib.parse import urljoin, urlparse

import httpx
import structlog

logger = structlog.get_logger(__name__)

CACHE_NAME = "audio-learning-v1"
OFFLINE_URL = "/offline.html"
STATIC_CACHE_FILES = ("/", OFFLINE_URL, "/favicon.ico")

OFFLINE_API_BODY = {
    "error": "Offline",
    "message": "This feature requires an internet connection",
}


class Strategy(str, enum.Enum):
    NAVIGATION = "navigation"
    API = "api"
    AUDIO = "audio"
    DEFAULT = "default"
    PASSTHROUGH = "passthrough"


@dataclass
class CachedResponse:
    status_code: int
    headers: dict[str, str]
    content: bytes

    @classmethod
    def from_response(cls, response: httpx.Response) -> CachedResponse:
        # Content is stored decoded, so framing headers no longer apply.
        headers = {
            k: v
            for k, v in response.headers.items()
            if k.lower() not in ("content-encoding", "content-length", "transfer-encoding")
        }
        return cls(status_code=response.status_code, headers=headers, content=response.content)

    def to_response(self, request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            self.status_code,
            headers=self.headers,
            content=self.content,
            request=request,
        )


@dataclass
class ResponseCache:
    """Named in-memory response store keyed by absolute URL."""

    name: str = CACHE_NAME
    entries: dict[str, CachedResponse] = field(default_factory=dict)

    def match(self, url: str) -> CachedResponse | None:
        return self.entries.get(url)

    def put(self, url: str, response: httpx.Response) -> None:
        self.entries[url] = CachedResponse.from_response(response)

    def delete(self, url: str) -> bool:
        return self.entries.pop(url, None) is not None

    def __contains__(self, url: object) -> bool:
        return url in self.entries

    def __len__(self) -> int:
        return len(self.entries)


class OfflineFetcher:
    """Routes requests through the network and a response cache.

    Args:
        client: HTTP client used for network requests
        origin: Application origin, e.g. ``http://localhost:5000``
        cache: Response cache (a fresh one by default)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        origin: str,
        cache: ResponseCache | None = None,
    ):
        self._client = client
        self.origin = origin.rstrip("/")
        self.cache = cache if cache is not None else ResponseCache()

    def absolute(self, url: str) -> str:
        return urljoin(self.origin + "/", url)

    def is_same_origin(self, url: str) -> bool:
        ours = urlparse(self.origin)
        theirs = urlparse(self.absolute(url))
        return (theirs.scheme, theirs.netloc) == (ours.scheme, ours.netloc)

    def classify(
        self,
        url: str,
        *,
        method: str = "GET",
        navigate: bool = False,
        accept: str | None = None,
    ) -> Strategy:
        if method.upper() != "GET" or not self.is_same_origin(url):
            return Strategy.PASSTHROUGH
        if navigate:
            return Strategy.NAVIGATION
        absolute = self.absolute(url)
        if "/api/" in absolute:
            return Strategy.API
        if "audio" in absolute or (accept and "audio" in accept):
            return Strategy.AUDIO
        return Strategy.DEFAULT

    async def install(self, urls: Iterable[str] = STATIC_CACHE_FILES) -> int:
        """Precache static files. Returns how many were stored."""
        stored = 0
        for url in urls:
            absolute = self.absolute(url)
            try:
                response = await self._client.get(absolute)
            except httpx.TransportError as e:
                logger.warning("offline_cache.precache_failed", url=absolute, error=str(e))
                continue
            if response.is_success:
                self.cache.put(absolute, response)
                stored += 1
        logger.info("offline_cache.installed", cache=self.cache.name, count=stored)
        return stored

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        navigate: bool = False,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """Fetch ``url`` using the strategy it classifies into.

        Raises:
            httpx.TransportError: When the network fails and no fallback applies
        """
        accept = (headers or {}).get("accept") or (headers or {}).get("Accept")
        strategy = self.classify(url, method=method, navigate=navigate, accept=accept)
        absolute = self.absolute(url)
        request = httpx.Request(method.upper(), absolute, headers=headers)

        if strategy is Strategy.PASSTHROUGH:
            return await self._client.send(request)
        if strategy is Strategy.NAVIGATION:
            return await self._navigation(request)
        if strategy is Strategy.API:
            return await self._api(request)
        if strategy is Strategy.AUDIO:
            return await self._audio(request)
        return await self._network_first(request)

    async def _navigation(self, request: httpx.Request) -> httpx.Response:
        try:
            return await self._client.send(request)
        except httpx.TransportError:
            offline = self.cache.match(self.absolute(OFFLINE_URL))
            if offline is None:
                raise
            logger.info("offline_cache.offline_page", url=str(request.url))
            return offline.to_response(request)

    async def _api(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        try:
            response = await self._client.send(request)
        except httpx.TransportError as e:
            cached = self.cache.match(url)
            if cached is not None:
                logger.info("offline_cache.api_from_cache", url=url)
                return cached.to_response(request)
            logger.info("offline_cache.api_offline", url=url, error=str(e))
            return httpx.Response(
                503,
                headers={"content-type": "application/json"},
                content=json.dumps(OFFLINE_API_BODY).encode(),
                request=request,
            )
        if response.is_success:
            await response.aread()
            self.cache.put(url, response)
        return response

    async def _audio(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        cached = self.cache.match(url)
        if cached is not None:
            logger.debug("offline_cache.audio_hit", url=url)
            return cached.to_response(request)

        response = await self._client.send(request)
        content_type = response.headers.get("content-type", "")
        if response.is_success and "audio" in content_type:
            await response.aread()
            self.cache.put(url, response)
        return response

    async def _network_first(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        try:
            response = await self._client.send(request)
        except httpx.TransportError:
            cached = self.cache.match(url) or self.cache.match(self.absolute(OFFLINE_URL))
            if cached is None:
                raise
            return cached.to_response(request)
        if response.is_success:
            await response.aread()
            self.cache.put(url, response)
        return response

    async def cache_audio(self, url: str, chapter_id: str) -> bool:
        """Store audio for a chapter under ``audio_<chapter_id>``."""
        try:
            response = await self._client.get(self.absolute(url))
        except httpx.TransportError as e:
            logger.warning("offline_cache.audio_cache_failed", chapter_id=chapter_id, error=str(e))
            return False
        if not response.is_success:
            logger.warning(
                "offline_cache.audio_cache_failed",
                chapter_id=chapter_id,
                status=response.status_code,
            )
            return False
        self.cache.put(f"audio_{chapter_id}", response)
        logger.info("offline_cache.audio_cached", chapter_id=chapter_id)
        return True
