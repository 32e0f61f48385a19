"""Tests for offline-aware fetching."""

import httpx
import pytest
import pytest_asyncio

from audiolearn.client import OfflineFetcher, Strategy
from audiolearn.client.offline_cache import OFFLINE_API_BODY

ORIGIN = "http://localhost:5000"


class Network:
    """Mock transport handler with an on/off switch and a request log."""

    def __init__(self):
        self.online = True
        self.requests: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(str(request.url))
        if not self.online:
            raise httpx.ConnectError("offline", request=request)
        path = request.url.path
        if path == "/offline.html":
            return httpx.Response(200, text="<h1>Offline</h1>", headers={"content-type": "text/html"})
        if path.startswith("/api/"):
            return httpx.Response(200, json={"path": path})
        if path.startswith("/audio/"):
            return httpx.Response(200, content=b"ID3", headers={"content-type": "audio/mpeg"})
        if path == "/missing.js":
            return httpx.Response(404)
        return httpx.Response(200, text="page", headers={"content-type": "text/html"})


@pytest_asyncio.fixture
async def fetcher_and_network():
    network = Network()
    client = httpx.AsyncClient(transport=httpx.MockTransport(network))
    yield OfflineFetcher(client, ORIGIN), network
    await client.aclose()


class TestClassify:
    """Tests for strategy selection."""

    def test_routes(self):
        fetcher = OfflineFetcher(httpx.AsyncClient(), ORIGIN)
        assert fetcher.classify("/courses/1", navigate=True) is Strategy.NAVIGATION
        assert fetcher.classify("/api/courses") is Strategy.API
        assert fetcher.classify("/audio/a.mp3") is Strategy.AUDIO
        assert fetcher.classify("/stream/a", accept="audio/*") is Strategy.AUDIO
        assert fetcher.classify("/app.js") is Strategy.DEFAULT

    def test_bypass(self):
        fetcher = OfflineFetcher(httpx.AsyncClient(), ORIGIN)
        assert fetcher.classify("/api/progress", method="POST") is Strategy.PASSTHROUGH
        assert fetcher.classify("https://cdn.example.com/audio/a.mp3") is Strategy.PASSTHROUGH


class TestStrategies:
    """Tests for fetch behaviour online and offline."""

    @pytest.mark.asyncio
    async def test_install_precaches(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        stored = await fetcher.install()
        assert stored == 3
        assert f"{ORIGIN}/offline.html" in fetcher.cache

    @pytest.mark.asyncio
    async def test_navigation_offline_serves_offline_page(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        await fetcher.install()
        network.online = False

        response = await fetcher.fetch("/courses/1", navigate=True)
        assert response.status_code == 200
        assert "Offline" in response.text

    @pytest.mark.asyncio
    async def test_navigation_offline_without_cache_raises(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        network.online = False
        with pytest.raises(httpx.ConnectError):
            await fetcher.fetch("/courses/1", navigate=True)

    @pytest.mark.asyncio
    async def test_api_offline_reply(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        network.online = False

        response = await fetcher.fetch("/api/courses")
        assert response.status_code == 503
        assert response.json() == OFFLINE_API_BODY

    @pytest.mark.asyncio
    async def test_api_served_from_cache_when_offline(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        await fetcher.fetch("/api/courses")
        network.online = False

        response = await fetcher.fetch("/api/courses")
        assert response.status_code == 200
        assert response.json() == {"path": "/api/courses"}

    @pytest.mark.asyncio
    async def test_audio_cache_first(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        first = await fetcher.fetch("/audio/a.mp3")
        second = await fetcher.fetch("/audio/a.mp3")

        assert first.content == second.content == b"ID3"
        assert network.requests == [f"{ORIGIN}/audio/a.mp3"]

    @pytest.mark.asyncio
    async def test_default_caches_success_only(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        await fetcher.fetch("/app.js")
        missing = await fetcher.fetch("/missing.js")

        assert missing.status_code == 404
        assert f"{ORIGIN}/app.js" in fetcher.cache
        assert f"{ORIGIN}/missing.js" not in fetcher.cache

        network.online = False
        response = await fetcher.fetch("/app.js")
        assert response.text == "page"

    @pytest.mark.asyncio
    async def test_passthrough_never_cached(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        await fetcher.fetch("/api/progress", method="POST")
        assert len(fetcher.cache) == 0

    @pytest.mark.asyncio
    async def test_cache_audio_for_chapter(self, fetcher_and_network):
        fetcher, network = fetcher_and_network
        assert await fetcher.cache_audio("/audio/a.mp3", "c1") is True
        assert "audio_c1" in fetcher.cache

        network.online = False
        assert await fetcher.cache_audio("/audio/b.mp3", "c2") is False
