"""Tests for the audio element pool."""

import asyncio

import httpx
import pytest

from audiolearn.client import AudioPool, BufferedAudio


class FakeAudio:
    """Media element stub; readiness is controlled per URL."""

    def __init__(self, src, ready=True, delay=0.0):
        self.src = src
        self.ready = ready
        self.delay = delay
        self.released = False

    def pause(self):
        pass

    def release(self):
        self.released = True
        self.src = None

    async def wait_ready(self, timeout):
        await asyncio.sleep(self.delay)
        if not self.ready:
            raise OSError("decode error")


class Factory:
    def __init__(self, broken=(), slow=()):
        self.broken = set(broken)
        self.slow = set(slow)
        self.created: list[FakeAudio] = []

    def __call__(self, url):
        element = FakeAudio(
            url,
            ready=url not in self.broken,
            delay=1.0 if url in self.slow else 0.0,
        )
        self.created.append(element)
        return element


def url(n):
    return f"https://cdn.example.com/{n}.mp3"


class TestGet:
    """Tests for AudioPool.get."""

    def test_reuses_element(self):
        pool = AudioPool(Factory())
        assert pool.get(url(1)) is pool.get(url(1))
        assert len(pool) == 1

    def test_relative_urls_normalized(self):
        pool = AudioPool(Factory(), base_url="http://localhost:5000")
        element = pool.get("/audio/a.mp3")
        assert element.src == "http://localhost:5000/audio/a.mp3"
        assert pool.get("http://localhost:5000/audio/a.mp3") is element
        assert "/audio/a.mp3" in pool

    def test_never_exceeds_max_and_evicts_oldest(self):
        factory = Factory()
        pool = AudioPool(factory, max_size=3)

        for n in range(4):
            pool.get(url(n))

        assert len(pool) == 3
        assert url(0) not in pool
        released = [e for e in factory.created if e.released]
        assert len(released) == 1
        assert factory.created[0].released is True

    def test_lookup_does_not_refresh_order(self):
        pool = AudioPool(Factory(), max_size=2)
        pool.get(url(0))
        pool.get(url(1))
        pool.get(url(0))
        pool.get(url(2))

        assert pool.keys() == [url(1), url(2)]

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            AudioPool(Factory(), max_size=0)


class TestPreload:
    """Tests for background preloading."""

    @pytest.mark.asyncio
    async def test_ready_elements_join_pool(self):
        pool = AudioPool(Factory())
        pool.preload([url(1), url(2)])
        assert len(pool) == 0

        await pool.wait_preloads()
        assert pool.keys() == [url(1), url(2)]

    @pytest.mark.asyncio
    async def test_failures_discarded(self):
        factory = Factory(broken={url(2)})
        pool = AudioPool(factory)

        pool.preload([url(1), url(2)])
        await pool.wait_preloads()

        assert url(2) not in pool
        broken = next(e for e in factory.created if e.ready is False)
        assert broken.released is True

    @pytest.mark.asyncio
    async def test_timeout_discarded(self):
        factory = Factory(slow={url(1)})
        pool = AudioPool(factory, ready_timeout=0.01)

        pool.preload([url(1)])
        await pool.wait_preloads()

        assert len(pool) == 0
        assert factory.created[0].released is True

    @pytest.mark.asyncio
    async def test_already_pooled_skipped(self):
        factory = Factory()
        pool = AudioPool(factory)
        pool.get(url(1))

        pool.preload([url(1)])
        await pool.wait_preloads()

        assert len(factory.created) == 1

    @pytest.mark.asyncio
    async def test_preload_respects_max(self):
        factory = Factory()
        pool = AudioPool(factory, max_size=2)

        pool.preload([url(n) for n in range(4)])
        await pool.wait_preloads()

        assert len(pool) == 2
        assert sum(e.released for e in factory.created) == 2


class TestCleanup:
    """Tests for AudioPool.cleanup."""

    @pytest.mark.asyncio
    async def test_releases_everything(self):
        factory = Factory(slow={url(9)})
        pool = AudioPool(factory)
        pool.get(url(1))
        pool.get(url(2))
        pool.preload([url(9)])

        pool.cleanup()
        await asyncio.sleep(0.01)

        assert len(pool) == 0
        assert all(e.released for e in factory.created)


class TestBufferedAudio:
    """Tests for the httpx-backed element."""

    @pytest.mark.asyncio
    async def test_loads_bytes(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(200, content=b"ID3data"))
        async with httpx.AsyncClient(transport=transport) as client:
            element = BufferedAudio(url(1), client)
            await element.wait_ready(1.0)
            assert element.data == b"ID3data"

            element.play()
            assert element.paused is False
            element.release()
            assert element.src is None
            assert element.data is None
            assert element.paused is True

    @pytest.mark.asyncio
    async def test_error_status_raises(self):
        transport = httpx.MockTransport(lambda r: httpx.Response(404))
        async with httpx.AsyncClient(transport=transport) as client:
            element = BufferedAudio(url(1), client)
            with pytest.raises(httpx.HTTPStatusError):
                await element.wait_ready(1.0)

    @pytest.mark.asyncio
    async def test_released_element_not_ready(self):
        async with httpx.AsyncClient() as client:
            element = BufferedAudio(url(1), client)
            element.release()
            with pytest.raises(RuntimeError):
                await element.wait_ready(1.0)
