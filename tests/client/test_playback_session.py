"""Tests for the playback session wiring."""

import json

import httpx
import pytest

from audiolearn.client import (
    ApiClient,
    AudioPool,
    OfflineStorage,
    PlaybackSession,
    ProgressBatcher,
)

BASE = "http://localhost:5000"

CHAPTER = {
    "id": "c1",
    "title": "What is Risk?",
    "audio_url": "/audio/c1.mp3",
    "duration": 120,
    "has_read_along": True,
}

READ_ALONG = {
    "chapter_id": "c1",
    "text_content": "One. Two.",
    "has_read_along": True,
    "segments": [
        {"segment_index": 0, "segment_type": "sentence", "text": "One.", "start_time": 0, "end_time": 5},
        {"segment_index": 1, "segment_type": "sentence", "text": "Two.", "start_time": 5, "end_time": 10},
    ],
}


class FakeServer:
    """Mock API answering progress and read-along calls."""

    def __init__(self, resume_at=0.0):
        self.online = True
        self.resume_at = resume_at
        self.progress_posts: list[dict] = []

    def __call__(self, request):
        if not self.online:
            raise httpx.ConnectError("offline", request=request)
        path = request.url.path
        if path.startswith("/api/progress") and request.method == "POST":
            self.progress_posts.append(json.loads(request.content))
            return httpx.Response(200, json={})
        if path.startswith("/api/progress/"):
            return httpx.Response(200, json={"chapter_id": "c1", "current_time": self.resume_at})
        if path.startswith("/api/read-along/"):
            return httpx.Response(200, json=READ_ALONG)
        return httpx.Response(404, json={"detail": "not found"})


class FakeAudio:
    def __init__(self, src):
        self.src = src
        self.released = False

    def pause(self):
        pass

    def release(self):
        self.released = True

    async def wait_ready(self, timeout):
        return None


def make_session(server, storage=None, errors=None):
    api = ApiClient(BASE, "sess", client=httpx.AsyncClient(transport=httpx.MockTransport(server)))
    pool = AudioPool(FakeAudio, base_url=BASE)
    batcher = ProgressBatcher(api.send_progress, flush_delay=10, retry_base_delay=0.001, max_retries=1)
    return PlaybackSession(
        api,
        pool,
        storage=storage,
        batcher=batcher,
        on_error=errors.append if errors is not None else None,
    )


class TestLoad:
    """Tests for loading a chapter."""

    @pytest.mark.asyncio
    async def test_streams_and_resumes_from_server(self):
        session = make_session(FakeServer(resume_at=42))
        now = await session.load(CHAPTER)

        assert now.src == "/audio/c1.mp3"
        assert now.resume_at == 42
        assert now.offline is False
        assert session.element.src == f"{BASE}/audio/c1.mp3"
        assert session.read_along is not None
        assert session.read_along.recompute(7) == 1

    @pytest.mark.asyncio
    async def test_downloaded_chapter_plays_offline(self, tmp_path):
        storage = OfflineStorage(tmp_path / "store.db", url_dir=tmp_path / "urls")
        storage.store_audio_file("c1", "What is Risk?", b"ID3")
        storage.save_progress("c1", 33, 120)
        server = FakeServer()
        server.online = False

        session = make_session(server, storage=storage)
        now = await session.load(CHAPTER)

        assert now.offline is True
        assert now.src.startswith("file://")
        assert now.resume_at == 33
        assert session.read_along is None

        await session.close()
        assert list((tmp_path / "urls").iterdir()) == []


class TestReporting:
    """Tests for progress reporting through the session."""

    @pytest.mark.asyncio
    async def test_ticks_batched_and_flushed_on_close(self, tmp_path):
        server = FakeServer()
        storage = OfflineStorage(tmp_path / "store.db")
        session = make_session(server, storage=storage)
        await session.load(CHAPTER)

        session.on_time_update(10)
        session.on_time_update(11)
        await session.close()

        assert server.progress_posts == [
            {"chapter_id": "c1", "current_time": 11.0, "is_completed": False}
        ]
        assert storage.get_progress("c1").current_time == 11

    @pytest.mark.asyncio
    async def test_ended_reports_completion(self):
        server = FakeServer()
        async with make_session(server) as session:
            await session.load(CHAPTER)
            session.on_ended()
            await session.batcher.wait_idle()

        assert server.progress_posts[0]["is_completed"] is True
        assert server.progress_posts[0]["current_time"] == 120

    @pytest.mark.asyncio
    async def test_delivery_failure_reaches_error_handler(self):
        server = FakeServer()
        errors = []
        session = make_session(server, errors=errors)
        await session.load(CHAPTER)

        server.online = False
        session.on_ended()
        await session.batcher.wait_idle()

        assert len(errors) == 1
        assert session.last_error is errors[0]

    @pytest.mark.asyncio
    async def test_supplied_batcher_keeps_its_own_handler(self):
        server = FakeServer()
        batcher_errors = []
        session_errors = []
        api = ApiClient(BASE, "sess", client=httpx.AsyncClient(transport=httpx.MockTransport(server)))
        batcher = ProgressBatcher(
            api.send_progress,
            max_retries=0,
            on_error=batcher_errors.append,
        )
        session = PlaybackSession(
            api,
            AudioPool(FakeAudio, base_url=BASE),
            batcher=batcher,
            on_error=session_errors.append,
        )
        await session.load(CHAPTER)

        server.online = False
        session.on_ended()
        await batcher.wait_idle()

        assert len(batcher_errors) == 1
        assert session_errors == batcher_errors


class CountingStorage(OfflineStorage):
    """OfflineStorage that counts progress writes."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.progress_writes = 0

    def save_progress(self, *args, **kwargs):
        self.progress_writes += 1
        super().save_progress(*args, **kwargs)


class TestOfflineProgressWrites:
    """Offline progress is written at flush points, not per tick."""

    @pytest.mark.asyncio
    async def test_ticks_do_not_write(self, tmp_path):
        storage = CountingStorage(tmp_path / "store.db")
        session = make_session(FakeServer(), storage=storage)
        await session.load(CHAPTER)

        for t in range(50):
            session.on_time_update(float(t))

        assert storage.progress_writes == 0
        await session.close()
        assert storage.progress_writes == 1
        assert storage.get_progress("c1").current_time == 49

    @pytest.mark.asyncio
    async def test_page_hidden_writes_once(self, tmp_path):
        storage = CountingStorage(tmp_path / "store.db")
        session = make_session(FakeServer(), storage=storage)
        await session.load(CHAPTER)

        session.on_time_update(12)
        session.page_hidden()
        session.page_hidden()

        assert storage.progress_writes == 1
        assert storage.get_progress("c1").current_time == 12
        await session.close()
        assert storage.progress_writes == 1

    @pytest.mark.asyncio
    async def test_ended_writes_completion(self, tmp_path):
        storage = CountingStorage(tmp_path / "store.db")
        session = make_session(FakeServer(), storage=storage)
        await session.load(CHAPTER)

        session.on_time_update(100)
        session.on_ended()
        await session.close()

        assert storage.progress_writes == 1
        assert storage.get_progress("c1").is_completed is True
