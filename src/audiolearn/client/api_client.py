"""Async HTTP client for the audiolearn REST API."""

from __future__ import annotations

import threading
from typing import Any

import httpx
import structlog

from audiolearn.client.progress_tracker import ProgressTransportError, ProgressUpdate
from audiolearn.client.read_along import ReadAlongData

logger = structlog.get_logger(__name__)

SESSION_COOKIE = "sid"


class ApiError(Exception):
    """The API answered with an error status."""

    def __init__(self, status_code: int, detail: str):
        super().__init__(f"{status_code}: {detail}")
        self.status_code = status_code
        self.detail = detail


class ApiClient:
    """Thin wrapper around ``httpx.AsyncClient`` bound to one origin.

    Args:
        base_url: API origin, e.g. ``http://localhost:5000``
        session_id: Session cookie value obtained from the magic-link callback
        client: Pre-built client (tests pass one with a MockTransport)
        timeout: Request timeout in seconds
    """

    def __init__(
        self,
        base_url: str,
        session_id: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ):
        self.base_url = base_url.rstrip("/")
        self.session_id = session_id
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(base_url=self.base_url, timeout=timeout)
        self.timeout = timeout

    async def __aenter__(self) -> ApiClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client

    def _cookies(self) -> dict[str, str]:
        return {SESSION_COOKIE: self.session_id} if self.session_id else {}

    def _url(self, path: str) -> str:
        return f"{self.base_url}{path}"

    async def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if self.session_id:
            headers["cookie"] = f"{SESSION_COOKIE}={self.session_id}"
        response = await self._client.request(method, self._url(path), headers=headers, **kwargs)
        if response.is_error:
            try:
                detail = response.json().get("detail", response.reason_phrase)
            except (ValueError, AttributeError):
                detail = response.reason_phrase
            raise ApiError(response.status_code, str(detail))
        return response

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._send(method, path, **kwargs)
        return response.json()

    # -------------------------------------------------------------------------
    # Content
    # -------------------------------------------------------------------------

    async def get_courses(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/api/courses")

    async def get_assignments(self, course_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/api/courses/{course_id}/assignments")

    async def get_chapters(self, assignment_id: str) -> list[dict[str, Any]]:
        return await self._request("GET", f"/api/assignments/{assignment_id}/chapters")

    async def get_chapter(self, chapter_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/chapters/{chapter_id}")

    async def get_read_along(self, chapter_id: str) -> ReadAlongData:
        data = await self._request("GET", f"/api/read-along/{chapter_id}")
        return ReadAlongData.from_dict(data)

    # -------------------------------------------------------------------------
    # Progress
    # -------------------------------------------------------------------------

    async def get_progress(self, chapter_id: str) -> dict[str, Any]:
        return await self._request("GET", f"/api/progress/{chapter_id}")

    async def send_progress(self, updates: list[ProgressUpdate]) -> None:
        """Deliver progress updates; used as the batcher's ``send``.

        Raises:
            ProgressTransportError: On network failure or error status
        """
        try:
            if len(updates) == 1:
                await self._send("POST", "/api/progress", json=updates[0].to_dict())
            else:
                await self._send(
                    "POST",
                    "/api/progress/batch",
                    json={"updates": [u.to_dict() for u in updates]},
                )
        except (httpx.HTTPError, ApiError) as e:
            raise ProgressTransportError(str(e)) from e

    def beacon_progress(self, updates: list[ProgressUpdate]) -> None:
        """Fire-and-forget batch send that survives the caller going away."""
        body = {"updates": [u.to_dict() for u in updates]}
        url = self._url("/api/progress/batch")
        cookies = self._cookies()
        timeout = self.timeout

        def _post() -> None:
            try:
                httpx.post(url, json=body, cookies=cookies, timeout=timeout)
            except httpx.HTTPError as e:
                logger.warning("progress.beacon_error", error=str(e), count=len(updates))

        threading.Thread(target=_post, name="progress-beacon", daemon=True).start()
