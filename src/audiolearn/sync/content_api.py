"""Client for the external course-content API.

Fetches a full snapshot of courses with their nested assignments and
chapters. Requests are authenticated with a bearer token.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import httpx
import structlog

from audiolearn.config.app_config import ContentApiConfig, load_app_config

logger = structlog.get_logger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================


@dataclass
class RemoteChapter:
    """Chapter as described by the content API."""

    external_id: str
    title: str
    audio_url: str
    order: int
    description: str | None = None
    duration: int | None = None


@dataclass
class RemoteAssignment:
    """Assignment as described by the content API."""

    external_id: str
    title: str
    order: int
    description: str | None = None
    chapters: list[RemoteChapter] = field(default_factory=list)


@dataclass
class RemoteCourse:
    """Course as described by the content API."""

    external_id: str
    name: str
    description: str | None = None
    code: str | None = None
    assignments: list[RemoteAssignment] = field(default_factory=list)


class ContentApiError(Exception):
    """Error during content API interaction."""

    pass


class ContentApiConfigError(ContentApiError):
    """Content API is not configured (missing API key)."""

    pass


class ContentApiConnectionError(ContentApiError):
    """Error connecting to the content API."""

    pass


class ContentApiResponseError(ContentApiError):
    """Unexpected status or payload from the content API."""

    pass


# =============================================================================
# PAYLOAD PARSING
# =============================================================================


def _require(item: dict[str, Any], key: str, kind: str) -> Any:
    value = item.get(key)
    if value in (None, ""):
        raise ContentApiResponseError(f"{kind} payload missing '{key}': {item!r:.200}")
    return value


def parse_chapter(item: dict[str, Any], position: int) -> RemoteChapter:
    duration = item.get("duration")
    return RemoteChapter(
        external_id=str(_require(item, "id", "chapter")),
        title=_require(item, "title", "chapter"),
        audio_url=_require(item, "audioUrl", "chapter"),
        order=int(item.get("order", position)),
        description=item.get("description"),
        duration=int(duration) if duration is not None else None,
    )


def parse_assignment(item: dict[str, Any], position: int) -> RemoteAssignment:
    return RemoteAssignment(
        external_id=str(_require(item, "id", "assignment")),
        title=_require(item, "title", "assignment"),
        order=int(item.get("order", position)),
        description=item.get("description"),
        chapters=[
            parse_chapter(chapter, i) for i, chapter in enumerate(item.get("chapters") or [])
        ],
    )


def parse_course(item: dict[str, Any]) -> RemoteCourse:
    return RemoteCourse(
        external_id=str(_require(item, "id", "course")),
        name=_require(item, "name", "course"),
        description=item.get("description"),
        code=item.get("code"),
        assignments=[
            parse_assignment(assignment, i)
            for i, assignment in enumerate(item.get("assignments") or [])
        ],
    )


# =============================================================================
# CLIENT
# =============================================================================


class ContentApiClient:
    """Bearer-token client for the content API."""

    def __init__(
        self,
        config: ContentApiConfig | None = None,
        http_client: httpx.Client | None = None,
    ):
        """Initialize the client.

        Args:
            config: API configuration (loaded from app config if not provided)
            http_client: Pre-built httpx client, mainly for tests
        """
        self.config = config or load_app_config().content_api
        self._client = http_client or httpx.Client(timeout=self.config.timeout)
        self._owns_client = http_client is None

        if not self.config.api_key:
            logger.warning("content_api.key_missing", base_url=self.config.base_url)

    @property
    def is_configured(self) -> bool:
        return bool(self.config.api_key)

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    def __enter__(self) -> ContentApiClient:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _get(self, path: str) -> Any:
        if not self.config.api_key:
            raise ContentApiConfigError("Content API key not configured")

        url = f"{self.config.base_url.rstrip('/')}/{path.lstrip('/')}"
        headers = {
            "Authorization": f"Bearer {self.config.api_key}",
            "Content-Type": "application/json",
        }

        try:
            response = self._client.get(url, headers=headers)
        except httpx.HTTPError as e:
            logger.error("content_api.connection_failed", url=url, error=str(e))
            raise ContentApiConnectionError(f"Cannot reach content API at {url}: {e}") from e

        if response.is_error:
            logger.error("content_api.bad_status", url=url, status=response.status_code)
            raise ContentApiResponseError(
                f"Failed to fetch {path}: {response.status_code} {response.reason_phrase}"
            )

        try:
            return response.json()
        except ValueError as e:
            raise ContentApiResponseError(f"Invalid JSON from {url}: {e}") from e

    def fetch_courses(self) -> list[RemoteCourse]:
        """Fetch the full course snapshot.

        Returns:
            Courses with nested assignments and chapters

        Raises:
            ContentApiConfigError: If no API key is configured
            ContentApiConnectionError: On transport failure
            ContentApiResponseError: On error status or malformed payload
        """
        data = self._get("courses")
        items = data.get("courses", []) if isinstance(data, dict) else data
        if not isinstance(items, list):
            raise ContentApiResponseError(f"Unexpected courses payload type: {type(items).__name__}")

        courses = [parse_course(item) for item in items]
        logger.info("content_api.courses_fetched", count=len(courses))
        return courses
