"""Pydantic schemas for the REST API.

Serialization models for users, course content, read-along text,
listening progress, downloads and content sync.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

API_VERSION = "0.1.0"

MAX_SEGMENTS = 10_000
MAX_TEXT_CONTENT = 50_000
MAX_SEGMENT_TEXT = 1_000
MAX_BATCH_UPDATES = 100
ID_PATTERN = r"^[A-Za-z0-9\-_]{1,50}$"


# =============================================================================
# HEALTH SCHEMAS
# =============================================================================


class HealthResponse(BaseModel):
    """Response for health check."""

    status: str
    courses_available: int
    version: str
    timestamp: str


# =============================================================================
# AUTH SCHEMAS
# =============================================================================


class MagicLinkRequest(BaseModel):
    """Request body for asking a sign-in link."""

    email: str = Field(..., min_length=3, max_length=254, pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class MessageResponse(BaseModel):
    """Generic acknowledgement."""

    ok: bool = True
    message: str


class UserResponse(BaseModel):
    """Response for the signed-in user."""

    id: str
    email: str | None
    first_name: str | None
    last_name: str | None
    profile_image_url: str | None
    is_admin: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class AuthStatusResponse(BaseModel):
    """Whether the request carries a valid session."""

    authenticated: bool
    user: UserResponse | None = None


# =============================================================================
# CONTENT SCHEMAS
# =============================================================================


class CourseCreate(BaseModel):
    """Request body for creating a course."""

    name: str = Field(..., min_length=1, max_length=200)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=5000)
    external_id: str | None = Field(default=None, max_length=100)


class CourseUpdate(BaseModel):
    """Request body for updating a course. Omitted fields are left as is."""

    name: str | None = Field(default=None, min_length=1, max_length=200)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = Field(default=None, max_length=5000)
    is_active: bool | None = None


class CourseResponse(BaseModel):
    """Response for a course."""

    id: str
    code: str | None
    name: str
    description: str | None
    external_id: str | None
    is_active: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class AssignmentCreate(BaseModel):
    """Request body for creating an assignment."""

    course_id: str = Field(..., pattern=ID_PATTERN)
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    order_index: int = Field(default=0, ge=0)
    external_id: str | None = Field(default=None, max_length=100)


class AssignmentUpdate(BaseModel):
    """Request body for updating an assignment. Omitted fields are left as is."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    order_index: int | None = Field(default=None, ge=0)


class ChapterCreate(BaseModel):
    """Request body for creating a chapter."""

    assignment_id: str = Field(..., pattern=ID_PATTERN)
    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    audio_url: str = Field(..., min_length=1, max_length=2000)
    duration: int | None = Field(default=None, ge=0)
    order_index: int = Field(default=0, ge=0)
    external_id: str | None = Field(default=None, max_length=100)


class ChapterUpdate(BaseModel):
    """Request body for updating a chapter. Omitted fields are left as is."""

    title: str | None = Field(default=None, min_length=1, max_length=200)
    description: str | None = Field(default=None, max_length=5000)
    audio_url: str | None = Field(default=None, min_length=1, max_length=2000)
    duration: int | None = Field(default=None, ge=0)
    order_index: int | None = Field(default=None, ge=0)


class AssignmentResponse(BaseModel):
    """Response for an assignment (a module within a course)."""

    id: str
    course_id: str
    title: str
    description: str | None
    order_index: int
    external_id: str | None
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


class ChapterResponse(BaseModel):
    """Response for a chapter."""

    id: str
    assignment_id: str
    title: str
    description: str | None
    audio_url: str
    duration: int | None
    order_index: int
    external_id: str | None
    has_read_along: bool
    created_at: str
    updated_at: str

    model_config = {"from_attributes": True}


# =============================================================================
# READ-ALONG SCHEMAS
# =============================================================================


class SegmentSchema(BaseModel):
    """A timed text segment."""

    segment_index: int = Field(..., ge=0)
    segment_type: Literal["sentence", "paragraph", "word"]
    text: str = Field(..., max_length=MAX_SEGMENT_TEXT)
    start_time: float = Field(..., ge=0)
    end_time: float = Field(..., ge=0)
    word_index: int | None = None
    character_start: int | None = None
    character_end: int | None = None

    model_config = {"from_attributes": True}


class ReadAlongUpdate(BaseModel):
    """Request body replacing a chapter's read-along text."""

    text_content: str = Field(..., max_length=MAX_TEXT_CONTENT)
    segments: list[SegmentSchema] = Field(default_factory=list, max_length=MAX_SEGMENTS)


class ReadAlongResponse(BaseModel):
    """Chapter text with its timed segments."""

    chapter_id: str
    text_content: str
    has_read_along: bool
    segments: list[SegmentSchema]


# =============================================================================
# PROGRESS SCHEMAS
# =============================================================================


class ProgressUpdateRequest(BaseModel):
    """Request body for one progress report."""

    chapter_id: str = Field(..., pattern=ID_PATTERN)
    current_time: float = Field(..., ge=0)
    is_completed: bool = False


class ProgressBatchRequest(BaseModel):
    """Request body for a batch of progress reports."""

    updates: list[ProgressUpdateRequest] = Field(..., min_length=1, max_length=MAX_BATCH_UPDATES)


class ProgressResponse(BaseModel):
    """Listening progress for a chapter."""

    chapter_id: str
    current_time: float = 0.0
    is_completed: bool = False
    last_accessed_at: str | None = None

    model_config = {"from_attributes": True}


class ProgressBatchResponse(BaseModel):
    """Result of a batch save. `unknown` lists chapter ids that were skipped."""

    saved: int
    progress: list[ProgressResponse]
    unknown: list[str] = Field(default_factory=list)


# =============================================================================
# DOWNLOAD SCHEMAS
# =============================================================================


class DownloadResponse(BaseModel):
    """A chapter downloaded by the user."""

    id: str
    chapter_id: str
    local_path: str
    downloaded_at: str

    model_config = {"from_attributes": True}


class DownloadListResponse(BaseModel):
    """Response for list of downloads."""

    downloads: list[DownloadResponse]
    count: int


# =============================================================================
# SYNC SCHEMAS
# =============================================================================


class SyncLogResponse(BaseModel):
    """A sync log entry."""

    id: str
    status: str
    message: str | None
    synced_at: str

    model_config = {"from_attributes": True}


class SyncResponse(BaseModel):
    """Result of a content sync."""

    status: str
    message: str
    courses_created: int = 0
    courses_updated: int = 0
    assignments_created: int = 0
    assignments_updated: int = 0
    chapters_created: int = 0
    chapters_updated: int = 0


class SyncStatusResponse(BaseModel):
    """Latest sync outcome, if any."""

    last_sync: SyncLogResponse | None = None
