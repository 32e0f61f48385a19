"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter

from audiolearn.db import content_repository as content
from audiolearn.web.schemas import API_VERSION, HealthResponse

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Check API health status."""
    return HealthResponse(
        status="ok",
        courses_available=content.count_courses(),
        version=API_VERSION,
        timestamp=datetime.now(timezone.utc).isoformat(),
    )
