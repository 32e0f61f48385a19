"""FastAPI application factory.

Main entry point for the audiolearn REST API.
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

import structlog
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from audiolearn.config import load_app_config
from audiolearn.db import init_db
from audiolearn.db import content_repository as content
from audiolearn.db.users_repository import cleanup_expired
from audiolearn.web.routes import (
    admin_router,
    auth_router,
    courses_router,
    downloads_router,
    health_router,
    progress_router,
    read_along_router,
)
from audiolearn.web.schemas import API_VERSION

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Lifespan context manager for startup/shutdown events."""
    config = load_app_config()
    init_db(config.database_path)
    sessions, tokens = cleanup_expired()
    logger.info(
        "api_startup",
        database=str(config.database_path),
        environment=config.server.environment,
        courses_available=content.count_courses(),
        expired_tokens_removed=tokens,
        expired_sessions_removed=sessions,
    )
    yield


async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "api_unhandled_error",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI app instance
    """
    app = FastAPI(
        title="AudioLearn API",
        description="Courses, audio chapters, read-along text and listening progress",
        version=API_VERSION,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    config = load_app_config()
    origins = ["*"] if config.server.is_development else [config.server.public_base_url]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(Exception, unhandled_error)

    app.include_router(health_router)
    app.include_router(auth_router)
    app.include_router(courses_router)
    app.include_router(read_along_router)
    app.include_router(progress_router)
    app.include_router(downloads_router)
    app.include_router(admin_router)

    return app


# Default app instance for uvicorn
app = create_app()
