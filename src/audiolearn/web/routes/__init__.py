"""Route handlers for the REST API."""

from audiolearn.web.routes.admin import router as admin_router
from audiolearn.web.routes.auth import router as auth_router
from audiolearn.web.routes.courses import router as courses_router
from audiolearn.web.routes.downloads import router as downloads_router
from audiolearn.web.routes.health import router as health_router
from audiolearn.web.routes.progress import router as progress_router
from audiolearn.web.routes.read_along import router as read_along_router

__all__ = [
    "admin_router",
    "auth_router",
    "courses_router",
    "downloads_router",
    "health_router",
    "progress_router",
    "read_along_router",
]
