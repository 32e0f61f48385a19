"""Request dependencies: current user, admin guard, id validation and services."""

from __future__ import annotations

import re

from fastapi import Depends, HTTPException, Request, status

from audiolearn.config import load_app_config
from audiolearn.db import users_repository as users
from audiolearn.db.users_repository import UserRecord
from audiolearn.services import AudioService, EmailService
from audiolearn.sync import ContentApiClient

SESSION_COOKIE = "sid"

ID_PATTERN = re.compile(r"^[A-Za-z0-9\-_]{1,50}$")


def validate_id(value: str, kind: str = "id") -> str:
    """Reject path ids outside the allowed alphabet or length."""
    if not ID_PATTERN.match(value):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Invalid {kind}",
        )
    return value


def get_optional_user(request: Request) -> UserRecord | None:
    """User behind the session cookie, or None."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if not session_id:
        return None
    session = users.get_active_session(session_id)
    if session is None:
        return None
    return users.get_user(session.user_id)


def get_current_user(user: UserRecord | None = Depends(get_optional_user)) -> UserRecord:
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return user


def require_admin(user: UserRecord = Depends(get_current_user)) -> UserRecord:
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


# =============================================================================
# SERVICES
# =============================================================================

_audio_service: AudioService | None = None
_email_service: EmailService | None = None


def get_audio_service() -> AudioService:
    """Get or create the global audio service."""
    global _audio_service
    if _audio_service is None:
        config = load_app_config()
        _audio_service = AudioService(
            download_dir=config.download_dir,
            base_url=config.server.public_base_url,
        )
    return _audio_service


def get_email_service() -> EmailService:
    """Get or create the global email service."""
    global _email_service
    if _email_service is None:
        config = load_app_config()
        _email_service = EmailService(config.email, development=config.server.is_development)
    return _email_service


def get_content_client() -> ContentApiClient:
    """A fresh content API client; the caller closes it."""
    return ContentApiClient(load_app_config().content_api)


def reset_services() -> None:
    """Reset global services (for testing)."""
    global _audio_service, _email_service
    _audio_service = None
    _email_service = None
