"""Magic-link sign-in and session endpoints."""

from fastapi import APIRouter, Depends, Request, Response, status
from fastapi.responses import RedirectResponse

from audiolearn.auth import GENERIC_REPLY, CallbackOutcome, complete_magic_link, request_magic_link
from audiolearn.config import load_app_config
from audiolearn.db import users_repository as users
from audiolearn.db.users_repository import UserRecord
from audiolearn.services import EmailService
from audiolearn.web.deps import (
    SESSION_COOKIE,
    get_current_user,
    get_email_service,
    get_optional_user,
)
from audiolearn.web.schemas import (
    AuthStatusResponse,
    MagicLinkRequest,
    MessageResponse,
    UserResponse,
)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def client_ip(request: Request) -> str:
    """Best guess at the caller's address, honoring proxy headers."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    return request.client.host if request.client else ""


@router.post("/request-magic-link", response_model=MessageResponse)
def request_link(
    body: MagicLinkRequest,
    request: Request,
    email_service: EmailService = Depends(get_email_service),
) -> MessageResponse:
    """Email a sign-in link.

    The reply is the same whether or not the email exists, was rate
    limited or failed to send.
    """
    config = load_app_config()
    request_magic_link(
        body.email,
        client_ip=client_ip(request),
        user_agent=request.headers.get("user-agent", ""),
        base_url=config.server.public_base_url,
        policy=config.auth,
        email_service=email_service,
    )
    return MessageResponse(ok=True, message=GENERIC_REPLY)


@router.get("/callback")
def callback(token: str = "") -> RedirectResponse:
    """Consume a magic link and set the session cookie."""
    config = load_app_config()
    result = complete_magic_link(token, config.auth)

    if result.outcome is not CallbackOutcome.SIGNED_IN:
        return RedirectResponse(
            f"/login?error={result.outcome.value}",
            status_code=status.HTTP_302_FOUND,
        )

    response = RedirectResponse("/", status_code=status.HTTP_302_FOUND)
    response.set_cookie(
        SESSION_COOKIE,
        result.session_id,
        max_age=config.auth.session_ttl_days * 24 * 60 * 60,
        httponly=True,
        secure=not config.server.is_development,
        samesite="lax",
        path="/",
    )
    return response


@router.post("/signout", response_model=MessageResponse)
def signout(request: Request, response: Response) -> MessageResponse:
    """Delete the current session and clear its cookie."""
    session_id = request.cookies.get(SESSION_COOKIE)
    if session_id:
        users.delete_session(session_id)
    response.delete_cookie(SESSION_COOKIE, path="/")
    return MessageResponse(ok=True, message="Signed out")


@router.get("/status", response_model=AuthStatusResponse)
async def auth_status(user: UserRecord | None = Depends(get_optional_user)) -> AuthStatusResponse:
    """Report whether the request is signed in."""
    if user is None:
        return AuthStatusResponse(authenticated=False)
    return AuthStatusResponse(authenticated=True, user=UserResponse.model_validate(user))


@router.get("/user", response_model=UserResponse)
async def current_user(user: UserRecord = Depends(get_current_user)) -> UserResponse:
    """Get the signed-in user."""
    return UserResponse.model_validate(user)
