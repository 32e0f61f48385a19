"""Magic-link sign-in flow.

Raw tokens are only ever emailed; the database stores their SHA-256
hash. Tokens are single use and expire after ``token_ttl_minutes``.
Requests are rate limited per email and per client IP in hourly
windows, and the caller always gets the same reply so the endpoint
does not reveal which emails exist.
"""

from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from urllib.parse import urlencode

import structlog

from audiolearn.config.app_config import AuthConfig
from audiolearn.db import users_repository as users
from audiolearn.services.email_service import EmailService

logger = structlog.get_logger(__name__)

GENERIC_REPLY = "If that email is registered, we've sent a sign-in link."


class CallbackOutcome(str, Enum):
    """Result of following a magic link."""

    SIGNED_IN = "signed_in"
    INVALID = "invalid"
    USED = "used"
    EXPIRED = "expired"


@dataclass
class CallbackResult:
    outcome: CallbackOutcome
    session_id: str | None = None
    expires_at: datetime | None = None
    user_id: str | None = None


def create_token() -> str:
    """Random URL-safe token (32 bytes of entropy)."""
    return secrets.token_urlsafe(32)


def hash_token(raw_token: str) -> str:
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def hour_window(now: datetime | None = None) -> datetime:
    """Start of the hourly rate-limit window containing ``now``."""
    now = now or datetime.now(timezone.utc)
    return now.replace(minute=0, second=0, microsecond=0)


def check_rate_limit(key: str, limit_per_hour: int, now: datetime | None = None) -> bool:
    """Count a hit for ``key``; False once the hourly limit is reached."""
    return users.hit_rate_limit(key, hour_window(now), limit_per_hour)


def request_magic_link(
    email: str,
    *,
    client_ip: str,
    user_agent: str,
    base_url: str,
    policy: AuthConfig,
    email_service: EmailService,
) -> bool:
    """Issue and email a magic link.

    Returns:
        True if an email was handed to the provider. The HTTP layer
        replies identically either way.
    """
    email = email.strip().lower()

    email_allowed = check_rate_limit(f"send:email:{email}", policy.email_limit_per_hour)
    ip_allowed = check_rate_limit(f"send:ip:{client_ip}", policy.ip_limit_per_hour)
    if not (email_allowed and ip_allowed):
        logger.warning("auth.rate_limited", email=email, client_ip=client_ip)
        return False

    users.invalidate_previous_tokens(email)

    raw_token = create_token()
    expires_at = datetime.now(timezone.utc) + timedelta(minutes=policy.token_ttl_minutes)
    users.insert_magic_token(
        email=email,
        token_hash=hash_token(raw_token),
        expires_at=expires_at,
        created_ip=client_ip,
        user_agent=user_agent,
    )

    link = f"{base_url.rstrip('/')}/api/auth/callback?{urlencode({'token': raw_token})}"
    sent = email_service.send_magic_link_email(email, link, ttl_minutes=policy.token_ttl_minutes)
    if not sent:
        logger.error("auth.magic_link_not_sent", email=email)
    return sent


def complete_magic_link(raw_token: str, policy: AuthConfig) -> CallbackResult:
    """Validate a magic-link token and open a session.

    Creates the user on first sign in. The token is consumed on success.
    """
    raw_token = (raw_token or "").strip()
    if not raw_token:
        return CallbackResult(CallbackOutcome.INVALID)

    token = users.get_magic_token_by_hash(hash_token(raw_token))
    if token is None:
        return CallbackResult(CallbackOutcome.INVALID)
    if token.consumed_at:
        return CallbackResult(CallbackOutcome.USED)
    if token.is_expired():
        return CallbackResult(CallbackOutcome.EXPIRED)

    user = users.get_user_by_email(token.email)
    if user is None:
        user = users.create_user(token.email)
        logger.info("auth.user_created", email=token.email, user_id=user.id)

    session_id = create_token()
    expires_at = datetime.now(timezone.utc) + timedelta(days=policy.session_ttl_days)
    users.create_session(session_id, user.id, expires_at)
    users.consume_magic_token(token.id)

    logger.info("auth.signed_in", user_id=user.id)
    return CallbackResult(
        CallbackOutcome.SIGNED_IN,
        session_id=session_id,
        expires_at=expires_at,
        user_id=user.id,
    )
