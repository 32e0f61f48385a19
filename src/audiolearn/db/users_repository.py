"""Repository functions for users, magic-link tokens, sessions and rate limits."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import datetime, timezone

import structlog

from audiolearn.db.database import RecordNotFoundError, get_db, new_id, utc_now

logger = structlog.get_logger(__name__)


@dataclass
class UserRecord:
    """User record from database."""

    id: str
    email: str | None
    first_name: str | None
    last_name: str | None
    profile_image_url: str | None
    is_admin: bool
    created_at: str
    updated_at: str


@dataclass
class MagicLinkTokenRecord:
    """A hashed single-use sign-in token."""

    id: str
    email: str
    token_hash: str
    expires_at: str
    consumed_at: str | None
    created_ip: str | None
    user_agent: str | None

    def is_expired(self, now: datetime | None = None) -> bool:
        now = now or datetime.now(timezone.utc)
        return datetime.fromisoformat(self.expires_at) <= now


@dataclass
class SessionRecord:
    """A signed-in browser session."""

    id: str
    user_id: str
    expires_at: str


# =============================================================================
# USERS
# =============================================================================


def get_user(user_id: str) -> UserRecord | None:
    """Get user by ID."""
    with get_db() as conn:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
    return _row_to_user(row) if row else None


def get_user_by_email(email: str) -> UserRecord | None:
    """Get user by (lower-cased) email."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM users WHERE email = ?", (email.strip().lower(),)
        ).fetchone()
    return _row_to_user(row) if row else None


def create_user(email: str, **profile: str | None) -> UserRecord:
    """Create a user identified by email."""
    user_id = new_id()
    return upsert_user(user_id, email=email, **profile)


def upsert_user(
    user_id: str,
    email: str | None = None,
    first_name: str | None = None,
    last_name: str | None = None,
    profile_image_url: str | None = None,
) -> UserRecord:
    """Insert a user or refresh the profile fields of an existing one."""
    now = utc_now()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO users (
                id, email, first_name, last_name, profile_image_url,
                is_admin, created_at, updated_at
            ) VALUES (?, ?, ?, ?, ?, 0, ?, ?)
            ON CONFLICT(id) DO UPDATE SET
                email = COALESCE(excluded.email, users.email),
                first_name = COALESCE(excluded.first_name, users.first_name),
                last_name = COALESCE(excluded.last_name, users.last_name),
                profile_image_url = COALESCE(excluded.profile_image_url, users.profile_image_url),
                updated_at = excluded.updated_at
            """,
            (
                user_id,
                email.strip().lower() if email else None,
                first_name,
                last_name,
                profile_image_url,
                now,
                now,
            ),
        )

    user = get_user(user_id)
    if user is None:
        raise RecordNotFoundError("users", user_id)
    return user


def set_admin(user_id: str, is_admin: bool = True) -> UserRecord | None:
    """Grant or revoke admin rights. Returns None if the user does not exist."""
    with get_db() as conn:
        cursor = conn.execute(
            "UPDATE users SET is_admin = ?, updated_at = ? WHERE id = ?",
            (is_admin, utc_now(), user_id),
        )
        if cursor.rowcount == 0:
            return None

    logger.info("users.admin_changed", user_id=user_id, is_admin=is_admin)
    return get_user(user_id)


# =============================================================================
# MAGIC-LINK TOKENS
# =============================================================================


def insert_magic_token(
    email: str,
    token_hash: str,
    expires_at: datetime,
    created_ip: str = "",
    user_agent: str = "",
) -> str:
    """Store a hashed magic-link token and return its id."""
    token_id = new_id()
    with get_db() as conn:
        conn.execute(
            """
            INSERT INTO magic_link_tokens (
                id, email, token_hash, expires_at, created_ip, user_agent, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?)
            """,
            (token_id, email, token_hash, expires_at.isoformat(), created_ip, user_agent, utc_now()),
        )
    return token_id


def get_magic_token_by_hash(token_hash: str) -> MagicLinkTokenRecord | None:
    """Look up a token by its SHA-256 hash."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM magic_link_tokens WHERE token_hash = ?", (token_hash,)
        ).fetchone()
    if row is None:
        return None
    return MagicLinkTokenRecord(
        id=row["id"],
        email=row["email"],
        token_hash=row["token_hash"],
        expires_at=row["expires_at"],
        consumed_at=row["consumed_at"],
        created_ip=row["created_ip"],
        user_agent=row["user_agent"],
    )


def consume_magic_token(token_id: str) -> None:
    """Mark a token as used."""
    with get_db() as conn:
        conn.execute(
            "UPDATE magic_link_tokens SET consumed_at = ? WHERE id = ?",
            (utc_now(), token_id),
        )


def invalidate_previous_tokens(email: str) -> int:
    """Expire all unconsumed tokens of an email. Returns the count affected."""
    now = utc_now()
    with get_db() as conn:
        cursor = conn.execute(
            """
            UPDATE magic_link_tokens SET expires_at = ?
            WHERE email = ? AND consumed_at IS NULL AND expires_at > ?
            """,
            (now, email, now),
        )
        return cursor.rowcount


# =============================================================================
# SESSIONS
# =============================================================================


def create_session(session_id: str, user_id: str, expires_at: datetime) -> SessionRecord:
    """Persist a new session."""
    with get_db() as conn:
        conn.execute(
            "INSERT INTO user_sessions (id, user_id, expires_at, created_at) VALUES (?, ?, ?, ?)",
            (session_id, user_id, expires_at.isoformat(), utc_now()),
        )
    return SessionRecord(id=session_id, user_id=user_id, expires_at=expires_at.isoformat())


def get_active_session(session_id: str) -> SessionRecord | None:
    """Get a session if it exists and has not expired."""
    with get_db() as conn:
        row = conn.execute(
            "SELECT * FROM user_sessions WHERE id = ? AND expires_at > ?",
            (session_id, utc_now()),
        ).fetchone()
    if row is None:
        return None
    return SessionRecord(id=row["id"], user_id=row["user_id"], expires_at=row["expires_at"])


def delete_session(session_id: str) -> bool:
    """Delete a session (sign out)."""
    with get_db() as conn:
        cursor = conn.execute("DELETE FROM user_sessions WHERE id = ?", (session_id,))
        return cursor.rowcount > 0


def cleanup_expired() -> tuple[int, int]:
    """Delete expired sessions and tokens. Returns (sessions, tokens) removed."""
    now = utc_now()
    with get_db() as conn:
        sessions = conn.execute(
            "DELETE FROM user_sessions WHERE expires_at < ?", (now,)
        ).rowcount
        tokens = conn.execute(
            "DELETE FROM magic_link_tokens WHERE expires_at < ?", (now,)
        ).rowcount

    logger.info("auth.cleanup", sessions=sessions, tokens=tokens)
    return sessions, tokens


# =============================================================================
# RATE LIMITS
# =============================================================================


def hit_rate_limit(key: str, window_start: datetime, limit: int) -> bool:
    """Count one hit against ``key`` within the window starting at ``window_start``.

    Returns:
        True if the hit is allowed, False once ``limit`` hits were already
        counted in the current window.
    """
    window = window_start.isoformat()
    with get_db() as conn:
        row = conn.execute(
            "SELECT window_start, count FROM rate_limits WHERE key = ?", (key,)
        ).fetchone()

        if row is None or row["window_start"] != window:
            conn.execute(
                """
                INSERT INTO rate_limits (key, window_start, count) VALUES (?, ?, 1)
                ON CONFLICT(key) DO UPDATE SET window_start = excluded.window_start, count = 1
                """,
                (key, window),
            )
            return True

        if row["count"] >= limit:
            return False

        conn.execute("UPDATE rate_limits SET count = count + 1 WHERE key = ?", (key,))
        return True


def _row_to_user(row: sqlite3.Row) -> UserRecord:
    return UserRecord(
        id=row["id"],
        email=row["email"],
        first_name=row["first_name"],
        last_name=row["last_name"],
        profile_image_url=row["profile_image_url"],
        is_admin=bool(row["is_admin"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )
