"""Tests for the magic-link sign-in flow."""

from datetime import datetime, timedelta, timezone
from urllib.parse import parse_qs, urlparse

import pytest

from audiolearn.auth import (
    CallbackOutcome,
    complete_magic_link,
    hash_token,
    request_magic_link,
)
from audiolearn.config import AuthConfig
from audiolearn.db import users_repository as users
from audiolearn.db.database import get_db


class RecordingEmailService:
    """Stands in for EmailService and keeps every link it was asked to send."""

    def __init__(self, result: bool = True):
        self.result = result
        self.sent: list[tuple[str, str]] = []

    def send_magic_link_email(self, to_email, magic_link_url, ttl_minutes=15):
        self.sent.append((to_email, magic_link_url))
        return self.result

    def last_token(self) -> str:
        url = self.sent[-1][1]
        return parse_qs(urlparse(url).query)["token"][0]


@pytest.fixture
def mailer():
    return RecordingEmailService()


def ask(email, mailer, ip="10.0.0.1", policy=None):
    return request_magic_link(
        email,
        client_ip=ip,
        user_agent="pytest",
        base_url="http://localhost:5000",
        policy=policy or AuthConfig(),
        email_service=mailer,
    )


class TestRequestMagicLink:
    """Tests for issuing links."""

    def test_link_points_at_callback(self, db_path, mailer):
        assert ask("Reader@Example.com", mailer) is True

        to, url = mailer.sent[0]
        assert to == "reader@example.com"
        assert url.startswith("http://localhost:5000/api/auth/callback?token=")

    def test_only_hash_is_stored(self, db_path, mailer):
        ask("reader@example.com", mailer)
        raw = mailer.last_token()

        with get_db() as conn:
            rows = conn.execute("SELECT token_hash FROM magic_link_tokens").fetchall()
        assert [r["token_hash"] for r in rows] == [hash_token(raw)]
        assert raw not in rows[0]["token_hash"]

    def test_email_rate_limit(self, db_path, mailer):
        results = [ask("reader@example.com", mailer) for _ in range(4)]
        assert results == [True, True, True, False]
        assert len(mailer.sent) == 3

    def test_ip_rate_limit(self, db_path, mailer):
        results = [ask(f"user{i}@example.com", mailer, ip="1.2.3.4") for i in range(11)]
        assert results.count(True) == 10
        assert results[-1] is False

    def test_new_link_invalidates_previous(self, db_path, mailer):
        ask("reader@example.com", mailer)
        first = mailer.last_token()
        ask("reader@example.com", mailer)
        second = mailer.last_token()

        assert complete_magic_link(first, AuthConfig()).outcome is CallbackOutcome.EXPIRED
        assert complete_magic_link(second, AuthConfig()).outcome is CallbackOutcome.SIGNED_IN


class TestCompleteMagicLink:
    """Tests for following links."""

    def test_first_sign_in_creates_user_and_session(self, db_path, mailer):
        ask("new@example.com", mailer)
        result = complete_magic_link(mailer.last_token(), AuthConfig())

        assert result.outcome is CallbackOutcome.SIGNED_IN
        user = users.get_user_by_email("new@example.com")
        assert user is not None
        assert result.user_id == user.id
        session = users.get_active_session(result.session_id)
        assert session.user_id == user.id
        assert result.expires_at - datetime.now(timezone.utc) > timedelta(days=29)

    def test_token_is_single_use(self, db_path, mailer):
        ask("new@example.com", mailer)
        token = mailer.last_token()
        complete_magic_link(token, AuthConfig())

        assert complete_magic_link(token, AuthConfig()).outcome is CallbackOutcome.USED

    def test_unknown_and_blank_tokens(self, db_path):
        assert complete_magic_link("nope", AuthConfig()).outcome is CallbackOutcome.INVALID
        assert complete_magic_link("  ", AuthConfig()).outcome is CallbackOutcome.INVALID

    def test_expired_token(self, db_path):
        users.insert_magic_token(
            email="late@example.com",
            token_hash=hash_token("late-token"),
            expires_at=datetime.now(timezone.utc) - timedelta(minutes=1),
        )
        assert complete_magic_link("late-token", AuthConfig()).outcome is CallbackOutcome.EXPIRED

    def test_existing_user_reused(self, db_path, mailer):
        existing = users.create_user("known@example.com")
        ask("known@example.com", mailer)
        result = complete_magic_link(mailer.last_token(), AuthConfig())
        assert result.user_id == existing.id
