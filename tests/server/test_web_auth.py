"""Tests for health and auth endpoints."""

from urllib.parse import parse_qs, urlparse

import pytest
from fastapi.testclient import TestClient

from audiolearn.auth import GENERIC_REPLY
from audiolearn.db import content_repository as content
from audiolearn.db import users_repository as users
from audiolearn.web.deps import SESSION_COOKIE, get_email_service


class RecordingEmailService:
    def __init__(self):
        self.urls: list[str] = []

    def send_magic_link_email(self, to_email, magic_link_url, ttl_minutes=15):
        self.urls.append(magic_link_url)
        return True

    def token(self) -> str:
        return parse_qs(urlparse(self.urls[-1]).query)["token"][0]


@pytest.fixture
def mailer(app):
    recording = RecordingEmailService()
    app.dependency_overrides[get_email_service] = lambda: recording
    yield recording
    app.dependency_overrides.clear()


class TestHealth:
    """Tests for GET /api/health."""

    def test_health_without_session(self, anon_client):
        content.create_course("Visible")
        response = anon_client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "ok"
        assert data["courses_available"] == 1
        assert data["version"] == "0.1.0"
        assert "timestamp" in data


class TestRequestMagicLink:
    """Tests for POST /api/auth/request-magic-link."""

    def test_generic_reply(self, anon_client, mailer):
        response = anon_client.post(
            "/api/auth/request-magic-link", json={"email": "reader@example.com"}
        )
        assert response.status_code == 200
        assert response.json() == {"ok": True, "message": GENERIC_REPLY}
        assert len(mailer.urls) == 1

    def test_rate_limited_reply_is_identical(self, anon_client, mailer):
        replies = [
            anon_client.post("/api/auth/request-magic-link", json={"email": "r@example.com"}).json()
            for _ in range(4)
        ]
        assert all(reply == replies[0] for reply in replies)
        assert len(mailer.urls) == 3

    def test_invalid_email(self, anon_client, mailer):
        response = anon_client.post("/api/auth/request-magic-link", json={"email": "nope"})
        assert response.status_code == 422
        assert mailer.urls == []


class TestCallback:
    """Tests for GET /api/auth/callback."""

    def test_sign_in_sets_cookie_and_redirects_home(self, anon_client, mailer):
        anon_client.post("/api/auth/request-magic-link", json={"email": "reader@example.com"})

        response = anon_client.get(
            "/api/auth/callback", params={"token": mailer.token()}, follow_redirects=False
        )

        assert response.status_code == 302
        assert response.headers["location"] == "/"
        assert SESSION_COOKIE in response.cookies
        assert users.get_user_by_email("reader@example.com") is not None

    def test_session_cookie_authenticates(self, anon_client, mailer):
        anon_client.post("/api/auth/request-magic-link", json={"email": "reader@example.com"})
        anon_client.get(
            "/api/auth/callback", params={"token": mailer.token()}, follow_redirects=False
        )

        status = anon_client.get("/api/auth/status").json()
        assert status["authenticated"] is True
        assert status["user"]["email"] == "reader@example.com"

    def test_reused_token(self, anon_client, mailer):
        anon_client.post("/api/auth/request-magic-link", json={"email": "reader@example.com"})
        token = mailer.token()
        anon_client.get("/api/auth/callback", params={"token": token}, follow_redirects=False)

        response = anon_client.get(
            "/api/auth/callback", params={"token": token}, follow_redirects=False
        )
        assert response.headers["location"] == "/login?error=used"

    def test_invalid_token(self, anon_client):
        response = anon_client.get(
            "/api/auth/callback", params={"token": "garbage"}, follow_redirects=False
        )
        assert response.status_code == 302
        assert response.headers["location"] == "/login?error=invalid"

    def test_missing_token(self, anon_client):
        response = anon_client.get("/api/auth/callback", follow_redirects=False)
        assert response.headers["location"] == "/login?error=invalid"


class TestSessionEndpoints:
    """Tests for status, user and signout."""

    def test_status_anonymous(self, anon_client):
        assert anon_client.get("/api/auth/status").json() == {
            "authenticated": False,
            "user": None,
        }

    def test_user_requires_session(self, anon_client):
        assert anon_client.get("/api/auth/user").status_code == 401

    def test_user_with_session(self, client, learner):
        data = client.get("/api/auth/user").json()
        assert data["id"] == learner[0].id
        assert data["is_admin"] is False

    def test_expired_or_unknown_session(self, app):
        stranger = TestClient(app)
        stranger.cookies.set(SESSION_COOKIE, "forged")
        assert stranger.get("/api/auth/user").status_code == 401

    def test_signout_deletes_session(self, client, learner):
        response = client.post("/api/auth/signout")
        assert response.status_code == 200
        assert response.json()["ok"] is True
        assert users.get_active_session(learner[1]) is None
