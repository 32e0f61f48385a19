"""Shared fixtures: isolated database, config and authenticated API clients."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from audiolearn.config import clear_config_cache
from audiolearn.config.app_config import ENV_OVERRIDES
from audiolearn.db import content_repository as content
from audiolearn.db import init_db
from audiolearn.db import users_repository as users
from audiolearn.web.deps import SESSION_COOKIE, reset_services


@pytest.fixture
def db_path(tmp_path, monkeypatch) -> Path:
    """Fresh database in an isolated working directory."""
    monkeypatch.chdir(tmp_path)
    for name in ENV_OVERRIDES:
        monkeypatch.delenv(name, raising=False)
    clear_config_cache()
    reset_services()

    path = tmp_path / "db" / "audiolearn.db"
    init_db(path)
    yield path

    clear_config_cache()
    reset_services()


def make_session(email: str, is_admin: bool = False) -> tuple[users.UserRecord, str]:
    """Create a user with a live session and return (user, session id)."""
    user = users.create_user(email)
    if is_admin:
        user = users.set_admin(user.id)
    session_id = f"session-{user.id}"
    users.create_session(session_id, user.id, datetime.now(timezone.utc) + timedelta(days=1))
    return user, session_id


@pytest.fixture
def app(db_path):
    from audiolearn.web.api import create_app

    return create_app()


@pytest.fixture
def anon_client(app) -> TestClient:
    """Client without a session cookie."""
    return TestClient(app)


@pytest.fixture
def learner(db_path):
    return make_session("learner@example.com")


@pytest.fixture
def admin(db_path):
    return make_session("admin@example.com", is_admin=True)


@pytest.fixture
def client(app, learner) -> TestClient:
    """Client signed in as a regular learner."""
    test_client = TestClient(app)
    test_client.cookies.set(SESSION_COOKIE, learner[1])
    return test_client


@pytest.fixture
def admin_client(app, admin) -> TestClient:
    """Client signed in as an admin."""
    test_client = TestClient(app)
    test_client.cookies.set(SESSION_COOKIE, admin[1])
    return test_client


@pytest.fixture
def catalog(db_path) -> dict:
    """One course with one assignment holding two chapters."""
    course = content.create_course("Risk Basics", code="RB101", description="Intro")
    assignment = content.create_assignment(course.id, "Module 1", 1)
    first = content.create_chapter(
        assignment.id, "Chapter 1", "https://cdn.example.com/audio/one.mp3", 1, duration=120
    )
    second = content.create_chapter(
        assignment.id, "Chapter 2", "/audio/two.mp3", 2, duration=90
    )
    return {
        "course": course,
        "assignment": assignment,
        "chapters": [first, second],
    }
