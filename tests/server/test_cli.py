"""Tests for the audiolearn CLI."""

from unittest.mock import patch

from typer.testing import CliRunner

from audiolearn.cli.commands import app
from audiolearn.db import content_repository as content
from audiolearn.db import users_repository as users
from audiolearn.db.sync_repository import create_sync_log
from audiolearn.sync import ContentApiResponseError, SyncResult

runner = CliRunner()


class TestInitDb:
    """Tests for audiolearn init-db."""

    def test_creates_database(self, db_path):
        db_path.unlink()
        result = runner.invoke(app, ["init-db"])

        assert result.exit_code == 0
        assert "Database ready" in result.output
        assert db_path.exists()


class TestSeed:
    """Tests for audiolearn seed."""

    def test_seed_then_skip(self, db_path):
        first = runner.invoke(app, ["seed"])
        assert first.exit_code == 0
        assert "Seeded demo course with 9 chapters" in first.output

        second = runner.invoke(app, ["seed"])
        assert second.exit_code == 0
        assert "skipping seed" in second.output
        assert len(content.list_courses()) == 1


class TestSetAdmin:
    """Tests for audiolearn set-admin."""

    def test_grant_by_email(self, db_path):
        user = users.create_user("boss@example.com")
        result = runner.invoke(app, ["set-admin", "boss@example.com"])

        assert result.exit_code == 0
        assert "is now an admin" in result.output
        assert users.get_user(user.id).is_admin is True

    def test_revoke_by_id(self, db_path):
        user = users.create_user("boss@example.com")
        users.set_admin(user.id)

        result = runner.invoke(app, ["set-admin", user.id, "--revoke"])
        assert result.exit_code == 0
        assert users.get_user(user.id).is_admin is False

    def test_unknown_user(self, db_path):
        result = runner.invoke(app, ["set-admin", "ghost@example.com"])
        assert result.exit_code == 1
        assert "User not found" in result.output

    def test_user_removed_before_update(self, db_path):
        users.create_user("boss@example.com")
        with patch("audiolearn.db.users_repository.set_admin", return_value=None):
            result = runner.invoke(app, ["set-admin", "boss@example.com"])

        assert result.exit_code == 1
        assert "removed before the change" in result.output


class TestSync:
    """Tests for audiolearn sync and sync-status."""

    def test_missing_key_exits(self, db_path):
        result = runner.invoke(app, ["sync"])
        assert result.exit_code == 1
        assert "CONTENT_API_KEY" in result.output

    def test_success_prints_summary(self, db_path):
        outcome = SyncResult(courses_created=1, chapters_created=4)
        with patch("audiolearn.cli.commands.run_sync", return_value=outcome):
            result = runner.invoke(app, ["sync"])

        assert result.exit_code == 0
        assert "Sync completed" in result.output

    def test_api_failure_exits(self, db_path):
        with patch(
            "audiolearn.cli.commands.run_sync",
            side_effect=ContentApiResponseError("boom"),
        ):
            result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "Sync failed" in result.output

    def test_status_empty(self, db_path):
        result = runner.invoke(app, ["sync-status"])
        assert result.exit_code == 0
        assert "No sync has run yet" in result.output

    def test_status_lists_entries(self, db_path):
        create_sync_log("success", "all good")
        result = runner.invoke(app, ["sync-status"])
        assert result.exit_code == 0
        assert "all good" in result.output
