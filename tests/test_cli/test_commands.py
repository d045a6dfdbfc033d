"""Tests for the click CLI."""

import json
import uuid
from unittest.mock import AsyncMock, patch

import pytest
from click.testing import CliRunner

from alertflow.cli import main


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture(autouse=True)
def no_logging_setup():
    with patch("alertflow.cli.setup_logging"):
        yield


class TestSubmit:
    def test_memory_submit_prints_id(self, runner):
        payload = json.dumps({
            "id": "rx-1",
            "resource": "testServer01",
            "event": "cpu usage idle",
            "environment": "syd01",
            "severity": "CRITICAL",
        })
        result = runner.invoke(main, ["submit", "--memory", "-"], input=payload)

        assert result.exit_code == 0, result.output
        alert_id = result.output.strip()
        assert alert_id != "rx-1"
        assert str(uuid.UUID(alert_id)) == alert_id

    def test_invalid_json(self, runner):
        result = runner.invoke(main, ["submit", "--memory"], input="{not json")
        assert result.exit_code != 0
        assert "Invalid JSON" in result.output

    def test_invalid_alert(self, runner):
        result = runner.invoke(main, ["submit", "--memory"], input='{"resource": "r"}')
        assert result.exit_code == 1
        assert "missing required fields" in result.output


class TestGetDelete:
    def test_get_missing(self, runner):
        service = AsyncMock()
        from alertflow.alerts.errors import AlertNotFound

        service.get_alert.side_effect = AlertNotFound("a1")
        with patch("alertflow.alerts.service.AlertService", return_value=service), \
                patch("alertflow.storage.database.Database.connect", new=AsyncMock()), \
                patch("alertflow.storage.database.Database.close", new=AsyncMock()):
            result = runner.invoke(main, ["get", "a1"])

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_delete(self, runner):
        service = AsyncMock()
        with patch("alertflow.alerts.service.AlertService", return_value=service), \
                patch("alertflow.storage.database.Database.connect", new=AsyncMock()), \
                patch("alertflow.storage.database.Database.close", new=AsyncMock()):
            result = runner.invoke(main, ["delete", "a1"])

        assert result.exit_code == 0, result.output
        service.delete_alert.assert_awaited_once_with("a1")
        assert "Deleted a1" in result.output


class TestToken:
    def test_issues_token(self, runner, test_settings):
        with patch("alertflow.auth.service.get_settings", return_value=test_settings):
            result = runner.invoke(main, ["token", "alice", "--password", "wonderland"])

        assert result.exit_code == 0, result.output
        assert result.output.count(".") == 2

    def test_rejects_bad_password(self, runner, test_settings):
        with patch("alertflow.auth.service.get_settings", return_value=test_settings):
            result = runner.invoke(main, ["token", "alice", "--password", "nope"])

        assert result.exit_code == 1
        assert "Login failed" in result.output


class TestHealth:
    def test_unhealthy_database(self, runner):
        with patch(
            "alertflow.storage.database.Database.connect",
            new=AsyncMock(side_effect=OSError("refused")),
        ):
            result = runner.invoke(main, ["health"])

        assert result.exit_code == 1
        assert "postgres: False" in result.output
