"""Tests for config CLI command."""

import json
from pathlib import Path
from unittest.mock import patch

import pytest
from rich.console import Console
from typer.testing import CliRunner

from drone_cron.cli.config import app
from drone_cron.cli.exit_codes import ExitCode

runner = CliRunner()


@pytest.fixture
def env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Configure a complete, valid environment."""
    jobs_file = tmp_path / "config.yaml"
    jobs_file.write_text(
        "jobs:\n"
        "  - name: acme/widgets\n"
        "    schedule: '0 */5 * * * *'\n"
    )
    monkeypatch.setenv("DRONE_SERVER", "https://drone.example.com")
    monkeypatch.setenv("DRONE_TOKEN", "secret-token")
    monkeypatch.setenv("DRONE_CRON_CONFIG", str(jobs_file))
    monkeypatch.setenv("DRONE_CRON_CONFIG_DIR", str(tmp_path / "config"))
    monkeypatch.setenv("DRONE_CRON_REQUEST_TIMEOUT", "30")
    monkeypatch.delenv("DRONE_CRON_ALLOW_OVERLAP", raising=False)
    monkeypatch.delenv("DRONE_CRON_TIMEZONE", raising=False)
    return tmp_path


class TestShowConfig:
    """Tests for config show."""

    def test_show_json_masks_token(self, env):
        result = runner.invoke(app, ["show", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["server"]["url"] == "https://drone.example.com"
        assert data["server"]["token"] == "secr****"
        assert data["server"]["request_timeout"] == 30.0

    def test_show_json_unmasked(self, env):
        result = runner.invoke(app, ["show", "--json", "--unmask"])

        assert json.loads(result.stdout)["server"]["token"] == "secret-token"

    def test_show_table(self, env):
        with patch("drone_cron.cli.config.console", Console(width=200)):
            result = runner.invoke(app, ["show"])

        assert result.exit_code == 0, result.output
        assert "https://drone.example.com" in result.output
        assert "secret-token" not in result.output


class TestValidateConfig:
    """Tests for config validate."""

    def test_valid(self, env):
        with patch("drone_cron.cli.config.console", Console(width=200)):
            result = runner.invoke(app, ["validate"])

        assert result.exit_code == 0, result.output
        assert "Configuration is valid" in result.output
        assert "acme/widgets@master" in result.output

    def test_missing_token(self, env, monkeypatch):
        monkeypatch.delenv("DRONE_TOKEN")

        with patch("drone_cron.cli.config.console", Console(width=200)):
            result = runner.invoke(app, ["validate"])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR
        assert "server.token" in result.output

    def test_malformed_job_is_warning(self, env):
        """Test that jobs skipped at runtime do not fail validation."""
        (env / "config.yaml").write_text(
            "jobs:\n"
            "  - name: bad-repo-id\n"
            "    schedule: '@hourly'\n"
        )

        with patch("drone_cron.cli.config.console", Console(width=200)):
            result = runner.invoke(app, ["validate"])

        assert result.exit_code == 0, result.output
        assert "failed to split repo name" in result.output

    def test_unreadable_jobs_file(self, env):
        (env / "config.yaml").write_text("jobs: [unclosed\n")

        with patch("drone_cron.cli.config.console", Console(width=200)):
            result = runner.invoke(app, ["validate"])

        assert result.exit_code == ExitCode.CONFIGURATION_ERROR
