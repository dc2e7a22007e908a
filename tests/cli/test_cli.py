# tests/cli/test_cli.py
"""Tests for the settle CLI."""

import json
import logging
from pathlib import Path

import pytest
from typer.testing import CliRunner

from settle import __version__
from settle.cli import app

runner = CliRunner()


@pytest.fixture
def settings_file(tmp_path: Path) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(
        """
waits:
  default:
    timeout_seconds: 12
    poll_interval_seconds: 0.2
  grid:
    timeout_seconds: 30
    poll_interval_seconds: 1
    max_invalidations: 3
retries:
  default:
    max_attempts: 5
"""
    )
    return path


class TestCLIBasics:
    def test_version_flag(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"settle version {__version__}" in result.stdout

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "presets" in result.stdout
        assert "validate" in result.stdout

    def test_missing_env_file_is_an_error(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--env-file", str(tmp_path / "absent.env"), "presets"])
        assert result.exit_code == 1
        assert ".env file not found" in result.output


class TestPresetsCommand:
    def test_builtin_presets_as_json(self) -> None:
        result = runner.invoke(app, ["--no-dotenv", "presets", "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert set(data["waits"]) == {"default", "short", "long"}
        assert data["retries"]["default"]["max_attempts"] == 3

    def test_presets_from_settings_file(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "presets", "-s", str(settings_file), "--json"])

        assert result.exit_code == 0
        data = json.loads(result.stdout)
        assert data["waits"]["grid"]["max_invalidations"] == 3
        assert data["waits"]["default"]["timeout_seconds"] == 12
        assert data["retries"]["default"]["max_attempts"] == 5

    def test_presets_table(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "presets", "-s", str(settings_file)])

        assert result.exit_code == 0
        assert "Wait presets" in result.stdout
        assert "Retry presets" in result.stdout
        assert "grid" in result.stdout


class TestValidateCommand:
    def test_valid_settings(self, settings_file: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])

        assert result.exit_code == 0
        assert "Configuration valid: 2 wait presets, 1 retry presets" in result.stdout

    def test_settings_option_required(self) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate"])
        assert result.exit_code != 0

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(tmp_path / "absent.yaml")])

        assert result.exit_code == 1
        assert "File Not Found" in result.output

    def test_invalid_values(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("waits:\n  default:\n    timeout_seconds: 1\n    poll_interval_seconds: 5\n")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 1
        assert "Validation Failed" in result.output

    def test_missing_default_preset(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("retries:\n  aggressive:\n    max_attempts: 10\n")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 1
        assert "Validation Failed" in result.output

    def test_yaml_syntax_error(self, tmp_path: Path) -> None:
        path = tmp_path / "settings.yaml"
        path.write_text("waits:\n  default: [1, 2\n")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 1
        assert "YAML Syntax Error" in result.output


def _settings_with_logging(tmp_path: Path, block: str) -> Path:
    path = tmp_path / "settings.yaml"
    path.write_text(
        f"""
waits:
  default:
    timeout_seconds: 10
    poll_interval_seconds: 0.5
logging:
{block}
"""
    )
    return path


class TestLoggingFromSettings:
    def test_logging_block_sets_root_level(self, tmp_path: Path) -> None:
        path = _settings_with_logging(tmp_path, "  level: warning")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 0
        assert logging.getLogger().level == logging.WARNING
        assert "presets_loaded" not in result.output

    def test_verbose_flag_overrides_settings_level(self, tmp_path: Path) -> None:
        path = _settings_with_logging(tmp_path, "  level: WARNING")

        result = runner.invoke(app, ["--no-dotenv", "-v", "validate", "-s", str(path)])

        assert result.exit_code == 0
        assert logging.getLogger().level == logging.DEBUG
        assert "presets_loaded" in result.output

    def test_json_logging_block_logs_loaded_presets(self, tmp_path: Path) -> None:
        path = _settings_with_logging(tmp_path, "  level: DEBUG\n  json_output: true")

        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(path)])

        assert result.exit_code == 0
        lines = [line for line in result.output.splitlines() if '"presets_loaded"' in line]
        assert len(lines) == 1
        event = json.loads(lines[0])
        assert event["level"] == "debug"
        assert "- default: timeout 10s, poll every 500ms" in event["configuration"]
