# tests/cli/test_cli.py
"""Tests for the spanline CLI (validate and smoke commands)."""

from pathlib import Path
from typing import Any

import pytest
import yaml
from typer.testing import CliRunner

from spanline import __version__
from spanline.cli import app

runner = CliRunner()


def _write_settings(tmp_path: Path, data: dict[str, Any]) -> Path:
    settings_file = tmp_path / "settings.yaml"
    settings_file.write_text(yaml.safe_dump(data, sort_keys=False))
    return settings_file


@pytest.fixture
def hybrid_settings(tmp_path: Path) -> Path:
    return _write_settings(
        tmp_path,
        {
            "service": {"name": "hybrid-todo-app", "version": "1.0.0"},
            "tracing": {
                "processors": [
                    {"type": "simple", "exporter": {"name": "console", "options": {"format": "pretty"}}},
                    {
                        "type": "batch",
                        "max_export_batch_size": 10,
                        "export_timeout_millis": 5000,
                        "scheduled_delay_millis": 1000,
                        "exporter": {"name": "memory"},
                    },
                ]
            },
        },
    )


class TestCallback:
    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"spanline version {__version__}" in result.output

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])
        assert "validate" in result.output
        assert "smoke" in result.output

    def test_missing_env_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--env-file", str(tmp_path / "missing.env"), "smoke"])
        assert result.exit_code == 1
        assert ".env file not found" in result.output


class TestValidateCommand:
    def test_valid_settings(self, hybrid_settings: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "--settings", str(hybrid_settings)])
        assert result.exit_code == 0, result.output
        assert "Configuration valid!" in result.output
        assert "Service: hybrid-todo-app" in result.output
        assert "Processor 0: simple -> console" in result.output
        assert "Processor 1: batch -> memory" in result.output
        assert "max_export_batch_size=10" in result.output

    def test_missing_file(self, tmp_path: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(tmp_path / "nope.yaml")])
        assert result.exit_code == 1
        assert "File Not Found" in result.output

    def test_schema_error(self, tmp_path: Path) -> None:
        settings_file = _write_settings(
            tmp_path,
            {"tracing": {"processors": [{"type": "batch", "max_queue_size": 0, "exporter": {"name": "memory"}}]}},
        )
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])
        assert result.exit_code == 1
        assert "Configuration Validation Failed" in result.output

    def test_unknown_exporter(self, tmp_path: Path) -> None:
        settings_file = _write_settings(
            tmp_path,
            {"tracing": {"processors": [{"type": "simple", "exporter": {"name": "zipkin"}}]}},
        )
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])
        assert result.exit_code == 1
        assert "Exporter Configuration Error" in result.output

    def test_invalid_exporter_options(self, tmp_path: Path) -> None:
        settings_file = _write_settings(
            tmp_path,
            {"tracing": {"processors": [{"type": "simple", "exporter": {"name": "console", "options": {"format": "xml"}}}]}},
        )
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])
        assert result.exit_code == 1
        assert "Invalid format" in result.output

    def test_missing_environment_variable(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TODO_SERVICE_NAME", raising=False)
        settings_file = tmp_path / "settings.yaml"
        settings_file.write_text("service:\n  name: ${TODO_SERVICE_NAME}\n")
        result = runner.invoke(app, ["--no-dotenv", "validate", "-s", str(settings_file)])
        assert result.exit_code == 1
        assert "Missing Environment Variable" in result.output


class TestSmokeCommand:
    def test_default_pipeline_prints_span(self) -> None:
        result = runner.invoke(app, ["--no-dotenv", "smoke"])
        assert result.exit_code == 0, result.output
        assert "test.initialization" in result.output
        assert "events=[Tracing initialized successfully]" in result.output
        assert "Smoke span emitted: trace_id=" in result.output
        assert "Flushed: True" in result.output
        assert "Processor 0 (SimpleSpanProcessor)" in result.output

    def test_with_settings_reports_batch_health(self, hybrid_settings: Path) -> None:
        result = runner.invoke(app, ["--no-dotenv", "smoke", "--settings", str(hybrid_settings)])
        assert result.exit_code == 0, result.output
        assert "Processor 1 (BatchSpanProcessor)" in result.output
        assert "'spans_exported': 1" in result.output

    def test_exporter_error(self, tmp_path: Path) -> None:
        settings_file = _write_settings(
            tmp_path,
            {"tracing": {"processors": [{"type": "simple", "exporter": {"name": "zipkin"}}]}},
        )
        result = runner.invoke(app, ["--no-dotenv", "smoke", "-s", str(settings_file)])
        assert result.exit_code == 1
        assert "Exporter Configuration Error" in result.output
