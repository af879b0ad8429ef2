# tests/telemetry/exporters/test_console.py
"""Tests for Console span exporter.

Tests cover:
- Configuration validation (format and output enum values)
- Type validation for configuration options
- JSON and pretty output
- Lifecycle (export after shutdown)
"""

import io
import json
from typing import Any

import pytest

from spanline.contracts.enums import ExportResult, StatusCode
from spanline.telemetry.errors import ExporterConfigurationError
from spanline.telemetry.exporters.console import ConsoleExporter
from spanline.trace.context import SpanContext
from spanline.trace.resource import Resource
from spanline.trace.span import Span

_START_NS = 1_700_000_000_000_000_000


def _ended_span(name: str = "todo.action.create", *, parent_span_id: int | None = None) -> Span:
    span = Span(
        name,
        SpanContext(trace_id=0xABC, span_id=0x123, parent_span_id=parent_span_id),
        resource=Resource.create({"service.name": "todo-app"}),
        attributes={"todo.id": "t-1", "http.status_code": 201},
        start_time=_START_NS,
    )
    span.add_event("Index created successfully")
    span.set_status(StatusCode.OK)
    span.end(end_time=_START_NS + 1_500_000)
    return span


class TestConsoleExporterConfiguration:
    """Tests for ConsoleExporter configuration."""

    def test_name_property(self) -> None:
        assert ConsoleExporter().name == "console"

    def test_default_configuration(self) -> None:
        """Default configuration uses json format and stdout."""
        exporter = ConsoleExporter()
        exporter.configure({})
        assert exporter._format == "json"
        assert exporter._output == "stdout"

    def test_pretty_format_and_stderr(self) -> None:
        exporter = ConsoleExporter()
        exporter.configure({"format": "pretty", "output": "stderr"})
        assert exporter._format == "pretty"
        assert exporter._output == "stderr"

    @pytest.mark.parametrize(
        ("options", "expected"),
        [
            ({"format": "xml"}, "Invalid format 'xml'"),
            ({"output": "file"}, "Invalid output 'file'"),
            ({"format": 123}, "'format' must be a string, got int"),
            ({"output": ["stdout", "stderr"]}, "'output' must be a string, got list"),
        ],
        ids=["unknown-format", "unknown-output", "format-not-str", "output-not-str"],
    )
    def test_bad_options_rejected(self, options: dict[str, Any], expected: str) -> None:
        with pytest.raises(ExporterConfigurationError) as exc_info:
            ConsoleExporter().configure(options)
        assert expected in str(exc_info.value)
        assert exc_info.value.exporter_name == "console"


class TestConsoleExporterOutput:
    """Tests for what ends up on the stream."""

    def test_json_one_line_per_span(self, capsys: pytest.CaptureFixture[str]) -> None:
        exporter = ConsoleExporter()
        exporter.configure({})

        result = exporter.export([_ended_span("first"), _ended_span("second")])

        assert result == ExportResult.SUCCESS
        lines = capsys.readouterr().out.splitlines()
        assert len(lines) == 2
        first = json.loads(lines[0])
        assert first["name"] == "first"
        assert first["trace_id"] == f"{0xABC:032x}"
        assert first["span_id"] == f"{0x123:016x}"
        assert first["parent_span_id"] is None
        assert first["status"] == {"code": "ok", "description": None}
        assert first["attributes"] == {"todo.id": "t-1", "http.status_code": 201}
        assert [event["name"] for event in first["events"]] == ["Index created successfully"]
        assert first["resource"]["service.name"] == "todo-app"
        assert json.loads(lines[1])["name"] == "second"

    def test_pretty_line(self, capsys: pytest.CaptureFixture[str]) -> None:
        exporter = ConsoleExporter()
        exporter.configure({"format": "pretty"})

        exporter.export([_ended_span(parent_span_id=0x77)])

        line = capsys.readouterr().out.strip()
        assert line.startswith("[2023-11-14T22:13:20+00:00] todo.action.create")
        assert f"trace={0xABC:032x}" in line
        assert f"span={0x123:016x}" in line
        assert f"parent={0x77:016x}" in line
        assert "(1.500ms, ok)" in line
        assert "http.status_code=201, todo.id=t-1" in line
        assert line.endswith("events=[Index created successfully]")

    def test_pretty_root_span_has_no_parent(self, capsys: pytest.CaptureFixture[str]) -> None:
        exporter = ConsoleExporter()
        exporter.configure({"format": "pretty"})
        exporter.export([_ended_span()])
        assert "parent=" not in capsys.readouterr().out

    def test_stderr_output(self, capsys: pytest.CaptureFixture[str]) -> None:
        exporter = ConsoleExporter()
        exporter.configure({"output": "stderr"})
        exporter.export([_ended_span()])
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "todo.action.create" in captured.err

    def test_empty_batch_writes_nothing(self, capsys: pytest.CaptureFixture[str]) -> None:
        exporter = ConsoleExporter()
        exporter.configure({})
        assert exporter.export([]) == ExportResult.SUCCESS
        assert capsys.readouterr().out == ""

    def test_write_failure_returns_failure(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """A broken stream never raises out of export()."""
        closed = io.StringIO()
        closed.close()
        monkeypatch.setattr("sys.stdout", closed)
        exporter = ConsoleExporter()
        exporter.configure({})
        assert exporter.export([_ended_span()]) == ExportResult.FAILURE

    def test_export_after_shutdown_fails(self, capsys: pytest.CaptureFixture[str]) -> None:
        exporter = ConsoleExporter()
        exporter.configure({})
        exporter.shutdown()
        assert exporter.export([_ended_span()]) == ExportResult.FAILURE
        assert capsys.readouterr().out == ""


class TestConsoleExporterRegistration:
    """Tests for plugin registration."""

    def test_exporter_in_builtin_plugin(self) -> None:
        from spanline.telemetry.exporters import BuiltinExportersPlugin

        assert ConsoleExporter in BuiltinExportersPlugin().spanline_get_exporters()
