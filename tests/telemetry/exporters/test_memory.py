# tests/telemetry/exporters/test_memory.py
"""Tests for the in-memory span exporter."""

import pytest

from spanline.contracts.enums import ExportResult
from spanline.telemetry.errors import ExporterConfigurationError
from spanline.telemetry.exporters.memory import InMemoryExporter
from spanline.trace.context import SpanContext
from spanline.trace.span import Span


def _spans(count: int, prefix: str = "span") -> list[Span]:
    spans = []
    for i in range(count):
        span = Span(f"{prefix}-{i}", SpanContext(trace_id=1, span_id=i + 1))
        span.end()
        spans.append(span)
    return spans


class TestInMemoryExporterConfiguration:
    def test_name_property(self) -> None:
        assert InMemoryExporter().name == "memory"

    @pytest.mark.parametrize("value", [0, -1, "10", 2.5, True])
    def test_invalid_max_spans_raises(self, value: object) -> None:
        with pytest.raises(ExporterConfigurationError, match="max_spans"):
            InMemoryExporter().configure({"max_spans": value})


class TestInMemoryExporterExport:
    def test_batches_kept_in_order(self, memory_exporter: InMemoryExporter) -> None:
        first, second = _spans(2, "a"), _spans(3, "b")
        assert memory_exporter.export(first) == ExportResult.SUCCESS
        assert memory_exporter.export(second) == ExportResult.SUCCESS

        assert [len(batch) for batch in memory_exporter.batches] == [2, 3]
        assert [span.name for span in memory_exporter.get_finished_spans()] == ["a-0", "a-1", "b-0", "b-1", "b-2"]

    def test_batches_returns_copy(self, memory_exporter: InMemoryExporter) -> None:
        memory_exporter.export(_spans(1))
        memory_exporter.batches.clear()
        assert len(memory_exporter.batches) == 1

    def test_max_spans_rejects_whole_batch(self) -> None:
        exporter = InMemoryExporter()
        exporter.configure({"max_spans": 3})
        assert exporter.export(_spans(2)) == ExportResult.SUCCESS
        assert exporter.export(_spans(2)) == ExportResult.FAILURE
        assert len(exporter.get_finished_spans()) == 2

    def test_clear(self, memory_exporter: InMemoryExporter) -> None:
        memory_exporter.export(_spans(2))
        memory_exporter.clear()
        assert memory_exporter.get_finished_spans() == []

    def test_shutdown(self, memory_exporter: InMemoryExporter) -> None:
        memory_exporter.shutdown()
        memory_exporter.shutdown()
        assert memory_exporter.is_shutdown
        assert memory_exporter.shutdown_calls == 2
        assert memory_exporter.export(_spans(1)) == ExportResult.FAILURE
