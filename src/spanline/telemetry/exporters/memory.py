# src/spanline/telemetry/exporters/memory.py
"""In-memory exporter: keeps exported batches for inspection.

Used by the test suite and by applications that assert on their own
instrumentation.
"""

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from spanline.contracts.enums import ExportResult
from spanline.telemetry.errors import ExporterConfigurationError

if TYPE_CHECKING:
    from spanline.trace.span import Span


class InMemoryExporter:
    """Record every exported batch.

    Configuration options:
        max_spans: Optional cap on retained spans; once reached, further
            batches are rejected with ExportResult.FAILURE.
    """

    _name = "memory"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._batches: list[tuple["Span", ...]] = []
        self._max_spans: int | None = None
        self._shutdown = False
        self._shutdown_calls = 0

    @property
    def name(self) -> str:
        return self._name

    def configure(self, config: dict[str, Any]) -> None:
        max_spans = config.get("max_spans")
        if max_spans is not None and (type(max_spans) is not int or max_spans < 1):
            raise ExporterConfigurationError(self._name, f"'max_spans' must be a positive integer, got {max_spans!r}")
        self._max_spans = max_spans

    def export(self, batch: Sequence["Span"]) -> ExportResult:
        with self._lock:
            if self._shutdown:
                return ExportResult.FAILURE
            if self._max_spans is not None and self._span_count() + len(batch) > self._max_spans:
                return ExportResult.FAILURE
            self._batches.append(tuple(batch))
        return ExportResult.SUCCESS

    def _span_count(self) -> int:
        return sum(len(batch) for batch in self._batches)

    @property
    def batches(self) -> list[tuple["Span", ...]]:
        """Exported batches, oldest first."""
        with self._lock:
            return list(self._batches)

    def get_finished_spans(self) -> list["Span"]:
        """Every exported span, flattened in export order."""
        with self._lock:
            return [span for batch in self._batches for span in batch]

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    @property
    def shutdown_calls(self) -> int:
        return self._shutdown_calls

    def clear(self) -> None:
        with self._lock:
            self._batches.clear()

    def shutdown(self) -> None:
        with self._lock:
            self._shutdown = True
            self._shutdown_calls += 1
