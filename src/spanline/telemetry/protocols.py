# src/spanline/telemetry/protocols.py
"""Protocol definitions for span processors and exporters.

Processors react to span start/end. Exporters ship batches of ended spans
to an external sink (OTLP collector, console, memory, ...).
"""

from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from spanline.contracts.enums import ExportResult

if TYPE_CHECKING:
    from spanline.trace.context import Context
    from spanline.trace.span import Span


@runtime_checkable
class SpanProcessorProtocol(Protocol):
    """Hooks invoked by the tracer (on_start) and by the span (on_end).

    Both hooks run synchronously on the thread that started/ended the span,
    concurrently from many in-flight operations. They MUST NOT block for
    long and MUST NOT raise.
    """

    def on_start(self, span: "Span", parent_context: "Context | None" = None) -> None:
        """Called when a span has been created."""
        ...

    def on_end(self, span: "Span") -> None:
        """Called exactly once when a span has ended."""
        ...

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Export everything received so far. Returns False on timeout."""
        ...

    def shutdown(self) -> None:
        """Drain, release the exporter, and ignore spans ending afterwards."""
        ...


@runtime_checkable
class ExporterProtocol(Protocol):
    """Protocol for span exporters.

    Exporters ship batches of ended spans to an external sink. They are
    discovered via pluggy hooks and configured via settings.

    Lifecycle:
        1. Discovery: spanline_get_exporters hook returns exporter classes
        2. Instantiation: the factory creates one instance per configured processor
        3. Configuration: configure() called with exporter-specific options
        4. Operation: export() called with batches of ended spans
        5. Shutdown: shutdown() called once by the owning processor

    Error handling:
        - configure() MUST raise ExporterConfigurationError on invalid options
        - export() reports failure through ExportResult.FAILURE; raising is
          tolerated (the processor treats it as a failure) but discouraged
        - shutdown() MUST be idempotent
    """

    @property
    def name(self) -> str:
        """Exporter name for configuration reference.

            tracing:
              processors:
                - exporter:
                    name: otlp  # matches this property
        """
        ...

    def configure(self, config: dict[str, Any]) -> None:
        """Configure the exporter with its options from settings.

        Raises:
            ExporterConfigurationError: If configuration is invalid or incomplete
        """
        ...

    def export(self, batch: Sequence["Span"]) -> ExportResult:
        """Export one ordered batch of ended spans. Single attempt, no retry.

        Thread Safety:
            Never called concurrently by one processor. A call abandoned
            after the export timeout may still be running while the next
            call starts.
        """
        ...

    def shutdown(self) -> None:
        """Release resources. Returns after internal buffering is flushed or abandoned."""
        ...
