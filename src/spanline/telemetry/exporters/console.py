# src/spanline/telemetry/exporters/console.py
"""Console exporter for ended spans.

Writes spans to stdout or stderr in JSON or human-readable format.
Primarily used for local debugging and the smoke command.
"""

from __future__ import annotations

import json
import sys
from collections.abc import Sequence
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Literal, TextIO, TypeGuard

import structlog

from spanline.contracts.enums import ExportResult
from spanline.telemetry.errors import ExporterConfigurationError

if TYPE_CHECKING:
    from spanline.trace.span import Span

logger = structlog.get_logger(__name__)


_Format = Literal["json", "pretty"]
_Output = Literal["stdout", "stderr"]


def _is_format(value: str) -> TypeGuard[_Format]:
    return value in ("json", "pretty")


def _is_output(value: str) -> TypeGuard[_Output]:
    return value in ("stdout", "stderr")


def _string_option(config: dict[str, Any], key: str, default: str) -> str:
    value = config.get(key, default)
    if not isinstance(value, str):
        raise ExporterConfigurationError("console", f"'{key}' must be a string, got {type(value).__name__}")
    return value


def _format_timestamp(timestamp_ns: int) -> str:
    return datetime.fromtimestamp(timestamp_ns / 1_000_000_000, tz=UTC).isoformat()


class ConsoleExporter:
    """Export spans to stdout/stderr, one line per span.

    Supports two output formats:
    - json: One JSON object per line (Span.to_dict())
    - pretty: [START] name trace=... span=... parent=... (duration, status)

    Configuration options:
        format: Output format - "json" (default) or "pretty"
        output: Output stream - "stdout" (default) or "stderr"

    Example configuration:
        tracing:
          processors:
            - type: simple
              exporter:
                name: console
                options:
                  format: pretty
                  output: stderr
    """

    _name = "console"

    def __init__(self) -> None:
        self._format: _Format = "json"
        self._output: _Output = "stdout"
        self._shutdown = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def _stream(self) -> TextIO:
        # Resolved per write so redirected sys.stdout/sys.stderr are honored
        return sys.stdout if self._output == "stdout" else sys.stderr

    def configure(self, config: dict[str, Any]) -> None:
        """Apply the format/output options.

        Raises:
            ExporterConfigurationError: On a non-string or unknown value
        """
        format_value = _string_option(config, "format", "json")
        if not _is_format(format_value):
            raise ExporterConfigurationError(self._name, f"Invalid format '{format_value}'. Must be one of: json, pretty")
        output_value = _string_option(config, "output", "stdout")
        if not _is_output(output_value):
            raise ExporterConfigurationError(self._name, f"Invalid output '{output_value}'. Must be one of: stderr, stdout")

        self._format = format_value
        self._output = output_value
        logger.debug("console_exporter_configured", format=self._format, output=self._output)

    def export(self, batch: Sequence[Span]) -> ExportResult:
        """Write every span in the batch, in order.

        Returns:
            ExportResult.FAILURE if writing failed or the exporter is shut down
        """
        if self._shutdown:
            return ExportResult.FAILURE
        try:
            if self._format == "json":
                lines = [json.dumps(span.to_dict(), default=str) for span in batch]
            else:
                lines = [self._format_pretty(span) for span in batch]
            stream = self._stream
            for line in lines:
                print(line, file=stream)
            stream.flush()
        except Exception as e:
            logger.warning(
                "Failed to export span batch",
                exporter=self._name,
                span_count=len(batch),
                error=str(e),
            )
            return ExportResult.FAILURE
        return ExportResult.SUCCESS

    def _format_pretty(self, span: Span) -> str:
        """Format: [START] name trace=.. span=.. [parent=..] (duration, status) k=v ..."""
        context = span.context
        parts = [f"[{_format_timestamp(span.start_time)}] {span.name}", f"trace={context.trace_id_hex}"]
        parts.append(f"span={context.span_id_hex}")
        if context.parent_span_id_hex is not None:
            parts.append(f"parent={context.parent_span_id_hex}")

        duration = span.duration_ms
        duration_str = f"{duration:.3f}ms" if duration is not None else "open"
        parts.append(f"({duration_str}, {span.status.code.value})")

        attributes = span.attributes
        if attributes:
            parts.append(", ".join(f"{key}={attributes[key]}" for key in sorted(attributes)))
        if span.events:
            parts.append("events=[" + ", ".join(event.name for event in span.events) + "]")
        return " ".join(parts)

    def shutdown(self) -> None:
        """Stop accepting batches.

        The console exporter does not own stdout/stderr, so nothing is closed.
        """
        self._shutdown = True
