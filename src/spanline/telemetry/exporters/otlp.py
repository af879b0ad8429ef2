# src/spanline/telemetry/exporters/otlp.py
"""OTLP exporter for ended spans.

Exports spans via OpenTelemetry Protocol (OTLP) to any compatible backend:
Elastic APM, Jaeger, Tempo, Honeycomb, etc.

Converts spanline Spans to OpenTelemetry SDK ReadableSpans and ships them
with the official OTLP span exporter (HTTP/protobuf by default, gRPC on
request). The OpenTelemetry packages are an optional extra and are only
imported when the exporter is configured.
"""

from __future__ import annotations

import os
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any
from urllib.parse import unquote

import structlog

from spanline.contracts.enums import ExportResult
from spanline.telemetry.errors import ExporterConfigurationError

if TYPE_CHECKING:
    from spanline.trace.span import Span

logger = structlog.get_logger(__name__)

ENDPOINT_ENV = "OTEL_EXPORTER_OTLP_ENDPOINT"
HEADERS_ENV = "OTEL_EXPORTER_OTLP_HEADERS"

_DEFAULT_ENDPOINTS: dict[str, str] = {
    "http": "http://localhost:4318/v1/traces",
    "grpc": "http://localhost:4317",
}

_INSTALL_HINTS: dict[str, str] = {
    "http": "pip install 'spanline[otlp]' (opentelemetry-exporter-otlp-proto-http)",
    "grpc": "pip install 'spanline[otlp]' (opentelemetry-exporter-otlp-proto-grpc)",
}


def parse_headers_env(value: str) -> dict[str, str]:
    """Parse OTEL_EXPORTER_OTLP_HEADERS.

    Accepts the standard ``k1=v1,k2=v2`` form (values URL-decoded). A value
    that is not in that form is taken as a bare Authorization header value,
    e.g. ``ApiKey abc123==``.
    """
    value = value.strip()
    if not value:
        return {}
    headers: dict[str, str] = {}
    for pair in value.split(","):
        key, sep, raw = pair.partition("=")
        key = key.strip()
        if not sep or not key or any(ch.isspace() for ch in key):
            return {"Authorization": value}
        headers[key] = unquote(raw.strip())
    return headers


class OTLPExporter:
    """Export spans via OpenTelemetry Protocol.

    Configuration options:
        endpoint: Collector URL. Falls back to $OTEL_EXPORTER_OTLP_ENDPOINT,
            then http://localhost:4318/v1/traces (http) or
            http://localhost:4317 (grpc).
        headers: Optional dict of headers (e.g. Authorization). Falls back
            to $OTEL_EXPORTER_OTLP_HEADERS.
        protocol: "http" (default) or "grpc"
        timeout_seconds: Transport timeout per export (default: library default)

    Example configuration:
        tracing:
          processors:
            - type: batch
              max_export_batch_size: 10
              exporter:
                name: otlp
                options:
                  endpoint: https://apm.example.com:443/v1/traces
                  headers:
                    Authorization: ApiKey ${OTEL_API_KEY}

    Thread safety:
        export() is never called concurrently by one processor.
    """

    _name = "otlp"

    _VALID_PROTOCOLS: frozenset[str] = frozenset({"http", "grpc"})

    def __init__(self) -> None:
        self._endpoint: str | None = None
        self._headers: dict[str, str] = {}
        self._protocol = "http"
        self._timeout_seconds: float | None = None
        self._span_exporter: Any = None
        self._configured = False

    @property
    def name(self) -> str:
        return self._name

    @property
    def endpoint(self) -> str | None:
        return self._endpoint

    @property
    def headers(self) -> dict[str, str]:
        return dict(self._headers)

    @property
    def protocol(self) -> str:
        return self._protocol

    def configure(self, config: dict[str, Any]) -> None:
        """Configure the exporter and build the underlying OTLP span exporter.

        Raises:
            ExporterConfigurationError: If options are invalid or the
                OpenTelemetry packages are not installed
        """
        protocol = config.get("protocol", "http")
        if not isinstance(protocol, str) or protocol.lower() not in self._VALID_PROTOCOLS:
            raise ExporterConfigurationError(
                self._name,
                f"Invalid protocol {protocol!r}. Must be one of: {', '.join(sorted(self._VALID_PROTOCOLS))}",
            )
        self._protocol = protocol.lower()

        endpoint = config.get("endpoint") or os.environ.get(ENDPOINT_ENV) or _DEFAULT_ENDPOINTS[self._protocol]
        if not isinstance(endpoint, str):
            raise ExporterConfigurationError(self._name, f"'endpoint' must be a string, got {type(endpoint).__name__}")
        self._endpoint = endpoint

        headers = config.get("headers")
        if headers is None:
            self._headers = parse_headers_env(os.environ.get(HEADERS_ENV, ""))
        elif isinstance(headers, Mapping):
            self._headers = {str(k): str(v) for k, v in headers.items()}
        else:
            raise ExporterConfigurationError(self._name, f"'headers' must be a mapping, got {type(headers).__name__}")

        timeout = config.get("timeout_seconds")
        if timeout is not None:
            if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
                raise ExporterConfigurationError(self._name, f"'timeout_seconds' must be a positive number, got {timeout!r}")
            self._timeout_seconds = float(timeout)

        self._span_exporter = self._create_span_exporter()
        self._configured = True

        logger.debug(
            "OTLP exporter configured",
            endpoint=self._endpoint,
            protocol=self._protocol,
            headers_count=len(self._headers),
        )

    def _create_span_exporter(self) -> Any:
        kwargs: dict[str, Any] = {"endpoint": self._endpoint}
        if self._timeout_seconds is not None:
            kwargs["timeout"] = self._timeout_seconds
        try:
            if self._protocol == "grpc":
                from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter as GrpcSpanExporter

                return GrpcSpanExporter(headers=tuple(self._headers.items()) or None, **kwargs)

            from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter as HttpSpanExporter

            return HttpSpanExporter(headers=self._headers or None, **kwargs)
        except ImportError as e:
            raise ExporterConfigurationError(
                self._name,
                f"OpenTelemetry OTLP exporter not installed: {e}. Install with: {_INSTALL_HINTS[self._protocol]}",
            ) from e

    def export(self, batch: Sequence[Span]) -> ExportResult:
        """Convert and ship one batch. Single attempt.

        Returns:
            ExportResult.FAILURE if not configured, conversion failed, or
            the collector rejected the batch
        """
        if not self._configured or self._span_exporter is None:
            logger.warning("OTLP exporter not configured, dropping batch", span_count=len(batch))
            return ExportResult.FAILURE
        if not batch:
            return ExportResult.SUCCESS

        from opentelemetry.sdk.trace.export import SpanExportResult

        try:
            readable_spans = [to_readable_span(span) for span in batch]
            result = self._span_exporter.export(readable_spans)
        except Exception as e:
            logger.warning(
                "Failed to export OTLP batch",
                exporter=self._name,
                span_count=len(batch),
                error=str(e),
            )
            return ExportResult.FAILURE
        if result == SpanExportResult.SUCCESS:
            logger.debug("OTLP batch exported", span_count=len(readable_spans))
            return ExportResult.SUCCESS
        return ExportResult.FAILURE

    def shutdown(self) -> None:
        """Shut the underlying OTLP exporter down. Idempotent."""
        if self._span_exporter is not None:
            try:
                self._span_exporter.shutdown()
            except Exception as e:
                logger.warning("Failed to shutdown OTLP exporter", exporter=self._name, error=str(e))
            self._span_exporter = None
        self._configured = False


def to_readable_span(span: Span) -> Any:
    """Convert an ended spanline Span to an OpenTelemetry SDK ReadableSpan.

    Mapping:
    - ids, parent, kind and timestamps are carried over as-is
    - attributes, events (in sequence order) and links keep their attributes
    - status description is only set for ERROR (OpenTelemetry ignores it otherwise)
    - resource and instrumentation scope come from the provider/tracer
    """
    from opentelemetry.sdk.resources import Resource as OtelResource
    from opentelemetry.sdk.trace import Event as OtelEvent
    from opentelemetry.sdk.trace import ReadableSpan
    from opentelemetry.sdk.util.instrumentation import InstrumentationScope as OtelScope
    from opentelemetry.trace import Link as OtelLink
    from opentelemetry.trace import SpanContext as OtelSpanContext
    from opentelemetry.trace import SpanKind as OtelSpanKind
    from opentelemetry.trace import Status as OtelStatus
    from opentelemetry.trace import StatusCode as OtelStatusCode
    from opentelemetry.trace import TraceFlags

    def _otel_context(trace_id: int, span_id: int, sampled: bool = True) -> OtelSpanContext:
        return OtelSpanContext(
            trace_id=trace_id,
            span_id=span_id,
            is_remote=False,
            trace_flags=TraceFlags(TraceFlags.SAMPLED if sampled else TraceFlags.DEFAULT),
        )

    context = span.context
    parent = None
    if context.parent_span_id is not None:
        parent = _otel_context(context.trace_id, context.parent_span_id)

    status_code = OtelStatusCode[span.status.code.name]
    status_description = span.status.description if status_code is OtelStatusCode.ERROR else None

    scope = None
    if span.scope is not None:
        scope = OtelScope(name=span.scope.name, version=span.scope.version)

    return ReadableSpan(
        name=span.name,
        context=_otel_context(context.trace_id, context.span_id, context.sampled),
        parent=parent,
        resource=OtelResource.create(dict(span.resource)),
        attributes=dict(span.attributes),
        events=tuple(
            OtelEvent(name=event.name, attributes=dict(event.attributes), timestamp=event.timestamp)
            for event in span.events
        ),
        links=tuple(
            OtelLink(_otel_context(link.context.trace_id, link.context.span_id), attributes=dict(link.attributes))
            for link in span.links
        ),
        kind=OtelSpanKind[span.kind.name],
        status=OtelStatus(status_code, status_description),
        start_time=span.start_time,
        end_time=span.end_time,
        instrumentation_scope=scope,
    )
