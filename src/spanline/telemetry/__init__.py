# src/spanline/telemetry/__init__.py
"""Span processing and export.

Public API:
- SimpleSpanProcessor / BatchSpanProcessor / MultiSpanProcessor
- ExporterProtocol, SpanProcessorProtocol: extension points
- ExporterConfigurationError: raised for setup-time failures
- hookimpl: marker for exporter plugins

create_tracer_provider() lives in spanline.telemetry.factory, which
depends on spanline.trace; import it from there.
"""

from spanline.telemetry.buffer import BoundedBuffer
from spanline.telemetry.errors import ExporterConfigurationError
from spanline.telemetry.hookspecs import hookimpl
from spanline.telemetry.processors import BatchSpanProcessor, MultiSpanProcessor, SimpleSpanProcessor
from spanline.telemetry.protocols import ExporterProtocol, SpanProcessorProtocol

__all__ = [
    "BatchSpanProcessor",
    "BoundedBuffer",
    "ExporterConfigurationError",
    "ExporterProtocol",
    "MultiSpanProcessor",
    "SimpleSpanProcessor",
    "SpanProcessorProtocol",
    "hookimpl",
]
