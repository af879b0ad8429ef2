# src/spanline/trace/__init__.py
"""Span data model, context propagation and tracers."""

from spanline.trace.context import (
    EMPTY_CONTEXT,
    Context,
    SpanContext,
    attach,
    detach,
    get_current_span,
    use_span,
)
from spanline.trace.ids import IdGenerator, RandomIdGenerator, format_span_id, format_trace_id
from spanline.trace.resource import Resource
from spanline.trace.span import Event, InstrumentationScope, Link, Span, Status
from spanline.trace.tracer import SMOKE_SPAN_NAME, Tracer, TracerProvider, emit_smoke_span

__all__ = [
    "EMPTY_CONTEXT",
    "SMOKE_SPAN_NAME",
    "Context",
    "Event",
    "IdGenerator",
    "InstrumentationScope",
    "Link",
    "RandomIdGenerator",
    "Resource",
    "Span",
    "SpanContext",
    "Status",
    "Tracer",
    "TracerProvider",
    "attach",
    "detach",
    "emit_smoke_span",
    "format_span_id",
    "format_trace_id",
    "get_current_span",
    "use_span",
]
