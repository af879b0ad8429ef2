# src/spanline/trace/tracer.py
"""Tracer and TracerProvider.

TracerProvider owns the process Resource, the id generator and the span
processors. Tracers are cheap named handles created by
TracerProvider.get_tracer(); every span they start carries the provider's
Resource and the tracer's InstrumentationScope.

Parent resolution is explicit: Tracer.start_span() only looks at the
Context it is given. start_as_current_span() is the ambient convenience
built on top of it.
"""

import threading
import time
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import Any

import structlog

from spanline.contracts.enums import SpanKind
from spanline.telemetry.processors import MultiSpanProcessor
from spanline.telemetry.protocols import SpanProcessorProtocol
from spanline.trace.context import Context, SpanContext, use_span
from spanline.trace.ids import IdGenerator, RandomIdGenerator
from spanline.trace.resource import Resource
from spanline.trace.span import InstrumentationScope, Link, Span

logger = structlog.get_logger(__name__)

SMOKE_SPAN_NAME = "test.initialization"


class Tracer:
    """Creates spans for one instrumentation scope. Obtain via TracerProvider.get_tracer()."""

    def __init__(self, provider: "TracerProvider", scope: InstrumentationScope) -> None:
        self._provider = provider
        self._scope = scope

    @property
    def scope(self) -> InstrumentationScope:
        return self._scope

    def start_span(
        self,
        name: str,
        context: Context | None = None,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Mapping[str, Any] | None = None,
        links: Sequence[Link] = (),
        start_time: int | None = None,
    ) -> Span:
        """Start a span.

        With no Context (or an empty one) the span is a root: fresh trace id,
        no parent. Otherwise it joins the trace of the Context's span and
        takes that span's id as its parent id. The ambient context is NOT
        consulted here.

        Args:
            name: Span name
            context: Parent Context, passed explicitly
            kind: Span kind (metadata only)
            attributes: Initial attributes
            links: Links to spans outside the parent chain
            start_time: Nanoseconds since the epoch (default: now)

        Returns:
            The started span. The caller must end() it.
        """
        provider = self._provider
        ids = provider.id_generator
        parent = context.span_context if context is not None else None

        if parent is not None and parent.is_valid:
            span_context = SpanContext(
                trace_id=parent.trace_id,
                span_id=ids.generate_span_id(),
                parent_span_id=parent.span_id,
                sampled=parent.sampled,
            )
        else:
            span_context = SpanContext(trace_id=ids.generate_trace_id(), span_id=ids.generate_span_id())

        processor = provider.active_span_processor
        span = Span(
            name,
            span_context,
            kind=kind,
            resource=provider.resource,
            scope=self._scope,
            processor=processor,
            attributes=attributes,
            links=links,
            start_time=start_time,
        )
        try:
            processor.on_start(span, context)
        except Exception as e:
            logger.error("span_processor_on_start_failed", span=name, error=str(e))
        return span

    @contextmanager
    def start_as_current_span(
        self,
        name: str,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        attributes: Mapping[str, Any] | None = None,
        links: Sequence[Link] = (),
        end_on_exit: bool = True,
    ) -> Iterator[Span]:
        """Start a child of the ambient current span and make it current.

        Example:
            >>> with tracer.start_as_current_span("todo.action.create") as span:
            ...     span.set_attribute("todo.id", todo_id)
        """
        span = self.start_span(name, Context.active(), kind=kind, attributes=attributes, links=links)
        with use_span(span, end_on_exit=end_on_exit) as current:
            yield current


class TracerProvider:
    """Owner of the Resource, id generation and span processors.

    Processors are called in registration order. A provider with no
    processors still creates spans; they simply go nowhere.

    Example:
        >>> provider = TracerProvider(Resource.create({"service.name": "todo-api"}))
        >>> provider.add_span_processor(BatchSpanProcessor(OTLPExporter()))
        >>> tracer = provider.get_tracer("todo-api", "1.0.0")
    """

    def __init__(self, resource: Resource | None = None, id_generator: IdGenerator | None = None) -> None:
        self._resource = resource if resource is not None else Resource.create()
        self._id_generator: IdGenerator = id_generator if id_generator is not None else RandomIdGenerator()
        self._processor = MultiSpanProcessor()
        self._tracers: dict[tuple[str, str | None], Tracer] = {}
        self._lock = threading.Lock()
        self._shutdown = False

    @property
    def resource(self) -> Resource:
        return self._resource

    @property
    def id_generator(self) -> IdGenerator:
        return self._id_generator

    @property
    def active_span_processor(self) -> MultiSpanProcessor:
        return self._processor

    @property
    def is_shutdown(self) -> bool:
        return self._shutdown

    def get_tracer(self, name: str, version: str | None = None) -> Tracer:
        """Return the tracer for (name, version), creating it on first use."""
        key = (name, version)
        with self._lock:
            tracer = self._tracers.get(key)
            if tracer is None:
                tracer = Tracer(self, InstrumentationScope(name=name, version=version))
                self._tracers[key] = tracer
            return tracer

    def add_span_processor(self, processor: SpanProcessorProtocol) -> None:
        if self._shutdown:
            logger.warning("span_processor_added_after_shutdown", processor=type(processor).__name__)
        self._processor.add_span_processor(processor)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self._processor.force_flush(timeout_millis)

    def shutdown(self) -> None:
        """Shut down every processor (each drains and releases its exporter). Idempotent."""
        with self._lock:
            if self._shutdown:
                return
            self._shutdown = True
        self._processor.shutdown()
        logger.debug("tracer_provider_shutdown", processors=len(self._processor.processors))


def emit_smoke_span(tracer: Tracer) -> Span:
    """Emit a short span proving the pipeline is wired up.

    The span is named test.initialization, carries test.type and
    test.timestamp attributes and one event, and is ended before returning.
    """
    span = tracer.start_span(
        SMOKE_SPAN_NAME,
        attributes={
            "test.type": "initialization",
            "test.timestamp": time.time_ns() // 1_000_000,
        },
    )
    span.add_event("Tracing initialized successfully", {"scope.name": tracer.scope.name})
    span.end()
    return span
