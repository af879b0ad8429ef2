# tests/unit/trace/test_tracer.py
"""Tests for Tracer and TracerProvider."""

from typing import Any

from spanline.contracts.enums import SpanKind, StatusCode
from spanline.telemetry.exporters.memory import InMemoryExporter
from spanline.trace.context import Context, SpanContext, get_current_span, use_span
from spanline.trace.resource import Resource
from spanline.trace.span import Link, Span
from spanline.trace.tracer import SMOKE_SPAN_NAME, Tracer, TracerProvider, emit_smoke_span

# =============================================================================
# Test Doubles
# =============================================================================


class FixedIdGenerator:
    """Hands out predictable ids."""

    def __init__(self) -> None:
        self._next = 0

    def generate_trace_id(self) -> int:
        self._next += 1
        return 0x1000 + self._next

    def generate_span_id(self) -> int:
        self._next += 1
        return self._next


class TrackingProcessor:
    def __init__(self, *, fail_on_start: bool = False) -> None:
        self.started: list[tuple[Span, Context | None]] = []
        self.ended: list[Span] = []
        self.shutdown_count = 0
        self._fail_on_start = fail_on_start

    def on_start(self, span: Span, parent_context: Any = None) -> None:
        self.started.append((span, parent_context))
        if self._fail_on_start:
            raise RuntimeError("on_start exploded")

    def on_end(self, span: Span) -> None:
        self.ended.append(span)

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return True

    def shutdown(self) -> None:
        self.shutdown_count += 1


# =============================================================================
# Tests
# =============================================================================


class TestStartSpan:
    def test_root_span_without_context(self, tracer: Tracer) -> None:
        span = tracer.start_span("http.get.todos", kind=SpanKind.SERVER)
        assert span.context.is_root
        assert span.context.is_valid
        assert span.kind == SpanKind.SERVER

    def test_empty_context_gives_root(self, tracer: Tracer) -> None:
        span = tracer.start_span("op", Context.empty())
        assert span.context.is_root

    def test_child_inherits_trace_and_parent(self, tracer: Tracer) -> None:
        parent = tracer.start_span("http.post.todos", kind=SpanKind.SERVER)
        child = tracer.start_span("elasticsearch.add_todo", Context.empty().with_span(parent), kind=SpanKind.CLIENT)
        assert child.context.trace_id == parent.context.trace_id
        assert child.context.parent_span_id == parent.context.span_id
        assert child.context.span_id != parent.context.span_id

    def test_unsampled_parent_propagates(self, provider: TracerProvider) -> None:
        tracer = provider.get_tracer("t")
        remote_parent = Span("remote", SpanContext(trace_id=5, span_id=6, sampled=False))
        child = tracer.start_span("child", Context.empty().with_span(remote_parent))
        assert child.context.sampled is False
        assert child.context.trace_id == 5

    def test_invalid_parent_is_ignored(self, tracer: Tracer) -> None:
        bogus = Span("bogus", SpanContext(trace_id=0, span_id=0))
        span = tracer.start_span("op", Context.empty().with_span(bogus))
        assert span.context.is_root
        assert span.context.trace_id != 0

    def test_ambient_context_is_not_consulted(self, tracer: Tracer) -> None:
        ambient = tracer.start_span("ambient")
        with use_span(ambient):
            span = tracer.start_span("explicit")
        assert span.context.is_root
        assert span.context.trace_id != ambient.context.trace_id

    def test_resource_and_scope_are_stamped(self, provider: TracerProvider) -> None:
        span = provider.get_tracer("todo-app", "2.0").start_span("op")
        assert span.resource["service.name"] == "todo-app"
        assert span.scope is not None
        assert (span.scope.name, span.scope.version) == ("todo-app", "2.0")

    def test_attributes_links_and_start_time(self, tracer: Tracer) -> None:
        target = SpanContext(trace_id=1, span_id=2)
        span = tracer.start_span("op", attributes={"a": 1}, links=[Link(target)], start_time=42)
        assert span.attributes["a"] == 1
        assert span.links[0].context == target
        assert span.start_time == 42

    def test_deterministic_ids(self) -> None:
        provider = TracerProvider(Resource.create(), id_generator=FixedIdGenerator())
        span = provider.get_tracer("t").start_span("op")
        assert span.context.trace_id == 0x1001
        assert span.context.span_id == 2


class TestProcessorNotifications:
    def test_on_start_receives_parent_context(self) -> None:
        processor = TrackingProcessor()
        provider = TracerProvider()
        provider.add_span_processor(processor)
        tracer = provider.get_tracer("t")

        parent = tracer.start_span("parent")
        ctx = Context.empty().with_span(parent)
        child = tracer.start_span("child", ctx)

        assert processor.started[0] == (parent, None)
        assert processor.started[1] == (child, ctx)

    def test_on_start_failure_does_not_fail_caller(self) -> None:
        processor = TrackingProcessor(fail_on_start=True)
        provider = TracerProvider()
        provider.add_span_processor(processor)
        span = provider.get_tracer("t").start_span("op")
        span.end()
        assert processor.ended == [span]

    def test_every_processor_sees_every_span_in_order(self) -> None:
        first, second = TrackingProcessor(), TrackingProcessor()
        provider = TracerProvider()
        provider.add_span_processor(first)
        provider.add_span_processor(second)
        span = provider.get_tracer("t").start_span("op")
        span.end()
        assert first.ended == [span]
        assert second.ended == [span]

    def test_no_processors_is_fine(self) -> None:
        span = TracerProvider().get_tracer("t").start_span("op")
        span.end()
        assert span.ended


class TestTracerProvider:
    def test_get_tracer_is_cached_per_name_and_version(self, provider: TracerProvider) -> None:
        assert provider.get_tracer("a", "1") is provider.get_tracer("a", "1")
        assert provider.get_tracer("a", "1") is not provider.get_tracer("a", "2")

    def test_default_resource(self) -> None:
        assert TracerProvider().resource["service.name"] == "unknown_service"

    def test_shutdown_is_idempotent(self) -> None:
        processor = TrackingProcessor()
        provider = TracerProvider()
        provider.add_span_processor(processor)
        provider.shutdown()
        provider.shutdown()
        assert processor.shutdown_count == 1
        assert provider.is_shutdown

    def test_force_flush_delegates(self, provider: TracerProvider) -> None:
        assert provider.force_flush(1000) is True


class TestStartAsCurrentSpan:
    def test_nests_through_ambient_context(self, tracer: Tracer) -> None:
        with tracer.start_as_current_span("http.get.todos") as parent:
            assert get_current_span() is parent
            with tracer.start_as_current_span("todo.action.get_all") as child:
                assert child.context.parent_span_id == parent.context.span_id
            assert child.ended
        assert parent.ended
        assert get_current_span() is None

    def test_exception_marks_span_failed(self, tracer: Tracer, memory_exporter: InMemoryExporter) -> None:
        try:
            with tracer.start_as_current_span("todo.action.delete"):
                raise LookupError("no such todo")
        except LookupError:
            pass
        (span,) = memory_exporter.get_finished_spans()
        assert span.status.code == StatusCode.ERROR
        assert span.events[0].name == "exception"

    def test_end_on_exit_false(self, tracer: Tracer) -> None:
        with tracer.start_as_current_span("op", end_on_exit=False) as span:
            pass
        assert not span.ended
        span.end()


class TestSmokeSpan:
    def test_emits_initialization_span(self, tracer: Tracer, memory_exporter: InMemoryExporter) -> None:
        span = emit_smoke_span(tracer)
        assert span.ended
        assert memory_exporter.get_finished_spans() == [span]
        assert span.name == SMOKE_SPAN_NAME == "test.initialization"
        assert span.attributes["test.type"] == "initialization"
        assert isinstance(span.attributes["test.timestamp"], int)
        assert len(span.events) == 1
