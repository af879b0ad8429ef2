# tests/unit/trace/test_context.py
"""Tests for Context, SpanContext and the ambient context layer."""

import asyncio
import threading

import pytest

from spanline.contracts.enums import StatusCode
from spanline.trace.context import Context, SpanContext, attach, detach, get_current_span, use_span
from spanline.trace.span import Span


def _span(name: str = "op", span_id: int = 2) -> Span:
    return Span(name, SpanContext(trace_id=1, span_id=span_id))


class TestSpanContext:
    def test_root_has_no_parent(self) -> None:
        ctx = SpanContext(trace_id=1, span_id=2)
        assert ctx.is_root
        assert ctx.parent_span_id_hex is None

    def test_hex_properties(self) -> None:
        ctx = SpanContext(trace_id=1, span_id=2, parent_span_id=3)
        assert ctx.trace_id_hex == "0" * 31 + "1"
        assert ctx.span_id_hex == "0" * 15 + "2"
        assert ctx.parent_span_id_hex == "0" * 15 + "3"

    def test_zero_ids_are_invalid(self) -> None:
        assert not SpanContext(trace_id=0, span_id=1).is_valid
        assert not SpanContext(trace_id=1, span_id=0).is_valid
        assert SpanContext(trace_id=1, span_id=1).is_valid

    def test_is_immutable(self) -> None:
        ctx = SpanContext(trace_id=1, span_id=2)
        with pytest.raises(AttributeError):
            ctx.trace_id = 5  # type: ignore[misc]

    def test_value_equality(self) -> None:
        assert SpanContext(1, 2, 3) == SpanContext(1, 2, 3)


class TestContext:
    def test_empty_has_no_span(self) -> None:
        assert Context.empty().is_empty
        assert Context.empty().span_context is None

    def test_with_span_does_not_mutate_original(self) -> None:
        original = Context.empty()
        span = _span()
        derived = original.with_span(span)
        assert original.is_empty
        assert derived.span is span
        assert derived.span_context == span.context

    def test_active_defaults_to_empty(self) -> None:
        assert Context.active().is_empty
        assert get_current_span() is None


class TestAmbientLayer:
    def test_attach_and_detach(self) -> None:
        span = _span()
        token = attach(Context.empty().with_span(span))
        assert get_current_span() is span
        detach(token)
        assert get_current_span() is None

    def test_use_span_restores_previous(self) -> None:
        outer, inner = _span("outer", 2), _span("inner", 3)
        with use_span(outer):
            with use_span(inner):
                assert get_current_span() is inner
            assert get_current_span() is outer
        assert get_current_span() is None

    def test_use_span_end_on_exit_records_exception(self) -> None:
        span = _span()
        with pytest.raises(ValueError, match="boom"):
            with use_span(span, end_on_exit=True):
                raise ValueError("boom")
        assert span.ended
        assert span.status.code == StatusCode.ERROR
        assert [event.name for event in span.events] == ["exception"]

    def test_use_span_without_end_leaves_span_open(self) -> None:
        span = _span()
        with use_span(span):
            pass
        assert not span.ended

    def test_new_thread_starts_empty(self) -> None:
        """Threads do not inherit the ambient context unless it is copied."""
        seen: list[Span | None] = []
        with use_span(_span()):
            thread = threading.Thread(target=lambda: seen.append(get_current_span()))
            thread.start()
            thread.join()
        assert seen == [None]

    def test_asyncio_tasks_inherit_context(self) -> None:
        span = _span()

        async def child() -> Span | None:
            return get_current_span()

        async def parent() -> Span | None:
            with use_span(span):
                return await asyncio.create_task(child())

        assert asyncio.run(parent()) is span
