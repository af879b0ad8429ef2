# src/spanline/trace/context.py
"""Span identity and context propagation.

Two layers:

- Explicit (the core contract): a Context is an immutable value naming the
  active span. Callers pass it to Tracer.start_span() to create children.
  Nothing in the core looks up a hidden global.
- Ambient (convenience on top): attach()/detach()/use_span() keep a
  "current" Context in a contextvars.ContextVar, so it follows threads and
  asyncio tasks the way contextvars do. Context.active() reads it.

Example (explicit):
    >>> parent = tracer.start_span("http.get.todos", kind=SpanKind.SERVER)
    >>> ctx = Context.empty().with_span(parent)
    >>> child = tracer.start_span("todo.action.get_all", context=ctx)
    >>> child.context.trace_id == parent.context.trace_id
    True
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar, Token
from dataclasses import dataclass
from typing import TYPE_CHECKING

from spanline.trace.ids import INVALID_SPAN_ID, INVALID_TRACE_ID, format_span_id, format_trace_id

if TYPE_CHECKING:
    from spanline.trace.span import Span


@dataclass(frozen=True, slots=True)
class SpanContext:
    """Immutable identity of one span.

    Attributes:
        trace_id: 128-bit ID shared by every span of one operation tree
        span_id: 64-bit ID unique to this span
        parent_span_id: span_id of the parent, None for a root span
        sampled: Whether processors should export the span
    """

    trace_id: int
    span_id: int
    parent_span_id: int | None = None
    sampled: bool = True

    @property
    def is_valid(self) -> bool:
        return self.trace_id != INVALID_TRACE_ID and self.span_id != INVALID_SPAN_ID

    @property
    def is_root(self) -> bool:
        return self.parent_span_id is None

    @property
    def trace_id_hex(self) -> str:
        return format_trace_id(self.trace_id)

    @property
    def span_id_hex(self) -> str:
        return format_span_id(self.span_id)

    @property
    def parent_span_id_hex(self) -> str | None:
        if self.parent_span_id is None:
            return None
        return format_span_id(self.parent_span_id)


@dataclass(frozen=True, slots=True)
class Context:
    """Immutable snapshot naming the active span, if any.

    Deriving a new Context never mutates the original.
    """

    span: "Span | None" = None

    @classmethod
    def empty(cls) -> "Context":
        return EMPTY_CONTEXT

    @classmethod
    def active(cls) -> "Context":
        """Return the ambient current Context (empty when nothing is attached)."""
        return _CURRENT_CONTEXT.get()

    def with_span(self, span: "Span") -> "Context":
        """Return a new Context in which span is active."""
        return Context(span=span)

    @property
    def span_context(self) -> SpanContext | None:
        if self.span is None:
            return None
        return self.span.context

    @property
    def is_empty(self) -> bool:
        return self.span is None


EMPTY_CONTEXT = Context()

_CURRENT_CONTEXT: ContextVar[Context] = ContextVar("spanline_current_context", default=EMPTY_CONTEXT)


def attach(context: Context) -> Token[Context]:
    """Make context the ambient current Context. Returns a token for detach()."""
    return _CURRENT_CONTEXT.set(context)


def detach(token: Token[Context]) -> None:
    """Restore the ambient Context that was current before the matching attach()."""
    _CURRENT_CONTEXT.reset(token)


def get_current_span() -> "Span | None":
    """Return the span of the ambient current Context."""
    return _CURRENT_CONTEXT.get().span


@contextmanager
def use_span(span: "Span", *, end_on_exit: bool = False) -> Iterator["Span"]:
    """Make span the ambient current span for the duration of the block.

    Args:
        span: Span to activate
        end_on_exit: End the span when the block exits. An escaping exception
            is recorded on the span first, then re-raised.
    """
    token = attach(Context.active().with_span(span))
    try:
        yield span
    except BaseException as exc:
        if end_on_exit:
            span.record_exception(exc)
        raise
    finally:
        detach(token)
        if end_on_exit:
            span.end()
