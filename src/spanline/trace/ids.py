# src/spanline/trace/ids.py
"""Trace and span identifier generation.

IDs are random integers: 128-bit trace IDs, 64-bit span IDs. Zero is
reserved as the invalid value and never generated.
"""

import random
from typing import Protocol, runtime_checkable

INVALID_TRACE_ID = 0
INVALID_SPAN_ID = 0


@runtime_checkable
class IdGenerator(Protocol):
    """Source of trace and span identifiers."""

    def generate_trace_id(self) -> int: ...

    def generate_span_id(self) -> int: ...


class RandomIdGenerator:
    """IdGenerator backed by random.getrandbits.

    random.getrandbits is safe to call from several threads. IDs only need to
    be unique within a process, not unpredictable.
    """

    def generate_trace_id(self) -> int:
        trace_id = random.getrandbits(128)
        while trace_id == INVALID_TRACE_ID:
            trace_id = random.getrandbits(128)
        return trace_id

    def generate_span_id(self) -> int:
        span_id = random.getrandbits(64)
        while span_id == INVALID_SPAN_ID:
            span_id = random.getrandbits(64)
        return span_id


def format_trace_id(trace_id: int) -> str:
    """Render a trace ID as 32 lowercase hex digits."""
    return format(trace_id, "032x")


def format_span_id(span_id: int) -> str:
    """Render a span ID as 16 lowercase hex digits."""
    return format(span_id, "016x")
