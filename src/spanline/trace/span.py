# src/spanline/trace/span.py
"""Span: one timed operation, mutable until ended.

State machine:
    ACTIVE (on creation) -> ENDED (terminal, set by end())

Every mutator is a silent no-op once the span has ended. Mutators never
raise: a bad attribute value is logged at debug level and dropped.

Thread Safety:
    Fanned-out child operations may hold a reference to an ancestor span
    and write to it concurrently. One lock per span guards attributes,
    events, status and the ended flag, so:
    - attributes resolve last-write-wins in lock acquisition order
    - events are append-only and carry a per-span sequence number, giving a
      total order even when timestamps are equal
    - end() transitions exactly once, and the processor's on_end hook is
      called exactly once, outside the lock
"""

from __future__ import annotations

import threading
import time
import traceback
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from types import MappingProxyType, TracebackType
from typing import TYPE_CHECKING, Any

import structlog

from spanline.contracts.enums import SpanKind, StatusCode
from spanline.trace.context import SpanContext
from spanline.trace.resource import Resource

if TYPE_CHECKING:
    from spanline.telemetry.protocols import SpanProcessorProtocol

logger = structlog.get_logger(__name__)

_PRIMITIVE_TYPES = (str, bool, int, float)

EXCEPTION_EVENT_NAME = "exception"
EXCEPTION_TYPE = "exception.type"
EXCEPTION_MESSAGE = "exception.message"
EXCEPTION_STACKTRACE = "exception.stacktrace"


def _clean_attribute_value(value: Any) -> Any | None:
    """Normalize an attribute value, or return None if it is not allowed.

    Allowed: str, bool, int, float, and homogeneous sequences of those
    (stored as tuples so they cannot be mutated after the fact).
    """
    if isinstance(value, _PRIMITIVE_TYPES):
        return value
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
        items = tuple(value)
        if not items:
            return items
        first_type = type(items[0])
        if first_type not in _PRIMITIVE_TYPES:
            return None
        if any(type(item) is not first_type for item in items):
            return None
        return items
    return None


def _clean_attributes(attributes: Mapping[str, Any] | None) -> dict[str, Any]:
    """Keep the valid entries of an attribute mapping, logging the rest."""
    cleaned: dict[str, Any] = {}
    if not attributes:
        return cleaned
    for key, value in attributes.items():
        if not isinstance(key, str) or not key:
            logger.debug("invalid_attribute_key", key=repr(key))
            continue
        clean = _clean_attribute_value(value)
        if clean is None:
            logger.debug("invalid_attribute_value", key=key, value_type=type(value).__name__)
            continue
        cleaned[key] = clean
    return cleaned


@dataclass(frozen=True, slots=True)
class InstrumentationScope:
    """Name and version of the library that created a span (Tracer identity)."""

    name: str
    version: str | None = None


@dataclass(frozen=True, slots=True)
class Status:
    code: StatusCode = StatusCode.UNSET
    description: str | None = None


@dataclass(frozen=True, slots=True)
class Event:
    """A timestamped annotation on a span.

    Attributes:
        name: Event name
        timestamp: Nanoseconds since the epoch
        attributes: Read-only event attributes
        sequence: Position in the owning span's event log (0-based)
    """

    name: str
    timestamp: int
    attributes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    sequence: int = 0


@dataclass(frozen=True, slots=True)
class Link:
    """Reference from a span to another span that is not its parent."""

    context: SpanContext
    attributes: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))


class Span:
    """One timed operation node.

    Spans are created by Tracer.start_span(), never directly by application
    code. The owning processor is notified on start by the tracer and on end
    by the span itself.

    Example:
        >>> span = tracer.start_span("elasticsearch.add_todo", kind=SpanKind.CLIENT)
        >>> span.set_attribute("db.operation", "index")
        >>> span.add_event("Index created successfully")
        >>> span.set_status(StatusCode.OK)
        >>> span.end()
    """

    def __init__(
        self,
        name: str,
        context: SpanContext,
        *,
        kind: SpanKind = SpanKind.INTERNAL,
        resource: Resource | None = None,
        scope: InstrumentationScope | None = None,
        processor: SpanProcessorProtocol | None = None,
        attributes: Mapping[str, Any] | None = None,
        links: Sequence[Link] = (),
        start_time: int | None = None,
    ) -> None:
        self._name = name
        self._context = context
        self._kind = kind
        self._resource = resource if resource is not None else Resource.empty()
        self._scope = scope
        self._processor = processor
        self._links = tuple(links)
        self._start_time = start_time if start_time is not None else time.time_ns()
        self._end_time: int | None = None
        self._lock = threading.Lock()
        self._attributes: dict[str, Any] = _clean_attributes(attributes)
        self._events: list[Event] = []
        self._status = Status()
        self._ended = False

    # ------------------------------------------------------------------
    # Read access
    # ------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self._name

    @property
    def context(self) -> SpanContext:
        return self._context

    @property
    def kind(self) -> SpanKind:
        return self._kind

    @property
    def resource(self) -> Resource:
        return self._resource

    @property
    def scope(self) -> InstrumentationScope | None:
        return self._scope

    @property
    def links(self) -> tuple[Link, ...]:
        return self._links

    @property
    def start_time(self) -> int:
        return self._start_time

    @property
    def end_time(self) -> int | None:
        return self._end_time

    @property
    def ended(self) -> bool:
        return self._ended

    @property
    def attributes(self) -> Mapping[str, Any]:
        """Read-only snapshot of the current attributes."""
        with self._lock:
            return MappingProxyType(dict(self._attributes))

    @property
    def events(self) -> tuple[Event, ...]:
        with self._lock:
            return tuple(self._events)

    @property
    def status(self) -> Status:
        return self._status

    @property
    def duration_ns(self) -> int | None:
        if self._end_time is None:
            return None
        return self._end_time - self._start_time

    @property
    def duration_ms(self) -> float | None:
        duration = self.duration_ns
        if duration is None:
            return None
        return duration / 1_000_000

    def is_recording(self) -> bool:
        """True until the span has ended."""
        return not self._ended

    # ------------------------------------------------------------------
    # Mutation (ignored after end)
    # ------------------------------------------------------------------

    def set_attribute(self, key: str, value: Any) -> None:
        """Set one attribute. A later write to the same key wins."""
        self.set_attributes({key: value})

    def set_attributes(self, attributes: Mapping[str, Any]) -> None:
        """Set several attributes in one locked step."""
        cleaned = _clean_attributes(attributes)
        with self._lock:
            if self._ended:
                self._log_ended("set_attributes")
                return
            self._attributes.update(cleaned)

    def add_event(
        self,
        name: str,
        attributes: Mapping[str, Any] | None = None,
        timestamp: int | None = None,
    ) -> None:
        """Append an event to the span's event log."""
        cleaned = MappingProxyType(_clean_attributes(attributes))
        with self._lock:
            if self._ended:
                self._log_ended("add_event")
                return
            self._events.append(
                Event(
                    name=name,
                    timestamp=timestamp if timestamp is not None else time.time_ns(),
                    attributes=cleaned,
                    sequence=len(self._events),
                )
            )

    def record_exception(
        self,
        exception: BaseException,
        attributes: Mapping[str, Any] | None = None,
        timestamp: int | None = None,
    ) -> None:
        """Record an exception as one "exception" event and mark the span as failed.

        Policy: the span status is set to ERROR with str(exception) as the
        description. A later set_status() call still overrides it.
        """
        stacktrace = "".join(traceback.format_exception(type(exception), exception, exception.__traceback__))
        module = type(exception).__module__
        qualname = type(exception).__qualname__
        exception_type = f"{module}.{qualname}" if module and module != "builtins" else qualname
        event_attributes: dict[str, Any] = {
            EXCEPTION_TYPE: exception_type,
            EXCEPTION_MESSAGE: str(exception),
            EXCEPTION_STACKTRACE: stacktrace,
        }
        if attributes:
            event_attributes.update(attributes)
        cleaned = MappingProxyType(_clean_attributes(event_attributes))
        with self._lock:
            if self._ended:
                self._log_ended("record_exception")
                return
            self._events.append(
                Event(
                    name=EXCEPTION_EVENT_NAME,
                    timestamp=timestamp if timestamp is not None else time.time_ns(),
                    attributes=cleaned,
                    sequence=len(self._events),
                )
            )
            self._status = Status(StatusCode.ERROR, str(exception))

    def set_status(self, code: StatusCode, description: str | None = None) -> None:
        """Set the span status. The last call before end() wins."""
        with self._lock:
            if self._ended:
                self._log_ended("set_status")
                return
            self._status = Status(code, description)

    def end(self, end_time: int | None = None) -> None:
        """End the span and hand it to the processor.

        Only the first call has any effect.

        Args:
            end_time: Nanoseconds since the epoch (default: now)
        """
        with self._lock:
            if self._ended:
                self._log_ended("end")
                return
            self._end_time = end_time if end_time is not None else time.time_ns()
            self._ended = True

        if self._processor is None:
            return
        try:
            self._processor.on_end(self)
        except Exception as e:
            # Telemetry must never surface into the caller
            logger.error("span_processor_on_end_failed", span=self._name, error=str(e))

    def _log_ended(self, operation: str) -> None:
        logger.debug("span_already_ended", span=self._name, operation=operation)

    # ------------------------------------------------------------------
    # Context manager
    # ------------------------------------------------------------------

    def __enter__(self) -> Span:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        if exc_value is not None:
            self.record_exception(exc_value)
        self.end()

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        """Export as a JSON-serializable dict."""
        context = self._context
        data: dict[str, Any] = {
            "name": self._name,
            "kind": self._kind.value,
            "trace_id": context.trace_id_hex,
            "span_id": context.span_id_hex,
            "parent_span_id": context.parent_span_id_hex,
            "start_time": self._start_time,
            "end_time": self._end_time,
            "duration_ms": self.duration_ms,
            "status": {"code": self._status.code.value, "description": self._status.description},
            "attributes": {k: list(v) if isinstance(v, tuple) else v for k, v in self.attributes.items()},
            "events": [
                {"name": event.name, "timestamp": event.timestamp, "attributes": dict(event.attributes)}
                for event in self.events
            ],
            "links": [
                {"trace_id": link.context.trace_id_hex, "span_id": link.context.span_id_hex, "attributes": dict(link.attributes)}
                for link in self._links
            ],
            "resource": dict(self._resource),
        }
        if self._scope is not None:
            data["scope"] = {"name": self._scope.name, "version": self._scope.version}
        return data

    def __repr__(self) -> str:
        return (
            f"Span(name={self._name!r}, trace_id={self._context.trace_id_hex}, "
            f"span_id={self._context.span_id_hex}, ended={self._ended})"
        )
