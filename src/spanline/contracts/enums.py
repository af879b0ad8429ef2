# src/spanline/contracts/enums.py
"""All status codes, modes, and kinds used across subsystem boundaries.

Values are lowercase strings so they round-trip through YAML settings and
JSON console output without translation.
"""

from enum import StrEnum


class SpanKind(StrEnum):
    """Role of a span in an operation tree.

    Metadata only: the kind never changes how a span is created, ended or
    exported.
    """

    INTERNAL = "internal"
    SERVER = "server"
    CLIENT = "client"
    PRODUCER = "producer"
    CONSUMER = "consumer"


class StatusCode(StrEnum):
    """Outcome of the operation a span describes."""

    UNSET = "unset"
    OK = "ok"
    ERROR = "error"


class ExportResult(StrEnum):
    """Result of a single exporter.export() attempt."""

    SUCCESS = "success"
    FAILURE = "failure"


class OverflowPolicy(StrEnum):
    """What the batching processor does when its queue is full.

    Values:
        DROP_NEWEST: Reject the incoming span, keep what is queued (default)
        DROP_OLDEST: Evict the oldest queued span to make room
    """

    DROP_NEWEST = "drop_newest"
    DROP_OLDEST = "drop_oldest"


class ProcessorType(StrEnum):
    """Span processor variants that can be declared in settings."""

    SIMPLE = "simple"
    BATCH = "batch"


class InstrumentKind(StrEnum):
    """Kind of a metric instrument. Instruments are identified by name + kind."""

    COUNTER = "counter"
    UP_DOWN_COUNTER = "up_down_counter"
    HISTOGRAM = "histogram"
