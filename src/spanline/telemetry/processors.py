# src/spanline/telemetry/processors.py
"""Span processors: what happens to a span when it starts and ends.

Three processors share SpanProcessorProtocol:

- SimpleSpanProcessor: exports each span synchronously inside on_end().
  Low volume only, because the ending call waits for the exporter.
- BatchSpanProcessor: queues ended spans in a bounded buffer and exports
  them in batches from a background worker thread. on_end() is O(1) and
  never blocks on the exporter.
- MultiSpanProcessor: fans hooks out to several processors in order.

Design principles:
- Telemetry never affects the instrumented application: hooks never raise,
  export failures are logged and counted, the batch is discarded.
- Single export attempt per batch, no retry and no re-enqueue.
- Bounded memory: the queue never exceeds max_queue_size.
"""

import threading
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import structlog

from spanline.contracts.config.defaults import INTERNAL_DEFAULTS
from spanline.contracts.config.runtime import RuntimeBatchConfig
from spanline.contracts.enums import ExportResult
from spanline.telemetry.buffer import BoundedBuffer
from spanline.telemetry.deadline import CallOutcome, call_with_deadline
from spanline.telemetry.protocols import ExporterProtocol, SpanProcessorProtocol

if TYPE_CHECKING:
    from spanline.trace.context import Context
    from spanline.trace.span import Span

logger = structlog.get_logger(__name__)


def _exporter_name(exporter: ExporterProtocol) -> str:
    try:
        return str(exporter.name)
    except Exception:
        return type(exporter).__name__


class SimpleSpanProcessor:
    """Export every ended span immediately, one span per export() call.

    on_end() waits for the exporter. Any exporter failure (FAILURE result
    or exception) is logged and swallowed.

    Thread Safety:
        on_end() may be called from many threads; export() calls are
        serialized by an internal lock so the exporter never sees
        concurrent calls from this processor.
    """

    def __init__(self, exporter: ExporterProtocol) -> None:
        self._exporter = exporter
        self._export_lock = threading.Lock()
        self._shutdown = False
        self._spans_exported = 0
        self._spans_dropped = 0
        self._export_failures = 0

    def on_start(self, span: "Span", parent_context: "Context | None" = None) -> None:
        pass

    def on_end(self, span: "Span") -> None:
        if not span.context.sampled:
            return
        with self._export_lock:
            if self._shutdown:
                self._spans_dropped += 1
                return
            try:
                result = self._exporter.export((span,))
            except Exception as e:
                self._record_failure(span, error=str(e))
                return
            if result == ExportResult.SUCCESS:
                self._spans_exported += 1
            else:
                self._record_failure(span, error=f"exporter returned {result!r}")

    def _record_failure(self, span: "Span", *, error: str) -> None:
        # Called with _export_lock held
        self._export_failures += 1
        self._spans_dropped += 1
        logger.warning(
            "Span export failed",
            exporter=_exporter_name(self._exporter),
            span=span.name,
            error=error,
        )

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Nothing is buffered here, so there is nothing to flush."""
        return True

    def shutdown(self) -> None:
        """Stop exporting and shut the exporter down. Idempotent."""
        with self._export_lock:
            if self._shutdown:
                return
            self._shutdown = True
        try:
            self._exporter.shutdown()
        except Exception as e:
            logger.warning("Exporter shutdown failed", exporter=_exporter_name(self._exporter), error=str(e))

    @property
    def health_metrics(self) -> dict[str, Any]:
        with self._export_lock:
            return {
                "spans_exported": self._spans_exported,
                "spans_dropped": self._spans_dropped,
                "export_failures": self._export_failures,
            }


class BatchSpanProcessor:
    """Queue ended spans and export them in batches from a worker thread.

    Flush triggers (whichever comes first):
    - size: queue length reaches max_export_batch_size
    - timer: scheduled_delay_millis elapsed since the previous flush
    - force_flush() / shutdown()

    A size or timer flush exports at most max_export_batch_size spans. Each
    export() call runs under an export_timeout_millis watchdog; on timeout
    or failure the batch is dropped and counted, never re-enqueued.
    A timed-out call is abandoned but still running; the next batch first
    spends its own export timeout waiting for it, and is dropped as
    exporter_busy if it is still stuck. The exporter never sees two
    concurrent export() calls from one processor.

    Only the worker thread exports, so at most one flush is in flight.
    Triggers that fire during a flush coalesce: the worker re-checks the
    queue as soon as the flush returns.

    Overflow: when the queue is full the configured OverflowPolicy decides
    which span is dropped (DROP_NEWEST by default). on_end() never blocks.

    Thread Safety:
        on_end() is called from any thread. The buffer and the shutdown
        flag are guarded by _condition. Export counters are written only by
        the worker thread; health_metrics reads are approximately consistent.

    Example:
        >>> processor = BatchSpanProcessor(exporter, RuntimeBatchConfig(max_export_batch_size=10,
        ...                                                             scheduled_delay_millis=1000))
        >>> provider.add_span_processor(processor)
        >>> ...
        >>> processor.shutdown()
    """

    _WORKER_READY_TIMEOUT = float(INTERNAL_DEFAULTS["processor"]["worker_ready_timeout"])
    # Extra time granted to the worker on top of the drain deadline before
    # shutdown() stops waiting for it
    _JOIN_GRACE_SECONDS = 1.0

    def __init__(self, exporter: ExporterProtocol, config: RuntimeBatchConfig | None = None) -> None:
        """Initialize the processor and start its worker thread.

        Args:
            exporter: Sink for batches of ended spans
            config: Batching options (defaults from BATCH_DEFAULTS)
        """
        self._exporter = exporter
        self._config = config if config is not None else RuntimeBatchConfig.default()
        self._buffer: BoundedBuffer[Span] = BoundedBuffer(
            max_size=self._config.max_queue_size,
            policy=self._config.overflow_policy,
        )

        # Guarded by _condition
        self._condition = threading.Condition(threading.Lock())
        self._shutdown = False
        self._drain_deadline: float | None = None
        self._flush_requests: list[threading.Event] = []
        self._spans_queued = 0
        self._dropped_after_shutdown = 0

        # Written by the worker thread only
        self._spans_exported = 0
        self._dropped_on_export = 0
        self._dropped_on_shutdown = 0
        self._export_failures = 0
        self._export_timeouts = 0
        self._dropped_exporter_busy = 0
        # Timed-out export call that has not returned yet
        self._stalled_call: CallOutcome | None = None
        self._stalled_since = 0.0
        self._dropped_while_stalled = 0
        self._batches_exported = 0
        self._size_flushes = 0
        self._timer_flushes = 0
        self._forced_flushes = 0

        self._worker_ready = threading.Event()
        # Daemon: a wedged exporter must never keep the host process alive
        self._worker = threading.Thread(
            target=self._worker_loop,
            name="spanline-batch-export",
            daemon=True,
        )
        self._worker.start()
        self._worker_ready.wait(timeout=self._WORKER_READY_TIMEOUT)

    @property
    def config(self) -> RuntimeBatchConfig:
        return self._config

    # ------------------------------------------------------------------
    # Hot path
    # ------------------------------------------------------------------

    def on_start(self, span: "Span", parent_context: "Context | None" = None) -> None:
        pass

    def on_end(self, span: "Span") -> None:
        """Enqueue an ended span. O(1), never blocks on export."""
        if not span.context.sampled:
            return
        with self._condition:
            if self._shutdown:
                self._dropped_after_shutdown += 1
                return
            self._spans_queued += 1
            self._buffer.append(span)
            if len(self._buffer) >= self._config.max_export_batch_size:
                self._condition.notify()

    # ------------------------------------------------------------------
    # Worker
    # ------------------------------------------------------------------

    def _worker_loop(self) -> None:
        """Background thread: wait for a trigger, export, repeat until shutdown."""
        self._worker_ready.set()
        batch_size = self._config.max_export_batch_size
        delay = self._config.scheduled_delay_seconds
        last_flush = time.monotonic()

        while True:
            with self._condition:
                while not self._shutdown and not self._flush_requests and len(self._buffer) < batch_size:
                    remaining = delay - (time.monotonic() - last_flush)
                    if remaining <= 0:
                        break
                    self._condition.wait(timeout=remaining)

                if self._shutdown:
                    break

                waiters = self._flush_requests
                self._flush_requests = []
                if waiters:
                    trigger = "force"
                    batches = self._pop_all_locked()
                elif len(self._buffer) >= batch_size:
                    trigger = "size"
                    batches = [self._buffer.pop_batch(batch_size)]
                else:
                    trigger = "timer"
                    batch = self._buffer.pop_batch(batch_size)
                    batches = [batch] if batch else []

            try:
                if batches or waiters:
                    self._count_trigger(trigger)
                for batch in batches:
                    self._export_batch(batch, trigger=trigger, timeout_seconds=self._config.export_timeout_seconds)
            except Exception as e:
                # Log but don't die - telemetry must not stop exporting for good
                logger.error("Batch export loop failed unexpectedly", error=str(e))
            finally:
                for waiter in waiters:
                    waiter.set()
                last_flush = time.monotonic()

        self._drain_on_shutdown()

    def _pop_all_locked(self) -> list[list["Span"]]:
        """Split what is queued right now into batches. Caller holds _condition."""
        batches = []
        while len(self._buffer):
            batches.append(self._buffer.pop_batch(self._config.max_export_batch_size))
        return batches

    def _count_trigger(self, trigger: str) -> None:
        if trigger == "size":
            self._size_flushes += 1
        elif trigger == "timer":
            self._timer_flushes += 1
        else:
            self._forced_flushes += 1

    def _drain_on_shutdown(self) -> None:
        """Final flush: export what is left until the drain deadline, drop the rest."""
        with self._condition:
            batches = self._pop_all_locked()
            waiters = self._flush_requests
            self._flush_requests = []
            deadline = self._drain_deadline if self._drain_deadline is not None else time.monotonic()

        try:
            for index, batch in enumerate(batches):
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    leftover = sum(len(b) for b in batches[index:])
                    self._dropped_on_shutdown += leftover
                    logger.error(
                        "Shutdown drain deadline exceeded - spans dropped",
                        spans_dropped=leftover,
                        export_timeout_millis=self._config.export_timeout_millis,
                    )
                    break
                self._export_batch(batch, trigger="shutdown", timeout_seconds=remaining)
        except Exception as e:
            logger.error("Shutdown drain failed unexpectedly", error=str(e))
        finally:
            for waiter in waiters:
                waiter.set()

    def _export_batch(self, batch: Sequence["Span"], *, trigger: str, timeout_seconds: float) -> None:
        """Export one batch under a watchdog. Runs on the worker thread only."""
        if not batch:
            return
        deadline = time.monotonic() + timeout_seconds
        if not self._await_stalled_call(timeout_seconds):
            self._dropped_exporter_busy += len(batch)
            self._dropped_while_stalled += len(batch)
            logger.debug("Exporter busy - batch dropped", span_count=len(batch), trigger=trigger)
            return

        exporter = self._exporter
        outcome = call_with_deadline(
            lambda: exporter.export(batch),
            deadline - time.monotonic(),
            thread_name="spanline-export-call",
        )
        if outcome.timed_out:
            self._export_timeouts += 1
            self._stalled_call = outcome
            self._stalled_since = time.monotonic()
            self._record_dropped_batch(len(batch), trigger=trigger, error="export timed out")
        elif outcome.error is not None:
            self._export_failures += 1
            self._record_dropped_batch(len(batch), trigger=trigger, error=str(outcome.error))
        elif outcome.value != ExportResult.SUCCESS:
            self._export_failures += 1
            self._record_dropped_batch(len(batch), trigger=trigger, error=f"exporter returned {outcome.value!r}")
        else:
            self._spans_exported += len(batch)
            self._batches_exported += 1
            logger.debug("Span batch exported", span_count=len(batch), trigger=trigger)

    def _await_stalled_call(self, timeout_seconds: float) -> bool:
        """Wait for a previously abandoned export() to return.

        Returns:
            True if no export call is outstanding (the exporter is free).
        """
        stalled = self._stalled_call
        if stalled is None:
            return True
        if not stalled.wait(timeout_seconds):
            if self._dropped_while_stalled == 0:
                logger.warning(
                    "Abandoned export still running - dropping batches until it returns",
                    exporter=_exporter_name(self._exporter),
                )
            return False

        logger.info(
            "Abandoned export returned - exporting resumed",
            exporter=_exporter_name(self._exporter),
            stalled_seconds=round(time.monotonic() - self._stalled_since, 3),
            spans_dropped_while_busy=self._dropped_while_stalled,
        )
        self._stalled_call = None
        self._dropped_while_stalled = 0
        return True

    def _record_dropped_batch(self, count: int, *, trigger: str, error: str) -> None:
        self._dropped_on_export += count
        logger.warning(
            "Span batch export failed - batch dropped",
            exporter=_exporter_name(self._exporter),
            span_count=count,
            trigger=trigger,
            error=error,
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Ask the worker to export everything queued now and wait for it.

        Returns:
            True if the flush completed within timeout_millis, False otherwise.
        """
        done = threading.Event()
        with self._condition:
            if self._shutdown:
                return True
            self._flush_requests.append(done)
            self._condition.notify_all()
        return done.wait(timeout=timeout_millis / 1000.0)

    def shutdown(self) -> None:
        """Stop the timer, drain once, shut the exporter down.

        The drain is bounded by export_timeout_millis; whatever does not
        make it by then is dropped. Spans ending after shutdown() are
        counted and dropped. Idempotent.
        """
        with self._condition:
            if self._shutdown:
                return
            self._shutdown = True
            self._drain_deadline = time.monotonic() + self._config.export_timeout_seconds
            self._condition.notify_all()

        self._worker.join(timeout=self._config.export_timeout_seconds + self._JOIN_GRACE_SECONDS)
        if self._worker.is_alive():
            logger.error("Batch export worker did not exit within the drain deadline")

        try:
            self._exporter.shutdown()
        except Exception as e:
            logger.warning("Exporter shutdown failed", exporter=_exporter_name(self._exporter), error=str(e))

        logger.info("Batch span processor shut down", **self.health_metrics)

    @property
    def health_metrics(self) -> dict[str, Any]:
        """Snapshot of processor health.

        - spans_queued: Spans accepted by on_end() before shutdown
        - spans_exported: Spans in batches the exporter accepted
        - spans_dropped: Total dropped for any reason (sum of dropped_by_reason)
        - dropped_by_reason: overflow / export / shutdown_drain /
          exporter_busy / after_shutdown
        - export_failures / export_timeouts: Failed export attempts
        - batches_exported: Successful export calls
        - flushes: Flush count per trigger (size / timer / forced)
        - queue_depth / queue_maxsize: Current and maximum queue length
        """
        with self._condition:
            overflow = self._buffer.dropped_count
            after_shutdown = self._dropped_after_shutdown
            spans_queued = self._spans_queued
            queue_depth = len(self._buffer)
        dropped_by_reason = {
            "overflow": overflow,
            "export": self._dropped_on_export,
            "shutdown_drain": self._dropped_on_shutdown,
            "exporter_busy": self._dropped_exporter_busy,
            "after_shutdown": after_shutdown,
        }
        return {
            "spans_queued": spans_queued,
            "spans_exported": self._spans_exported,
            "spans_dropped": sum(dropped_by_reason.values()),
            "dropped_by_reason": dropped_by_reason,
            "export_failures": self._export_failures,
            "export_timeouts": self._export_timeouts,
            "batches_exported": self._batches_exported,
            "flushes": {
                "size": self._size_flushes,
                "timer": self._timer_flushes,
                "forced": self._forced_flushes,
            },
            "queue_depth": queue_depth,
            "queue_maxsize": self._buffer.max_size,
        }

    @property
    def dropped_spans(self) -> int:
        """Total spans dropped for any reason."""
        return int(self.health_metrics["spans_dropped"])

    @property
    def queue_depth(self) -> int:
        with self._condition:
            return len(self._buffer)


class MultiSpanProcessor:
    """Forward every hook to several processors, in registration order.

    One processor failing never prevents the others from seeing the span.
    """

    def __init__(self, processors: Sequence[SpanProcessorProtocol] = ()) -> None:
        # Tuple so iteration in on_start/on_end needs no lock
        self._processors: tuple[SpanProcessorProtocol, ...] = tuple(processors)
        self._lock = threading.Lock()

    @property
    def processors(self) -> tuple[SpanProcessorProtocol, ...]:
        return self._processors

    def add_span_processor(self, processor: SpanProcessorProtocol) -> None:
        with self._lock:
            self._processors += (processor,)

    def on_start(self, span: "Span", parent_context: "Context | None" = None) -> None:
        for processor in self._processors:
            try:
                processor.on_start(span, parent_context)
            except Exception as e:
                logger.warning("Span processor on_start failed", processor=type(processor).__name__, error=str(e))

    def on_end(self, span: "Span") -> None:
        for processor in self._processors:
            try:
                processor.on_end(span)
            except Exception as e:
                logger.warning("Span processor on_end failed", processor=type(processor).__name__, error=str(e))

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        """Flush processors in order within one overall deadline.

        Returns:
            True if every processor flushed in time, False otherwise (later
            processors are skipped once the deadline has passed).
        """
        deadline = time.monotonic() + timeout_millis / 1000.0
        for processor in self._processors:
            remaining_ms = int((deadline - time.monotonic()) * 1000)
            if remaining_ms <= 0:
                return False
            try:
                if not processor.force_flush(remaining_ms):
                    return False
            except Exception as e:
                logger.warning("Span processor force_flush failed", processor=type(processor).__name__, error=str(e))
                return False
        return True

    def shutdown(self) -> None:
        for processor in self._processors:
            try:
                processor.shutdown()
            except Exception as e:
                logger.warning("Span processor shutdown failed", processor=type(processor).__name__, error=str(e))
