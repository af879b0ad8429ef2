# src/spanline/telemetry/deadline.py
"""Watchdog for calls that may hang.

Exporter transports can block far longer than any export deadline. Python
cannot cancel a running call, so the call runs on its own daemon thread and
the caller stops waiting at the deadline. An abandoned call keeps running
in the background until its transport gives up; its result is discarded.
Callers that must not overlap calls keep the timed-out outcome and wait()
on it before starting the next one.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any


def _finished_event() -> threading.Event:
    event = threading.Event()
    event.set()
    return event


@dataclass(frozen=True, slots=True)
class CallOutcome:
    """Result of call_with_deadline().

    Attributes:
        completed: False if the deadline passed before the call returned
        value: Return value (None unless completed without error)
        error: Exception raised by the call, if any
        finished: Set once the underlying call has returned, including
            calls the caller stopped waiting for
    """

    completed: bool
    value: Any = None
    error: Exception | None = None
    finished: threading.Event = field(default_factory=_finished_event, repr=False, compare=False)

    @property
    def timed_out(self) -> bool:
        return not self.completed

    @property
    def still_running(self) -> bool:
        """True while an abandoned call has not returned yet."""
        return not self.finished.is_set()

    def wait(self, timeout_seconds: float) -> bool:
        """Wait for the underlying call to return. True if it has."""
        return self.finished.wait(timeout=max(timeout_seconds, 0.0))


def call_with_deadline(
    fn: Callable[[], Any],
    timeout_seconds: float,
    *,
    thread_name: str = "spanline-deadline",
) -> CallOutcome:
    """Run fn on a daemon thread and wait at most timeout_seconds for it.

    Exceptions raised by fn are captured in the outcome, never re-raised.
    """
    result: dict[str, Any] = {}
    done = threading.Event()

    def _runner() -> None:
        try:
            result["value"] = fn()
        except Exception as e:
            result["error"] = e
        finally:
            done.set()

    worker = threading.Thread(target=_runner, name=thread_name, daemon=True)
    worker.start()
    if not done.wait(timeout=max(timeout_seconds, 0.0)):
        return CallOutcome(completed=False, finished=done)
    return CallOutcome(completed=True, value=result.get("value"), error=result.get("error"), finished=done)
