# tests/unit/telemetry/test_deadline.py
"""Tests for call_with_deadline (export watchdog)."""

import threading
import time

from spanline.telemetry.deadline import call_with_deadline


class TestCallWithDeadline:
    def test_returns_value(self) -> None:
        outcome = call_with_deadline(lambda: 42, 1.0)
        assert outcome.completed
        assert not outcome.timed_out
        assert outcome.value == 42
        assert outcome.error is None

    def test_captures_exception(self) -> None:
        def boom() -> None:
            raise ConnectionError("collector unreachable")

        outcome = call_with_deadline(boom, 1.0)
        assert outcome.completed
        assert isinstance(outcome.error, ConnectionError)

    def test_abandons_hung_call(self) -> None:
        release = threading.Event()
        started = time.monotonic()
        outcome = call_with_deadline(lambda: release.wait(10), 0.05)
        elapsed = time.monotonic() - started
        release.set()
        assert outcome.timed_out
        assert outcome.value is None
        assert elapsed < 2.0

    def test_runs_on_named_daemon_thread(self) -> None:
        seen: list[threading.Thread] = []
        call_with_deadline(lambda: seen.append(threading.current_thread()), 1.0, thread_name="watchdog-test")
        assert seen[0].name == "watchdog-test"
        assert seen[0].daemon

    def test_negative_timeout_does_not_wait(self) -> None:
        release = threading.Event()
        outcome = call_with_deadline(lambda: release.wait(10), -1.0)
        release.set()
        assert outcome.timed_out

    def test_abandoned_call_can_be_awaited(self) -> None:
        release = threading.Event()
        outcome = call_with_deadline(lambda: release.wait(10), 0.02)
        assert outcome.still_running
        assert outcome.wait(0.01) is False

        release.set()
        assert outcome.wait(5.0) is True
        assert not outcome.still_running

    def test_completed_call_is_not_running(self) -> None:
        outcome = call_with_deadline(lambda: None, 1.0)
        assert not outcome.still_running
        assert outcome.wait(0) is True
