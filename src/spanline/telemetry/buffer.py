# src/spanline/telemetry/buffer.py
"""Bounded buffer for span batching.

Provides the queue behind BatchSpanProcessor: a FIFO of fixed capacity
with an explicit overflow policy.

Key design decisions:
- deque for O(1) append and popleft
- Capacity checked BEFORE append so overflow counting is exact
- DROP_NEWEST rejects the incoming item; DROP_OLDEST evicts the head
- Aggregate logging: log every 100 drops to prevent Warning Fatigue
"""

from collections import deque
from typing import Generic, TypeVar

import structlog

from spanline.contracts.config.defaults import INTERNAL_DEFAULTS
from spanline.contracts.enums import OverflowPolicy

logger = structlog.get_logger(__name__)

T = TypeVar("T")


class BoundedBuffer(Generic[T]):
    """FIFO that never grows past max_size.

    Thread Safety:
        NOT thread-safe. External synchronization required if used from
        multiple threads. BatchSpanProcessor serializes every access under
        its condition lock.

    Attributes:
        dropped_count: Total number of items dropped due to overflow.

    Example:
        buffer = BoundedBuffer(max_size=2048)
        buffer.append(span)
        batch = buffer.pop_batch(max_count=512)
    """

    _LOG_INTERVAL = int(INTERNAL_DEFAULTS["processor"]["log_interval"])

    def __init__(self, max_size: int, policy: OverflowPolicy = OverflowPolicy.DROP_NEWEST) -> None:
        """Initialize the bounded buffer.

        Args:
            max_size: Maximum number of items held at once.
            policy: Which item is dropped when an append finds the buffer full.

        Raises:
            ValueError: If max_size < 1.
        """
        if max_size < 1:
            raise ValueError(f"max_size must be >= 1, got {max_size}")
        self._max_size = max_size
        self._policy = policy
        self._buffer: deque[T] = deque()
        self._dropped_count: int = 0
        self._last_logged_drop_count: int = 0

    def append(self, item: T) -> bool:
        """Append item, applying the overflow policy when full.

        Returns:
            True if nothing was dropped, False if an item (the incoming one
            for DROP_NEWEST, the oldest one for DROP_OLDEST) was discarded.
        """
        if len(self._buffer) < self._max_size:
            self._buffer.append(item)
            return True

        if self._policy == OverflowPolicy.DROP_OLDEST:
            self._buffer.popleft()
            self._buffer.append(item)
        self._dropped_count += 1

        if self._dropped_count - self._last_logged_drop_count >= self._LOG_INTERVAL:
            logger.warning(
                "Span queue overflow - spans dropped",
                dropped_since_last_log=self._dropped_count - self._last_logged_drop_count,
                dropped_total=self._dropped_count,
                buffer_size=self._max_size,
                policy=self._policy.value,
                hint="Consider increasing max_queue_size or lowering scheduled_delay_millis",
            )
            self._last_logged_drop_count = self._dropped_count
        return False

    def pop_batch(self, max_count: int) -> list[T]:
        """Pop up to max_count items in FIFO order (oldest first).

        Returns:
            List of items, up to max_count. May be empty if buffer is empty.
        """
        batch = []
        for _ in range(min(max_count, len(self._buffer))):
            batch.append(self._buffer.popleft())
        return batch

    @property
    def max_size(self) -> int:
        return self._max_size

    @property
    def policy(self) -> OverflowPolicy:
        return self._policy

    @property
    def dropped_count(self) -> int:
        """Number of items dropped due to overflow."""
        return self._dropped_count

    def __len__(self) -> int:
        return len(self._buffer)
