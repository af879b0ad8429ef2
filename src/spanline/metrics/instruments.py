# src/spanline/metrics/instruments.py
"""Metric instruments: Counter, UpDownCounter, Histogram.

Each instrument aggregates measurements per LabelSet. A LabelSet is the
sorted tuple of its key/value pairs, so {"a": 1, "b": 2} and
{"b": 2, "a": 1} land in the same bucket.

Thread Safety:
    Every instrument guards its aggregation state with its own lock.
    Measurements never raise; invalid ones are counted in
    rejected_measurements and logged.
"""

import math
import threading
from bisect import bisect_left
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

import structlog

from spanline.contracts.enums import InstrumentKind

logger = structlog.get_logger(__name__)

LabelValue = str | bool | int | float


def _canonical_value(value: Any) -> LabelValue:
    if isinstance(value, (str, bool, int, float)):
        return value
    return str(value)


@dataclass(frozen=True, slots=True)
class LabelSet:
    """Canonical, hashable set of labels (sorted by key)."""

    items: tuple[tuple[str, LabelValue], ...] = ()

    @classmethod
    def of(cls, labels: "Mapping[str, Any] | LabelSet | None" = None) -> "LabelSet":
        if isinstance(labels, LabelSet):
            return labels
        if not labels:
            return _EMPTY_LABELS
        # Keys are compared as text only; for keys with the same text (1 and "1") the last one wins
        by_key = {str(key): _canonical_value(value) for key, value in labels.items()}
        return cls(tuple(sorted(by_key.items(), key=lambda item: item[0])))

    def as_dict(self) -> dict[str, LabelValue]:
        return dict(self.items)

    def __len__(self) -> int:
        return len(self.items)


_EMPTY_LABELS = LabelSet()


@dataclass(frozen=True, slots=True)
class SumPoint:
    """Accumulated value of a Counter or UpDownCounter for one LabelSet."""

    labels: LabelSet
    value: float


@dataclass(frozen=True, slots=True)
class HistogramPoint:
    """Distribution of one Histogram for one LabelSet.

    bucket_counts[i] counts values v with boundaries[i-1] < v <= boundaries[i];
    the last bucket holds everything above the highest boundary.
    """

    labels: LabelSet
    count: int
    sum: float
    min: float
    max: float
    boundaries: tuple[float, ...]
    bucket_counts: tuple[int, ...]


@dataclass(frozen=True, slots=True)
class MetricData:
    """Snapshot of one instrument, as returned by Meter.collect()."""

    name: str
    kind: InstrumentKind
    description: str
    unit: str
    points: tuple[SumPoint | HistogramPoint, ...] = field(default_factory=tuple)


class _Instrument:
    kind: InstrumentKind

    def __init__(self, name: str, description: str = "", unit: str = "", *, enabled: bool = True) -> None:
        self._name = name
        self._description = description
        self._unit = unit
        self._enabled = enabled
        self._lock = threading.Lock()
        self._rejected = 0

    @property
    def name(self) -> str:
        return self._name

    @property
    def description(self) -> str:
        return self._description

    @property
    def unit(self) -> str:
        return self._unit

    @property
    def rejected_measurements(self) -> int:
        """Measurements ignored as invalid (e.g. negative Counter deltas)."""
        with self._lock:
            return self._rejected

    def _reject(self, value: Any, reason: str) -> None:
        with self._lock:
            self._rejected += 1
            rejected = self._rejected
        logger.warning(
            "Measurement rejected",
            instrument=self._name,
            kind=self.kind.value,
            value=value,
            reason=reason,
            rejected_total=rejected,
        )

    def _points(self) -> tuple[SumPoint | HistogramPoint, ...]:
        raise NotImplementedError

    def collect(self) -> MetricData:
        return MetricData(
            name=self._name,
            kind=self.kind,
            description=self._description,
            unit=self._unit,
            points=self._points(),
        )


class _SumInstrument(_Instrument):
    def __init__(self, name: str, description: str = "", unit: str = "", *, enabled: bool = True) -> None:
        super().__init__(name, description, unit, enabled=enabled)
        self._sums: dict[LabelSet, float] = {}

    def _accumulate(self, delta: float, labels: "Mapping[str, Any] | LabelSet | None") -> None:
        label_set = LabelSet.of(labels)
        with self._lock:
            self._sums[label_set] = self._sums.get(label_set, 0) + delta

    def get(self, labels: "Mapping[str, Any] | LabelSet | None" = None) -> float:
        """Current accumulated value for labels (0 if never measured)."""
        label_set = LabelSet.of(labels)
        with self._lock:
            return self._sums.get(label_set, 0)

    def _points(self) -> tuple[SumPoint, ...]:
        with self._lock:
            return tuple(SumPoint(labels=labels, value=value) for labels, value in self._sums.items())


class Counter(_SumInstrument):
    """Monotonic sum. Negative deltas are usage errors and are ignored.

    Example:
        >>> todos_created = meter.create_counter("todos.created")
        >>> todos_created.add(1, {"route": "/api/todos"})
    """

    kind = InstrumentKind.COUNTER

    def add(self, delta: float, labels: "Mapping[str, Any] | LabelSet | None" = None) -> None:
        if not self._enabled:
            return
        if isinstance(delta, bool) or not isinstance(delta, (int, float)) or not math.isfinite(delta):
            self._reject(delta, "non-numeric or non-finite delta")
            return
        if delta < 0:
            self._reject(delta, "negative delta on a monotonic counter")
            return
        self._accumulate(delta, labels)


class UpDownCounter(_SumInstrument):
    """Sum that may go up or down (e.g. in-flight requests)."""

    kind = InstrumentKind.UP_DOWN_COUNTER

    def add(self, delta: float, labels: "Mapping[str, Any] | LabelSet | None" = None) -> None:
        if not self._enabled:
            return
        if isinstance(delta, bool) or not isinstance(delta, (int, float)) or not math.isfinite(delta):
            self._reject(delta, "non-numeric or non-finite delta")
            return
        self._accumulate(delta, labels)


@dataclass(slots=True)
class _Distribution:
    count: int
    sum: float
    min: float
    max: float
    bucket_counts: list[int]


class Histogram(_Instrument):
    """Bucketed distribution of recorded values (e.g. request latency in ms)."""

    kind = InstrumentKind.HISTOGRAM

    def __init__(
        self,
        name: str,
        description: str = "",
        unit: str = "",
        *,
        boundaries: Sequence[float],
        enabled: bool = True,
    ) -> None:
        super().__init__(name, description, unit, enabled=enabled)
        self._boundaries = tuple(float(b) for b in boundaries)
        if any(later <= earlier for earlier, later in zip(self._boundaries, self._boundaries[1:])):
            raise ValueError(f"histogram boundaries must be strictly increasing, got {self._boundaries}")
        self._distributions: dict[LabelSet, _Distribution] = {}

    @property
    def boundaries(self) -> tuple[float, ...]:
        return self._boundaries

    def record(self, value: float, labels: "Mapping[str, Any] | LabelSet | None" = None) -> None:
        if not self._enabled:
            return
        if isinstance(value, bool) or not isinstance(value, (int, float)) or not math.isfinite(value):
            self._reject(value, "non-numeric or non-finite value")
            return
        label_set = LabelSet.of(labels)
        bucket = bisect_left(self._boundaries, value)
        with self._lock:
            dist = self._distributions.get(label_set)
            if dist is None:
                dist = _Distribution(0, 0.0, value, value, [0] * (len(self._boundaries) + 1))
                self._distributions[label_set] = dist
            dist.count += 1
            dist.sum += value
            dist.min = min(dist.min, value)
            dist.max = max(dist.max, value)
            dist.bucket_counts[bucket] += 1

    def get(self, labels: "Mapping[str, Any] | LabelSet | None" = None) -> HistogramPoint | None:
        """Snapshot for labels, or None if nothing was recorded under them."""
        label_set = LabelSet.of(labels)
        with self._lock:
            dist = self._distributions.get(label_set)
            return self._snapshot(label_set, dist) if dist is not None else None

    def _snapshot(self, labels: LabelSet, dist: _Distribution) -> HistogramPoint:
        return HistogramPoint(
            labels=labels,
            count=dist.count,
            sum=dist.sum,
            min=dist.min,
            max=dist.max,
            boundaries=self._boundaries,
            bucket_counts=tuple(dist.bucket_counts),
        )

    def _points(self) -> tuple[HistogramPoint, ...]:
        with self._lock:
            return tuple(self._snapshot(labels, dist) for labels, dist in self._distributions.items())
