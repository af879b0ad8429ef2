# src/spanline/metrics/meter.py
"""Meter and MeterProvider.

Instruments are identified by (name, kind): asking a Meter twice for the
same pair returns the same instrument, so modules can declare their
instruments independently.
"""

import threading
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any, TypeVar, cast

import structlog

from spanline.contracts.enums import InstrumentKind
from spanline.core.config import DEFAULT_HISTOGRAM_BOUNDARIES
from spanline.metrics.instruments import Counter, Histogram, MetricData, UpDownCounter, _Instrument
from spanline.trace.resource import Resource
from spanline.trace.span import InstrumentationScope

if TYPE_CHECKING:
    from spanline.core.config import SpanlineSettings

logger = structlog.get_logger(__name__)

_I = TypeVar("_I", bound=_Instrument)


class Meter:
    """Creates and owns the instruments of one instrumentation scope."""

    def __init__(
        self,
        scope: InstrumentationScope,
        *,
        histogram_boundaries: Sequence[float] = DEFAULT_HISTOGRAM_BOUNDARIES,
        enabled: bool = True,
    ) -> None:
        self._scope = scope
        self._histogram_boundaries = tuple(histogram_boundaries)
        self._enabled = enabled
        self._instruments: dict[tuple[str, InstrumentKind], _Instrument] = {}
        self._lock = threading.Lock()

    @property
    def scope(self) -> InstrumentationScope:
        return self._scope

    def _get_or_create(self, name: str, kind: InstrumentKind, factory: type[_I], **kwargs: Any) -> _I:
        key = (name, kind)
        with self._lock:
            instrument = self._instruments.get(key)
            if instrument is None:
                instrument = factory(name, enabled=self._enabled, **kwargs)
                self._instruments[key] = instrument
                logger.debug("instrument_created", meter=self._scope.name, instrument=name, kind=kind.value)
            # One class per InstrumentKind, so the key pins the type
            return cast(_I, instrument)

    def create_counter(self, name: str, description: str = "", unit: str = "") -> Counter:
        return self._get_or_create(name, InstrumentKind.COUNTER, Counter, description=description, unit=unit)

    def create_up_down_counter(self, name: str, description: str = "", unit: str = "") -> UpDownCounter:
        return self._get_or_create(
            name, InstrumentKind.UP_DOWN_COUNTER, UpDownCounter, description=description, unit=unit
        )

    def create_histogram(
        self,
        name: str,
        description: str = "",
        unit: str = "",
        boundaries: Sequence[float] | None = None,
    ) -> Histogram:
        """Return the histogram named name, creating it on first use.

        boundaries only applies on creation; defaults to the meter's
        configured boundaries.
        """
        return self._get_or_create(
            name,
            InstrumentKind.HISTOGRAM,
            Histogram,
            description=description,
            unit=unit,
            boundaries=tuple(boundaries) if boundaries is not None else self._histogram_boundaries,
        )

    def collect(self) -> list[MetricData]:
        """Snapshot every instrument, in creation order."""
        with self._lock:
            instruments = list(self._instruments.values())
        return [instrument.collect() for instrument in instruments]


class MeterProvider:
    """Owner of the Resource and the Meters created for each scope."""

    def __init__(
        self,
        resource: Resource | None = None,
        *,
        histogram_boundaries: Sequence[float] = DEFAULT_HISTOGRAM_BOUNDARIES,
        enabled: bool = True,
    ) -> None:
        self._resource = resource if resource is not None else Resource.create()
        self._histogram_boundaries = tuple(histogram_boundaries)
        self._enabled = enabled
        self._meters: dict[tuple[str, str | None], Meter] = {}
        self._lock = threading.Lock()

    @property
    def resource(self) -> Resource:
        return self._resource

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get_meter(self, name: str, version: str | None = None) -> Meter:
        key = (name, version)
        with self._lock:
            meter = self._meters.get(key)
            if meter is None:
                meter = Meter(
                    InstrumentationScope(name=name, version=version),
                    histogram_boundaries=self._histogram_boundaries,
                    enabled=self._enabled,
                )
                self._meters[key] = meter
            return meter

    def collect(self) -> dict[InstrumentationScope, list[MetricData]]:
        """Snapshot every meter, keyed by its instrumentation scope."""
        with self._lock:
            meters = list(self._meters.values())
        return {meter.scope: meter.collect() for meter in meters}


def create_meter_provider(settings: "SpanlineSettings") -> MeterProvider:
    """Build a MeterProvider from settings (resource from the service section)."""
    if not settings.metrics.enabled:
        logger.debug("metrics_disabled", reason="metrics.enabled=False")
    return MeterProvider(
        Resource.create(settings.service.resource_attributes()),
        histogram_boundaries=settings.metrics.histogram_boundaries,
        enabled=settings.metrics.enabled,
    )
