# src/spanline/metrics/__init__.py
"""Metric instruments aggregated per label set."""

from spanline.metrics.instruments import (
    Counter,
    Histogram,
    HistogramPoint,
    LabelSet,
    MetricData,
    SumPoint,
    UpDownCounter,
)
from spanline.metrics.meter import Meter, MeterProvider, create_meter_provider

__all__ = [
    "Counter",
    "Histogram",
    "HistogramPoint",
    "LabelSet",
    "Meter",
    "MeterProvider",
    "MetricData",
    "SumPoint",
    "UpDownCounter",
    "create_meter_provider",
]
