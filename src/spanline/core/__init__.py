# src/spanline/core/__init__.py
"""Core infrastructure: settings loading and logging configuration."""

from spanline.core.config import (
    ExporterSettings,
    LoggingSettings,
    MetricsSettings,
    ServiceSettings,
    SpanlineSettings,
    SpanProcessorSettings,
    TracingSettings,
    load_settings,
)
from spanline.core.logging import configure_logging, get_logger

__all__ = [
    "ExporterSettings",
    "LoggingSettings",
    "MetricsSettings",
    "ServiceSettings",
    "SpanProcessorSettings",
    "SpanlineSettings",
    "TracingSettings",
    "configure_logging",
    "get_logger",
    "load_settings",
]
