# src/spanline/contracts/__init__.py
"""Shared contracts: enums and runtime configuration.

This is a leaf package. It must not import from spanline.core,
spanline.trace or spanline.telemetry.
"""

from spanline.contracts.config import (
    ExporterConfig,
    RuntimeBatchConfig,
    RuntimeProcessorConfig,
    RuntimeTracingConfig,
)
from spanline.contracts.enums import (
    ExportResult,
    InstrumentKind,
    OverflowPolicy,
    ProcessorType,
    SpanKind,
    StatusCode,
)

__all__ = [
    "ExportResult",
    "ExporterConfig",
    "InstrumentKind",
    "OverflowPolicy",
    "ProcessorType",
    "RuntimeBatchConfig",
    "RuntimeProcessorConfig",
    "RuntimeTracingConfig",
    "SpanKind",
    "StatusCode",
]
