# src/spanline/contracts/config/__init__.py
"""Configuration contracts subpackage.

This subpackage contains:
- Runtime config dataclasses (runtime.py) - what processors and factories consume
- Default registries (defaults.py) - BATCH_DEFAULTS, INTERNAL_DEFAULTS

NOTE: Settings classes (SpanlineSettings, etc.) are NOT here.
      Import them from spanline.core.config to keep contracts a leaf package.
"""

from spanline.contracts.config.defaults import (
    BATCH_DEFAULTS,
    INTERNAL_DEFAULTS,
    get_batch_default,
    get_internal_default,
)
from spanline.contracts.config.runtime import (
    ExporterConfig,
    RuntimeBatchConfig,
    RuntimeProcessorConfig,
    RuntimeTracingConfig,
)

__all__ = [
    "BATCH_DEFAULTS",
    "INTERNAL_DEFAULTS",
    "ExporterConfig",
    "RuntimeBatchConfig",
    "RuntimeProcessorConfig",
    "RuntimeTracingConfig",
    "get_batch_default",
    "get_internal_default",
]
