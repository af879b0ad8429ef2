# src/spanline/contracts/config/defaults.py
"""Default value registries for runtime configuration.

Two categories of defaults:

1. BATCH_DEFAULTS: Defaults for the batching span processor options that
   ARE exposed in settings. SpanProcessorSettings and
   RuntimeBatchConfig.default() both read from here so the two never drift.

2. INTERNAL_DEFAULTS: Values hardcoded in runtime code, NOT exposed in
   settings. Documented here so they are visible in one place.
"""

from typing import Final

# =============================================================================
# BATCH_DEFAULTS - user-configurable batching options
# =============================================================================

BATCH_DEFAULTS: Final[dict[str, int]] = {
    # Queue capacity; spans beyond this are dropped per overflow policy
    "max_queue_size": 2048,
    # Size trigger and per-export cap
    "max_export_batch_size": 512,
    # Timer trigger interval, measured from the previous flush
    "scheduled_delay_millis": 5000,
    # Deadline for one exporter.export() call, also bounds the shutdown drain
    "export_timeout_millis": 30000,
}


# =============================================================================
# INTERNAL DEFAULTS - Values hardcoded in runtime, NOT in settings
# =============================================================================

INTERNAL_DEFAULTS: Final[dict[str, dict[str, int | float | str]]] = {
    "processor": {
        # Aggregate drop/failure logging interval (Warning Fatigue prevention)
        "log_interval": 100,
        # Seconds to wait for the worker thread to signal readiness
        "worker_ready_timeout": 5.0,
    },
    "resource": {
        # service.name used when none is configured
        "service_name": "unknown_service",
    },
}


def get_batch_default(key: str) -> int:
    """Look up a batching default.

    Raises:
        KeyError: If key is not a known batching option
    """
    return BATCH_DEFAULTS[key]


def get_internal_default(section: str, key: str) -> int | float | str:
    """Look up an internal default.

    Raises:
        KeyError: If section or key is unknown
    """
    return INTERNAL_DEFAULTS[section][key]
