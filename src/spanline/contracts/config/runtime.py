# src/spanline/contracts/config/runtime.py
"""Runtime configuration dataclasses.

These dataclasses are what the processors and factories consume. They are
built from validated pydantic Settings objects (spanline.core.config) via
from_settings() factories, or directly in tests.

Design Principles:
1. Frozen (immutable) - runtime config never changes after a processor starts
2. Slots - memory efficient, prevents attribute typos
3. Fail fast - inconsistent values raise ValueError at construction time,
   never later on the hot path
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from spanline.contracts.config.defaults import BATCH_DEFAULTS
from spanline.contracts.enums import OverflowPolicy, ProcessorType

# Settings classes are only needed for type hints; importing spanline.core
# at module level would make contracts depend on pydantic/dynaconf.
if TYPE_CHECKING:
    from spanline.core.config import SpanlineSettings, SpanProcessorSettings


def _require_positive(field_name: str, value: Any) -> None:
    """Reject non-int (including bool) and non-positive values."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"{field_name} must be an int, got {type(value).__name__}")
    if value < 1:
        raise ValueError(f"{field_name} must be >= 1, got {value}")


@dataclass(frozen=True, slots=True)
class RuntimeBatchConfig:
    """Runtime configuration for BatchSpanProcessor.

    Fields (each effect is owned by BatchSpanProcessor):
        max_queue_size: Queue capacity. Never exceeded.
        max_export_batch_size: Queue length that triggers a flush, and the
            maximum number of spans handed to one export() call.
        scheduled_delay_millis: Timer trigger, measured from the previous flush.
        export_timeout_millis: Deadline for one export() call. Also bounds
            the final drain during shutdown().
        overflow_policy: Which span is dropped when the queue is full.
    """

    max_queue_size: int = BATCH_DEFAULTS["max_queue_size"]
    max_export_batch_size: int = BATCH_DEFAULTS["max_export_batch_size"]
    scheduled_delay_millis: int = BATCH_DEFAULTS["scheduled_delay_millis"]
    export_timeout_millis: int = BATCH_DEFAULTS["export_timeout_millis"]
    overflow_policy: OverflowPolicy = OverflowPolicy.DROP_NEWEST

    def __post_init__(self) -> None:
        _require_positive("max_queue_size", self.max_queue_size)
        _require_positive("max_export_batch_size", self.max_export_batch_size)
        _require_positive("scheduled_delay_millis", self.scheduled_delay_millis)
        _require_positive("export_timeout_millis", self.export_timeout_millis)
        if self.max_export_batch_size > self.max_queue_size:
            raise ValueError(
                f"max_export_batch_size ({self.max_export_batch_size}) must be <= max_queue_size ({self.max_queue_size})"
            )
        if not isinstance(self.overflow_policy, OverflowPolicy):
            raise ValueError(f"overflow_policy must be an OverflowPolicy, got {self.overflow_policy!r}")

    @property
    def scheduled_delay_seconds(self) -> float:
        return self.scheduled_delay_millis / 1000.0

    @property
    def export_timeout_seconds(self) -> float:
        return self.export_timeout_millis / 1000.0

    @classmethod
    def default(cls) -> "RuntimeBatchConfig":
        """Factory for the default batching configuration."""
        return cls()

    @classmethod
    def from_settings(cls, settings: "SpanProcessorSettings") -> "RuntimeBatchConfig":
        """Factory from a SpanProcessorSettings model.

        Field Mapping (all direct):
            settings.max_queue_size -> max_queue_size
            settings.max_export_batch_size -> max_export_batch_size
            settings.scheduled_delay_millis -> scheduled_delay_millis
            settings.export_timeout_millis -> export_timeout_millis
            settings.overflow_policy -> overflow_policy (parsed to enum)

        Raises:
            ValueError: If the combination of values is inconsistent
        """
        return cls(
            max_queue_size=settings.max_queue_size,
            max_export_batch_size=settings.max_export_batch_size,
            scheduled_delay_millis=settings.scheduled_delay_millis,
            export_timeout_millis=settings.export_timeout_millis,
            overflow_policy=OverflowPolicy(settings.overflow_policy.lower()),
        )


@dataclass(frozen=True, slots=True)
class ExporterConfig:
    """Configuration for a single exporter.

    The name selects the exporter class (resolved through pluggy discovery),
    the options dict is handed to the exporter's configure().

    Example YAML that produces ExporterConfig instances:
        tracing:
          processors:
            - type: batch
              exporter:
                name: otlp
                options:
                  endpoint: http://localhost:4318/v1/traces
    """

    name: str
    options: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("exporter name cannot be empty")


@dataclass(frozen=True, slots=True)
class RuntimeProcessorConfig:
    """One span processor and the exporter it drives.

    batch is set only for ProcessorType.BATCH.
    """

    type: ProcessorType
    exporter: ExporterConfig
    batch: RuntimeBatchConfig | None = None

    def __post_init__(self) -> None:
        if self.type == ProcessorType.BATCH and self.batch is None:
            raise ValueError("batch processors require a RuntimeBatchConfig")
        if self.type == ProcessorType.SIMPLE and self.batch is not None:
            raise ValueError("simple processors do not take batch options")


@dataclass(frozen=True, slots=True)
class RuntimeTracingConfig:
    """Runtime configuration for building a TracerProvider.

    Field Origins:
        - enabled: TracingSettings.enabled
        - resource_attributes: ServiceSettings (service.name, service.version,
          deployment.environment) merged with ServiceSettings.attributes
        - processors: TracingSettings.processors, in declaration order
    """

    enabled: bool
    resource_attributes: dict[str, Any]
    processors: tuple[RuntimeProcessorConfig, ...]

    @classmethod
    def default(cls) -> "RuntimeTracingConfig":
        """Tracing enabled, no processors (spans are created but go nowhere)."""
        return cls(enabled=True, resource_attributes={}, processors=())

    @classmethod
    def from_settings(cls, settings: "SpanlineSettings") -> "RuntimeTracingConfig":
        """Factory from the root SpanlineSettings model.

        Raises:
            ValueError: If any batch processor has inconsistent options
        """
        processors = []
        for proc in settings.tracing.processors:
            proc_type = ProcessorType(proc.type.lower())
            batch = RuntimeBatchConfig.from_settings(proc) if proc_type == ProcessorType.BATCH else None
            processors.append(
                RuntimeProcessorConfig(
                    type=proc_type,
                    exporter=ExporterConfig(name=proc.exporter.name, options=dict(proc.exporter.options)),
                    batch=batch,
                )
            )
        return cls(
            enabled=settings.tracing.enabled,
            resource_attributes=settings.service.resource_attributes(),
            processors=tuple(processors),
        )
