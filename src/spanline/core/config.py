# src/spanline/core/config.py
"""Settings schema (pydantic) and YAML loading (Dynaconf).

Every model is frozen; runtime code converts them into the dataclasses of
spanline.contracts.config before use.

Example settings.yaml:
    service:
      name: todo-app
      version: 1.0.0
      environment: development
    tracing:
      processors:
        - type: batch
          exporter:
            name: otlp
            options:
              endpoint: ${OTEL_EXPORTER_OTLP_ENDPOINT:-http://localhost:4318/v1/traces}
          max_export_batch_size: 10
          scheduled_delay_millis: 1000
          export_timeout_millis: 5000
    logging:
      level: INFO
"""

import os
import re
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from spanline.contracts.config.defaults import BATCH_DEFAULTS, INTERNAL_DEFAULTS

# OpenTelemetry's default explicit bucket boundaries for histograms
DEFAULT_HISTOGRAM_BOUNDARIES: tuple[float, ...] = (
    0.0,
    5.0,
    10.0,
    25.0,
    50.0,
    75.0,
    100.0,
    250.0,
    500.0,
    750.0,
    1000.0,
    2500.0,
    5000.0,
    7500.0,
    10000.0,
)


class ServiceSettings(BaseModel):
    """Process identity, turned into the Resource attached to all telemetry.

    Example YAML:
        service:
          name: hybrid-todo-app
          version: 1.0.0
          environment: production
          attributes:
            team: platform
    """

    model_config = {"frozen": True}

    name: str = Field(
        default=str(INTERNAL_DEFAULTS["resource"]["service_name"]),
        min_length=1,
        description="service.name resource attribute",
    )
    version: str | None = Field(default=None, description="service.version resource attribute")
    environment: str | None = Field(default=None, description="deployment.environment resource attribute")
    attributes: dict[str, Any] = Field(default_factory=dict, description="Extra resource attributes")

    def resource_attributes(self) -> dict[str, Any]:
        """Flatten into resource attribute keys. Named fields win over extras."""
        result = dict(self.attributes)
        result["service.name"] = self.name
        if self.version is not None:
            result["service.version"] = self.version
        if self.environment is not None:
            result["deployment.environment"] = self.environment
        return result


class ExporterSettings(BaseModel):
    """Exporter selection: name resolved through pluggy discovery, options passed to configure()."""

    model_config = {"frozen": True}

    name: str = Field(min_length=1, description="Registered exporter name (console, memory, otlp, ...)")
    options: dict[str, Any] = Field(default_factory=dict, description="Exporter-specific options")


class SpanProcessorSettings(BaseModel):
    """One span processor and its exporter.

    Batch options are ignored for type=simple.
    """

    model_config = {"frozen": True}

    type: Literal["simple", "batch"] = Field(default="batch", description="Processor variant")
    exporter: ExporterSettings
    max_queue_size: int = Field(default=BATCH_DEFAULTS["max_queue_size"], gt=0, description="Queue capacity")
    max_export_batch_size: int = Field(
        default=BATCH_DEFAULTS["max_export_batch_size"],
        gt=0,
        description="Flush trigger and per-export cap",
    )
    scheduled_delay_millis: int = Field(
        default=BATCH_DEFAULTS["scheduled_delay_millis"],
        gt=0,
        description="Timer flush interval since the previous flush",
    )
    export_timeout_millis: int = Field(
        default=BATCH_DEFAULTS["export_timeout_millis"],
        gt=0,
        description="Deadline for one export call",
    )
    overflow_policy: Literal["drop_newest", "drop_oldest"] = Field(
        default="drop_newest",
        description="Which span is dropped when the queue is full",
    )

    @field_validator("type", "overflow_policy", mode="before")
    @classmethod
    def normalize_case(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.lower()
        return v

    @model_validator(mode="after")
    def validate_batch_fits_queue(self) -> "SpanProcessorSettings":
        if self.type == "batch" and self.max_export_batch_size > self.max_queue_size:
            raise ValueError(
                f"max_export_batch_size ({self.max_export_batch_size}) must be <= max_queue_size ({self.max_queue_size})"
            )
        return self


class TracingSettings(BaseModel):
    """Tracing configuration.

    Processors are registered on the TracerProvider in declaration order.
    Declaring a simple and a batch processor side by side is allowed.
    """

    model_config = {"frozen": True}

    enabled: bool = Field(default=True, description="Build a TracerProvider at all")
    processors: list[SpanProcessorSettings] = Field(default_factory=list, description="Span processors in order")


class MetricsSettings(BaseModel):
    """Metric instrument configuration."""

    model_config = {"frozen": True}

    enabled: bool = Field(default=True, description="Record measurements")
    histogram_boundaries: tuple[float, ...] = Field(
        default=DEFAULT_HISTOGRAM_BOUNDARIES,
        description="Explicit bucket upper bounds for histograms",
    )

    @field_validator("histogram_boundaries")
    @classmethod
    def validate_boundaries_increasing(cls, v: tuple[float, ...]) -> tuple[float, ...]:
        if any(later <= earlier for earlier, later in zip(v, v[1:])):
            raise ValueError("histogram_boundaries must be strictly increasing")
        return v


class LoggingSettings(BaseModel):
    """structlog configuration (see spanline.core.logging)."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    json_output: bool = False

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class SpanlineSettings(BaseModel):
    """Root settings model."""

    model_config = {"frozen": True}

    service: ServiceSettings = Field(default_factory=ServiceSettings)
    tracing: TracingSettings = Field(default_factory=TracingSettings)
    metrics: MetricsSettings = Field(default_factory=MetricsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


# ${NAME} or ${NAME:-fallback}; NAME is an upper-case shell identifier
_ENV_REFERENCE = re.compile(r"\$\{(?P<name>[A-Z_][A-Z0-9_]*)(?::-(?P<fallback>[^}]*))?\}")

# Keys Dynaconf adds to as_dict() that are not settings
_DYNACONF_KEYS = frozenset({"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"})

# Mappings below these keys are user-defined and keep their case
_VERBATIM_KEYS = frozenset({"options", "attributes"})


def _substitute(text: str) -> str:
    def _lookup(reference: re.Match[str]) -> str:
        name = reference.group("name")
        value = os.environ.get(name)
        if value is None:
            value = reference.group("fallback")
        if value is None:
            raise ValueError(f"Required environment variable '{name}' is not set")
        return value

    return _ENV_REFERENCE.sub(_lookup, text)


def _expand_env_vars(node: Any) -> Any:
    """Return node with ${VAR} / ${VAR:-default} references replaced in every string.

    Raises:
        ValueError: If a referenced variable is unset and has no default
    """
    if isinstance(node, str):
        return _substitute(node)
    if isinstance(node, dict):
        return {key: _expand_env_vars(value) for key, value in node.items()}
    if isinstance(node, list):
        return [_expand_env_vars(item) for item in node]
    return node


def _normalize_keys(node: Any) -> Any:
    """Lower-case schema keys; exporter options and resource attributes stay as written."""
    if isinstance(node, list):
        return [_normalize_keys(item) for item in node]
    if not isinstance(node, dict):
        return node
    normalized: dict[str, Any] = {}
    for key, value in node.items():
        lowered = str(key).lower()
        normalized[lowered] = value if lowered in _VERBATIM_KEYS else _normalize_keys(value)
    return normalized


def load_settings(config_path: Path) -> SpanlineSettings:
    """Read a YAML settings file into a validated SpanlineSettings.

    Sources, highest priority first:
    1. SPANLINE_* environment variables (SPANLINE_SERVICE__NAME sets service.name)
    2. The YAML file
    3. Model defaults

    ${VAR} references are expanded after merging.

    Raises:
        FileNotFoundError: config_path does not exist
        ValidationError: The merged values fail schema validation
        ValueError: A ${VAR} reference cannot be resolved
    """
    from dynaconf import Dynaconf

    # Dynaconf treats a missing settings file as empty
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    loaded = Dynaconf(
        envvar_prefix="SPANLINE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    ).as_dict()

    raw = {key: value for key, value in loaded.items() if key not in _DYNACONF_KEYS}
    return SpanlineSettings(**_expand_env_vars(_normalize_keys(raw)))
