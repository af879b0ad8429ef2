# src/spanline/telemetry/factory.py
"""Build a TracerProvider from tracing configuration.

Exporter classes are discovered through the spanline_get_exporters pluggy
hook; each configured processor gets its own exporter instance wrapped in a
SimpleSpanProcessor or BatchSpanProcessor.

Usage:
    from spanline.core.config import load_settings
    from spanline.telemetry.factory import create_tracer_provider

    settings = load_settings(Path("spanline.yaml"))
    provider = create_tracer_provider(settings)
    tracer = provider.get_tracer("todo-api", "1.0.0")
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import TYPE_CHECKING, Any

import pluggy
import structlog

from spanline.contracts.config import RuntimeProcessorConfig, RuntimeTracingConfig
from spanline.contracts.enums import ProcessorType
from spanline.telemetry.errors import ExporterConfigurationError
from spanline.telemetry.exporters import BuiltinExportersPlugin
from spanline.telemetry.hookspecs import PROJECT_NAME, SpanlineExporterSpec
from spanline.telemetry.processors import BatchSpanProcessor, SimpleSpanProcessor
from spanline.telemetry.protocols import ExporterProtocol, SpanProcessorProtocol
from spanline.trace.resource import Resource
from spanline.trace.tracer import TracerProvider

if TYPE_CHECKING:
    from spanline.core.config import SpanlineSettings

logger = structlog.get_logger(__name__)

_PLUGINS_NAME = "exporter_plugins"


def _resolve_exporter_name(exporter_class: type[ExporterProtocol]) -> str:
    """Name an exporter class by its own ``_name`` or, failing that, a throwaway instance.

    Raises:
        ExporterConfigurationError: Empty/non-string name, or the class
            cannot be constructed without arguments.
    """
    label = getattr(exporter_class, "__name__", repr(exporter_class))

    declared = vars(exporter_class).get("_name") if hasattr(exporter_class, "__dict__") else None
    if declared is not None:
        if type(declared) is not str or not declared:
            raise ExporterConfigurationError(label, f"_name must be a non-empty string, got {declared!r}")
        return declared

    try:
        name = exporter_class().name
    except Exception as e:
        raise ExporterConfigurationError(label, f"Could not construct exporter to read its name: {e}") from e
    if type(name) is not str or not name:
        raise ExporterConfigurationError(label, f"Exporter name must be a non-empty string, got {name!r}")
    return name


def _build_plugin_manager(exporter_plugins: Iterable[Any]) -> pluggy.PluginManager:
    manager = pluggy.PluginManager(PROJECT_NAME)
    manager.add_hookspecs(SpanlineExporterSpec)
    for plugin in [BuiltinExportersPlugin(), *exporter_plugins]:
        try:
            manager.register(plugin)
            manager.check_pending()
        except pluggy.PluginValidationError as e:
            manager.unregister(plugin=plugin)
            raise ExporterConfigurationError(_PLUGINS_NAME, f"Invalid exporter plugin {type(plugin).__name__}: {e}") from e
        except ValueError as e:
            # Same object or plugin name registered twice
            raise ExporterConfigurationError(_PLUGINS_NAME, f"Invalid exporter plugin {type(plugin).__name__}: {e}") from e
    return manager


def _exporter_classes(hook_impl: pluggy.HookImpl) -> list[type[ExporterProtocol]]:
    """Call one plugin's spanline_get_exporters and materialize its result."""
    owner = type(hook_impl.plugin).__name__
    try:
        returned = hook_impl.function()
    except Exception as e:
        raise ExporterConfigurationError(_PLUGINS_NAME, f"spanline_get_exporters raised in plugin {owner}: {e}") from e

    not_iterable = ExporterConfigurationError(
        _PLUGINS_NAME,
        f"spanline_get_exporters in plugin {owner} returned {type(returned).__name__}; expected a list of exporter classes",
    )
    if returned is None or isinstance(returned, (str, bytes)):
        raise not_iterable
    try:
        return list(returned)
    except TypeError as e:
        raise not_iterable from e


def discover_exporter_registry(exporter_plugins: Iterable[Any] = ()) -> dict[str, type[ExporterProtocol]]:
    """Map exporter name -> class across the built-in plugin and any extras.

    Raises:
        ExporterConfigurationError: Bad plugin, failing hook, invalid or
            duplicate exporter name.
    """
    manager = _build_plugin_manager(exporter_plugins)

    registry: dict[str, type[ExporterProtocol]] = {}
    for hook_impl in manager.hook.spanline_get_exporters.get_hookimpls():
        for exporter_class in _exporter_classes(hook_impl):
            name = _resolve_exporter_name(exporter_class)
            if name in registry:
                raise ExporterConfigurationError(
                    name,
                    f"Duplicate exporter name '{name}' discovered: {registry[name].__name__} and {exporter_class.__name__}",
                )
            registry[name] = exporter_class

    logger.debug("exporters_discovered", exporters=sorted(registry))
    return registry


def create_span_processor(
    processor_config: RuntimeProcessorConfig,
    registry: dict[str, type[ExporterProtocol]],
) -> SpanProcessorProtocol:
    """Instantiate and configure the exporter, then wrap it in its processor.

    Raises:
        ExporterConfigurationError: Unknown exporter name or invalid options
    """
    exporter_config = processor_config.exporter
    try:
        exporter_class = registry[exporter_config.name]
    except KeyError:
        available = sorted(registry.keys())
        raise ExporterConfigurationError(
            exporter_name=exporter_config.name,
            message=f"Unknown exporter. Available exporters: {available}",
        ) from None

    exporter = exporter_class()
    exporter.configure(dict(exporter_config.options))
    logger.debug(
        "exporter_configured",
        exporter=exporter_config.name,
        processor=processor_config.type.value,
        options_keys=sorted(exporter_config.options.keys()),
    )

    match processor_config.type:
        case ProcessorType.SIMPLE:
            return SimpleSpanProcessor(exporter)
        case ProcessorType.BATCH:
            return BatchSpanProcessor(exporter, processor_config.batch)


def create_tracer_provider(
    config: RuntimeTracingConfig | SpanlineSettings,
    *,
    exporter_plugins: Iterable[Any] = (),
) -> TracerProvider:
    """Create a TracerProvider from settings or runtime configuration.

    When tracing is disabled the provider is returned without processors:
    spans are still created (instrumented code needs no branches) but
    nothing is exported.

    Args:
        config: SpanlineSettings from load_settings(), or a RuntimeTracingConfig
        exporter_plugins: Optional additional plugin objects providing
            ``spanline_get_exporters`` hooks

    Raises:
        ExporterConfigurationError: If exporter discovery fails, unknown
            exporter names are configured, or exporter configuration fails.
    """
    runtime = config if isinstance(config, RuntimeTracingConfig) else RuntimeTracingConfig.from_settings(config)
    provider = TracerProvider(Resource.create(runtime.resource_attributes))

    if not runtime.enabled:
        logger.debug("tracing_disabled", reason="tracing.enabled=False")
        return provider

    registry = discover_exporter_registry(exporter_plugins)
    processors: list[SpanProcessorProtocol] = []
    try:
        for processor_config in runtime.processors:
            processors.append(create_span_processor(processor_config, registry))
    except Exception:
        # Don't leak worker threads from processors built before the failure
        for processor in processors:
            processor.shutdown()
        raise

    for processor in processors:
        provider.add_span_processor(processor)

    if not processors:
        logger.warning("tracing_enabled_no_processors", message="Tracing enabled but no processors configured")

    return provider
