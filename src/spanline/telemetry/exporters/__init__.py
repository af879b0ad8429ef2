# src/spanline/telemetry/exporters/__init__.py
"""Built-in span exporters.

Available exporters:
- ConsoleExporter: Write spans to stdout/stderr for debugging
- InMemoryExporter: Keep exported spans in memory for tests and inspection
- OTLPExporter: Export to OTLP-compatible backends (Elastic, Jaeger, Tempo, etc.)

Plugin registration:
    Exporters are registered via the spanline_get_exporters hook.
    The BuiltinExportersPlugin in this module registers all built-in exporters.
"""

from spanline.telemetry.exporters.console import ConsoleExporter
from spanline.telemetry.exporters.memory import InMemoryExporter
from spanline.telemetry.exporters.otlp import OTLPExporter
from spanline.telemetry.hookspecs import hookimpl


class BuiltinExportersPlugin:
    """Plugin that registers built-in span exporters."""

    @hookimpl
    def spanline_get_exporters(self) -> list[type]:
        """Return built-in exporter classes."""
        return [ConsoleExporter, InMemoryExporter, OTLPExporter]


__all__ = [
    "BuiltinExportersPlugin",
    "ConsoleExporter",
    "InMemoryExporter",
    "OTLPExporter",
]
