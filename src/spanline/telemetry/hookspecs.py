# src/spanline/telemetry/hookspecs.py
"""pluggy hook specifications for span exporters.

Exporters implement these hooks to register themselves with spanline.
create_tracer_provider() calls them to build the name -> class registry
that processor settings refer to.

Usage (implementing an exporter plugin):
    from spanline.telemetry.hookspecs import hookimpl

    class MyExporterPlugin:
        @hookimpl
        def spanline_get_exporters(self):
            return [MyExporter]
"""

from typing import TYPE_CHECKING

import pluggy

if TYPE_CHECKING:
    from spanline.telemetry.protocols import ExporterProtocol

PROJECT_NAME = "spanline"

hookspec = pluggy.HookspecMarker(PROJECT_NAME)

# Hook implementation marker (for exporter plugins to use)
hookimpl = pluggy.HookimplMarker(PROJECT_NAME)


class SpanlineExporterSpec:
    """Hook specifications for span exporter plugins."""

    @hookspec
    def spanline_get_exporters(self) -> list[type["ExporterProtocol"]]:  # type: ignore[empty-body]
        """Return span exporter classes.

        Returns:
            List of exporter classes (not instances) that implement
            ExporterProtocol
        """
