# src/spanline/telemetry/errors.py
"""Telemetry-specific exceptions.

These exceptions are for configuration-time failures only. They are never
raised on the span hot path or from the export worker.
"""


class ExporterConfigurationError(Exception):
    """Raised when an exporter cannot be discovered, instantiated or configured.

    This is raised during exporter setup (discovery/configure), NOT during
    export operations. Export failures are logged and counted instead.

    Attributes:
        exporter_name: Name of the exporter that failed
        message: Human-readable error description
    """

    def __init__(self, exporter_name: str, message: str) -> None:
        self.exporter_name = exporter_name
        self.message = message
        super().__init__(f"Exporter '{exporter_name}' failed: {message}")
