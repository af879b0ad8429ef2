# src/spanline/cli.py
"""spanline command line.

Commands:
    validate  Check a settings file and every exporter it configures
    smoke     Push one test.initialization span through the pipeline
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import TYPE_CHECKING, Any

import typer
from dynaconf.vendor.ruamel.yaml.parser import ParserError as YamlParserError
from dynaconf.vendor.ruamel.yaml.scanner import ScannerError as YamlScannerError
from pydantic import ValidationError

from spanline import __version__
from spanline.core.config import ExporterSettings, SpanlineSettings, SpanProcessorSettings, TracingSettings, load_settings

if TYPE_CHECKING:
    from spanline.telemetry.protocols import SpanProcessorProtocol

__all__ = ["app", "load_settings"]

app = typer.Typer(
    name="spanline",
    help="Spanline: tracing and metrics with a batching span-export pipeline.",
    no_args_is_help=True,
)


def _show_version(value: bool) -> None:
    if value:
        typer.echo(f"spanline version {__version__}")
        raise typer.Exit()


def _load_env_file(env_file: Path | None) -> bool:
    """Populate os.environ from a .env file without overriding set variables.

    Without env_file, python-dotenv searches upward from the working
    directory. An explicit env_file that does not exist exits with status 1.
    """
    from dotenv import load_dotenv

    if env_file is None:
        return load_dotenv(override=False)
    if not env_file.exists():
        typer.secho(f"Error: .env file not found: {env_file}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)
    return load_dotenv(env_file, override=False)


@app.callback()
def main(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        callback=_show_version,
        is_eager=True,
        help="Print the spanline version and exit.",
    ),
    no_dotenv: bool = typer.Option(False, "--no-dotenv", help="Do not read a .env file."),
    env_file: Path | None = typer.Option(
        None,
        "--env-file",
        help="Read this .env file instead of searching for one.",
        exists=False,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level."),
    json_logs: bool = typer.Option(False, "--json-logs", help="Log one JSON object per line."),
) -> None:
    """Spanline: tracing and metrics with a batching span-export pipeline."""
    from spanline.core.logging import configure_logging

    configure_logging(json_output=json_logs, level="DEBUG" if verbose else "INFO")

    if no_dotenv:
        if env_file is not None:
            typer.secho("Warning: --env-file has no effect with --no-dotenv.", fg=typer.colors.YELLOW, err=True)
        return
    _load_env_file(env_file)


def _error_panel(title: str, message: str, *, hint: str | None = None, details: list[str] | None = None) -> None:
    """Print a red rich Panel on stderr."""
    from rich.console import Console
    from rich.panel import Panel
    from rich.text import Text

    body = Text(message)
    if details:
        body.append("\n")
        for detail in details:
            body.append(f"\n  • {detail}", style="dim")
    if hint:
        body.append("\n\nHint: ", style="bold yellow")
        body.append(hint, style="yellow")

    Console(stderr=True).print(Panel(body, title=f"[bold red]{title}[/]", border_style="red", padding=(0, 1)))


def _load_settings_or_exit(settings: str) -> SpanlineSettings:
    """load_settings() with each failure rendered as a panel (exit status 1)."""
    path = Path(settings).expanduser()
    try:
        return load_settings(path)
    except (YamlParserError, YamlScannerError) as e:
        problem = getattr(e, "problem", None)
        _error_panel(
            "YAML Syntax Error",
            f"{path.name} is not valid YAML",
            details=[str(problem)] if problem else None,
            hint="Look for tabs, unbalanced quotes or brackets, and misaligned indentation.",
        )
    except FileNotFoundError:
        _error_panel("File Not Found", f"No settings file at {settings}", hint="Pass an existing YAML file with --settings.")
    except ValidationError as e:
        _error_panel(
            "Configuration Validation Failed",
            f"{path.name} does not match the settings schema",
            details=[f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()],
        )
    except ValueError as e:
        # ValidationError is a ValueError too, so this branch comes last
        message = str(e)
        missing = re.search(r"environment variable '(\w+)'", message)
        if missing is None:
            _error_panel("Configuration Error", message)
        else:
            name = missing.group(1)
            _error_panel(
                "Missing Environment Variable",
                message,
                hint=f"export {name}=... or give a default: ${{{name}:-value}}",
            )
    raise typer.Exit(1)


@app.command()
def validate(
    settings: str = typer.Option(..., "--settings", "-s", help="Path to settings YAML file."),
) -> None:
    """Validate settings and exporter options without exporting anything."""
    from spanline.contracts.config import RuntimeTracingConfig
    from spanline.telemetry.errors import ExporterConfigurationError
    from spanline.telemetry.factory import discover_exporter_registry

    config = _load_settings_or_exit(settings)
    runtime = RuntimeTracingConfig.from_settings(config)

    try:
        registry = discover_exporter_registry()
        for processor in runtime.processors:
            exporter_name = processor.exporter.name
            if exporter_name not in registry:
                raise ExporterConfigurationError(
                    exporter_name,
                    f"Unknown exporter. Available exporters: {sorted(registry)}",
                )
            exporter = registry[exporter_name]()
            exporter.configure(dict(processor.exporter.options))
            exporter.shutdown()
    except ExporterConfigurationError as e:
        _error_panel(
            title="Exporter Configuration Error",
            message=str(e),
            hint="Check exporter names and options, and that optional extras are installed.",
        )
        raise typer.Exit(1) from None

    typer.echo("Configuration valid!")
    typer.echo(f"  Service: {config.service.name}")
    typer.echo(f"  Tracing: {'enabled' if runtime.enabled else 'disabled'}")
    for index, processor in enumerate(runtime.processors):
        line = f"  Processor {index}: {processor.type.value} -> {processor.exporter.name}"
        if processor.batch is not None:
            batch = processor.batch
            line += (
                f" (max_queue_size={batch.max_queue_size}, max_export_batch_size={batch.max_export_batch_size},"
                f" scheduled_delay_millis={batch.scheduled_delay_millis},"
                f" export_timeout_millis={batch.export_timeout_millis})"
            )
        typer.echo(line)
    typer.echo(f"  Metrics: {'enabled' if config.metrics.enabled else 'disabled'}")


def _default_smoke_settings() -> SpanlineSettings:
    """Simple processor printing spans to stdout."""
    return SpanlineSettings(
        tracing=TracingSettings(
            processors=[
                SpanProcessorSettings(
                    type="simple",
                    exporter=ExporterSettings(name="console", options={"format": "pretty"}),
                )
            ]
        )
    )


def _processor_health(processor: SpanProcessorProtocol) -> dict[str, Any] | None:
    health = getattr(processor, "health_metrics", None)
    return dict(health) if health is not None else None


@app.command()
def smoke(
    settings: str | None = typer.Option(
        None,
        "--settings",
        "-s",
        help="Path to settings YAML file (default: console exporter on stdout).",
    ),
) -> None:
    """Emit one test.initialization span through the configured pipeline."""
    from spanline.core.logging import configure_logging
    from spanline.telemetry.errors import ExporterConfigurationError
    from spanline.telemetry.factory import create_tracer_provider
    from spanline.trace.tracer import emit_smoke_span

    config = _load_settings_or_exit(settings) if settings is not None else _default_smoke_settings()
    if settings is not None:
        configure_logging(json_output=config.logging.json_output, level=config.logging.level)

    try:
        provider = create_tracer_provider(config)
    except ExporterConfigurationError as e:
        _error_panel(
            title="Exporter Configuration Error",
            message=str(e),
            hint="Run 'spanline validate --settings ...' for details.",
        )
        raise typer.Exit(1) from None

    tracer = provider.get_tracer(config.service.name, config.service.version)
    span = emit_smoke_span(tracer)
    flushed = provider.force_flush()
    processors = provider.active_span_processor.processors
    provider.shutdown()

    typer.echo(f"Smoke span emitted: trace_id={span.context.trace_id_hex} span_id={span.context.span_id_hex}")
    typer.echo(f"  Flushed: {flushed}")
    for index, processor in enumerate(processors):
        health = _processor_health(processor)
        if health is not None:
            typer.echo(f"  Processor {index} ({type(processor).__name__}): {health}")


if __name__ == "__main__":
    app()
