# src/spanline/core/logging.py
"""structlog setup shared by the library and the CLI.

Both structlog loggers and plain ``logging`` loggers (the OpenTelemetry
exporters and urllib3 log through the latter) end up in one handler whose
ProcessorFormatter renders every record with the same processor chain.
Records emitted while a span is current carry its trace_id/span_id.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

# Transport and SDK loggers that flood DEBUG output during exports.
_QUIET_LOGGERS: tuple[str, ...] = (
    "urllib3",
    "urllib3.connectionpool",
    "opentelemetry",
    "opentelemetry.sdk",
    "opentelemetry.exporter",
    "grpc",
)


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Strip the _record/_from_structlog keys ProcessorFormatter injects."""
    event_dict.pop("_record", None)
    event_dict.pop("_from_structlog", None)
    return event_dict


def add_trace_context(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Add trace_id/span_id of the ambient current span to the log record.

    Explicitly bound trace_id/span_id values are left untouched. Nothing is
    added when no span is current.
    """
    from spanline.trace.context import get_current_span

    span = get_current_span()
    if span is None:
        return event_dict
    span_context = span.context
    event_dict.setdefault("trace_id", span_context.trace_id_hex)
    event_dict.setdefault("span_id", span_context.span_id_hex)
    return event_dict


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        add_trace_context,
    ]


def _renderers(json_output: bool) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_bookkeeping,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [_drop_formatter_bookkeeping, structlog.dev.ConsoleRenderer(colors=True)]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Route structlog and stdlib logging to one handler.

    Safe to call more than once; each call replaces the root handlers.

    Args:
        json_output: Render one JSON object per line instead of the
            colored console format.
        level: Root log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        stream: Destination (default: sys.stdout at call time).
    """
    root_level = logging.getLevelName(level.upper())
    if not isinstance(root_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Off so a later configure_logging() call takes effect everywhere
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_renderers(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(root_level)

    # At DEBUG these would drown spanline's own records
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(root_level, logging.WARNING))


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Typed shortcut for structlog.get_logger(name)."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
