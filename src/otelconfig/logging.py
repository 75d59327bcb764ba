# src/otelconfig/logging.py
"""Structured logging setup for the otelconfig CLI and embedding applications.

Library modules only call ``structlog.get_logger(__name__)``; nothing is
configured on import, so an application embedding otelconfig keeps its own
logging setup.

``configure_logging`` sends structlog events and stdlib records (the
OpenTelemetry SDK, grpc and urllib3 all log through stdlib) through one
ProcessorFormatter, so both come out in the same format. Every event carries
the emitting module (``logger``) and any context bound with
``structlog.contextvars``; the CLI binds ``config_file`` for the document it
is working on.
"""

import logging
import sys
from typing import Any, TextIO

import structlog
from structlog.stdlib import ProcessorFormatter

LEVELS: tuple[str, ...] = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

# SDK exporters and transports log every export attempt and connection
_NOISY_LOGGERS: tuple[str, ...] = (
    "opentelemetry.sdk",
    "opentelemetry.exporter",
    "opentelemetry.exporter.otlp.proto.grpc.exporter",
    "grpc",
    "urllib3.connectionpool",
    "requests",
)


def _drop_formatter_bookkeeping(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: dict[str, Any],
) -> dict[str, Any]:
    """Remove the ``_record``/``_from_structlog`` keys ProcessorFormatter adds."""
    del event_dict["_record"]
    del event_dict["_from_structlog"]
    return event_dict


def _shared_processors() -> list[Any]:
    """Processors applied to structlog events and foreign stdlib records alike."""
    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
    ]


def _render_processors(json_output: bool, stream: TextIO) -> list[Any]:
    if json_output:
        return [
            _drop_formatter_bookkeeping,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(sort_keys=True),
        ]
    return [
        _drop_formatter_bookkeeping,
        structlog.dev.ConsoleRenderer(colors=stream.isatty()),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: TextIO | None = None,
) -> None:
    """Configure structlog and stdlib logging.

    Args:
        json_output: Emit one JSON object per line instead of console output
        level: Root level name, one of LEVELS (case-insensitive)
        stream: Destination; stderr when omitted so stdout stays free for
            command output

    Raises:
        ValueError: Unknown level name
    """
    level_name = level.upper()
    if level_name not in LEVELS:
        raise ValueError(f"unknown log level {level!r}; expected one of {', '.join(LEVELS)}")
    log_level = logging.getLevelName(level_name)
    destination = stream if stream is not None else sys.stderr

    shared = _shared_processors()
    structlog.configure(
        processors=[*shared, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(destination)
    handler.setFormatter(
        ProcessorFormatter(
            processors=_render_processors(json_output, destination),
            foreign_pre_chain=shared,
        )
    )

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(log_level)

    # Never less restrictive than root
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))
