# src/phaseconf/core/logging.py
"""Logging setup for phaseconf.

phaseconf modules log through structlog. Host applications that never call
configure_logging() keep whatever structlog/stdlib setup they already have;
calling it installs one stdout handler on the root logger whose formatter
runs both structlog events and plain stdlib records through the same chain,
with redact_event applied before rendering.
"""

import logging
import sys
from typing import IO, Any

import structlog
from structlog.stdlib import ProcessorFormatter

from phaseconf.core.config import LoggingSettings
from phaseconf.core.redaction import redact_event

# Transport libraries that log request lines and headers at DEBUG
QUIET_LOGGERS: tuple[str, ...] = ("httpx", "httpcore", "urllib3", "urllib3.connectionpool")


def _pre_chain() -> list[Any]:
    return [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        redact_event,
    ]


def _render_chain(json_output: bool) -> list[Any]:
    if json_output:
        return [
            ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    return [
        ProcessorFormatter.remove_processors_meta,
        structlog.dev.ConsoleRenderer(colors=False),
    ]


def configure_logging(
    *,
    json_output: bool = False,
    level: str = "INFO",
    stream: IO[str] | None = None,
) -> None:
    """Route structlog and stdlib logging through one redacting handler.

    Args:
        json_output: JSON lines instead of console rendering
        level: Root level name (DEBUG, INFO, WARNING, ERROR)
        stream: Output stream (default: sys.stdout at call time)
    """
    numeric_level = logging.getLevelName(level.upper())
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level!r}")

    pre_chain = _pre_chain()
    structlog.configure(
        processors=[*pre_chain, ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # reconfiguration must reach loggers created earlier
        cache_logger_on_first_use=False,
    )

    handler = logging.StreamHandler(stream if stream is not None else sys.stdout)
    handler.setFormatter(ProcessorFormatter(processors=_render_chain(json_output), foreign_pre_chain=pre_chain))

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(numeric_level)

    quiet_level = max(numeric_level, logging.WARNING)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def configure_from_settings(settings: LoggingSettings) -> None:
    """configure_logging() driven by the ``logging`` settings section."""
    configure_logging(json_output=settings.json_output, level=settings.level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name)
    return logger
