"""structlog setup for processes embedding Memoir."""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import IO, Any

import structlog

from memoir.models.config import LoggingConfig

_log_file: IO[str] | None = None


def configure_logging(config: LoggingConfig | None = None) -> None:
    """
    Configure structlog for Memoir's ``memoir.*`` loggers.

    Events below INFO are dropped unless ``config.debug`` is set. Output goes
    to stderr, or is appended to ``config.file`` when given, rendered as
    console key/value text or as JSON lines. A log file opened by an earlier
    call is closed first.
    """
    global _log_file

    config = config or LoggingConfig()
    level = logging.DEBUG if config.debug else logging.INFO

    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if config.json_format:
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=config.file is None))

    if _log_file is not None:
        _log_file.close()
        _log_file = None

    if config.file is not None:
        log_path = Path(config.file).expanduser()
        log_path.parent.mkdir(parents=True, exist_ok=True)
        _log_file = log_path.open("a", encoding="utf-8")
        logger_factory: Any = structlog.WriteLoggerFactory(file=_log_file)
    else:
        logger_factory = structlog.PrintLoggerFactory(file=sys.stderr)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=logger_factory,
        cache_logger_on_first_use=False,
    )
