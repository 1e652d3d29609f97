"""Structured logging for the history engine and its CLI."""

import sys
import logging
import logging.handlers
from pathlib import Path
from typing import List

import structlog
from structlog.stdlib import LoggerFactory

from wallet_history.models.config import HistoryConfig

# Per-request INFO lines from the HTTP stack drown out aggregation events
NOISY_LOGGERS = ("httpx", "httpcore")


def _processors(config: HistoryConfig) -> List:
    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if config.log_format == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty()))
    return processors


def _rotating_handler(config: HistoryConfig, level: int) -> logging.Handler:
    log_path = Path(config.log_file)
    log_path.parent.mkdir(parents=True, exist_ok=True)

    handler = logging.handlers.RotatingFileHandler(
        log_path,
        maxBytes=config.log_max_size_mb * 1024 * 1024,
        backupCount=config.log_backup_count,
    )
    handler.setLevel(level)
    return handler


def setup_logging(config: HistoryConfig) -> None:
    """Route structlog through stdlib logging at ``config.log_level``."""
    level = getattr(logging, config.log_level.upper())

    logging.basicConfig(level=level, format="%(message)s", stream=sys.stdout)
    if level > logging.DEBUG:
        for name in NOISY_LOGGERS:
            logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=_processors(config),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    if config.log_file:
        logging.getLogger().addHandler(_rotating_handler(config, level))
