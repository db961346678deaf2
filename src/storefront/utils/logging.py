"""Logging configuration for the storefront domain.

Standard library handlers own the output streams; structlog renders the
event dictionaries on top of them (JSON in production, console elsewhere).
Request-scoped fields such as ``tenant_id`` travel through structlog's
contextvars so service code never has to pass them to the logger.
"""

import logging
import logging.handlers
import os
import sys
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import structlog

LOG_LEVELS = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

# Provider SDKs and the framework are chatty at INFO
QUIET_LOGGERS = ("urllib3", "stripe", "protean")

ROTATE_BYTES = 10 * 1024 * 1024
ROTATE_BACKUPS = 5


def get_environment() -> str:
    return (os.getenv("PROTEAN_ENV") or os.getenv("ENVIRONMENT") or "development").lower()


def get_log_level() -> str:
    return os.getenv("LOG_LEVEL", LOG_LEVELS.get(get_environment(), "INFO")).upper()


def _rotating_handler(path: Path, level) -> logging.Handler:
    handler = logging.handlers.RotatingFileHandler(
        filename=path,
        maxBytes=ROTATE_BYTES,
        backupCount=ROTATE_BACKUPS,
        encoding="utf-8",
    )
    handler.setLevel(level)
    return handler


def setup_stdlib_logging() -> None:
    """Route everything to stdout, a rotating storefront.log and an alerts file."""
    log_level = get_log_level()
    log_dir = Path(os.getenv("LOG_DIR", "logs"))
    log_dir.mkdir(exist_ok=True)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(log_level)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers = [
        console,
        _rotating_handler(log_dir / "storefront.log", log_level),
        # Compensation failures and unrecoverable settlements end up here
        _rotating_handler(log_dir / "storefront_alerts.log", logging.ERROR),
    ]

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def drop_empty_values(logger, method_name, event_dict):
    """Omit keys whose value is None (unset tracking numbers, missing emails...)."""
    return {key: value for key, value in event_dict.items() if value is not None}


def setup_structlog() -> None:
    env = get_environment()

    processors = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        drop_empty_values,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if env in ("production", "staging"):
        processors.append(structlog.processors.JSONRenderer(sort_keys=True))
    else:
        processors.append(
            structlog.dev.ConsoleRenderer(
                colors=env != "test",
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=env == "development"),
            )
        )

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        # Tests swap processors with structlog.testing.capture_logs
        cache_logger_on_first_use=env != "test",
    )


def configure_logging() -> None:
    setup_stdlib_logging()
    setup_structlog()


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    return structlog.get_logger(name)


@contextmanager
def tenant_context(tenant_id: str | None, **fields: Any) -> Iterator[None]:
    """Bind ``tenant_id`` (and any extra fields) to every log line emitted inside the block."""
    bound = {key: value for key, value in {"tenant_id": tenant_id, **fields}.items() if value}
    structlog.contextvars.bind_contextvars(**bound)
    try:
        yield
    finally:
        structlog.contextvars.unbind_contextvars(*bound)
