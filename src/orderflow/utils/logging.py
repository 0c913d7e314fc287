"""Logging configuration for orderflow.

Modules log through ``structlog.get_logger(__name__)`` with key/value events.
Records go through the standard library so Protean's own log lines land on the
same stdout handler. Production renders JSON; everything else renders plain
console lines.

Gateway credentials and webhook signatures must never reach the logs, so a
processor masks them before rendering, wherever they appear in the event.
"""

import logging
import os
import re
import sys
from typing import Any

import structlog

_LEVELS_BY_ENV = {
    "production": "INFO",
    "staging": "INFO",
    "development": "DEBUG",
    "test": "WARNING",
}

_SECRET_KEYS = re.compile(r"(secret|signature|authorization|access_code|password|token)", re.IGNORECASE)
_MASK = "***"

# Libraries that log every request or connection at INFO
_QUIET_LOGGERS = ("protean", "urllib3", "asyncio", "sqlalchemy.engine", "uvicorn.access")


def _environment() -> str:
    return (os.getenv("PROTEAN_ENV") or "development").lower()


def log_level() -> str:
    """``LOG_LEVEL`` wins; otherwise the level follows ``PROTEAN_ENV``."""
    return os.getenv("LOG_LEVEL", _LEVELS_BY_ENV.get(_environment(), "INFO")).upper()


def _masked(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: (_MASK if _SECRET_KEYS.search(str(key)) else _masked(item)) for key, item in value.items()}
    if isinstance(value, list | tuple):
        return [_masked(item) for item in value]
    return value


def mask_secrets(_logger, _method_name, event_dict: dict) -> dict:
    """structlog processor: replace credential-like values with ``***``."""
    return {
        key: (_MASK if key != "event" and _SECRET_KEYS.search(key) else _masked(value))
        for key, value in event_dict.items()
    }


def _route_stdlib_to_stdout(level: str) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)

    root = logging.getLogger()
    root.handlers = [handler]
    root.setLevel(level)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def _configure_structlog(json_output: bool) -> None:
    renderer = structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer(colors=False)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            mask_secrets,
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_logging() -> None:
    _route_stdlib_to_stdout(log_level())
    _configure_structlog(json_output=_environment() in ("production", "staging"))


def add_context(**kwargs: Any) -> None:
    """Bind request-scoped values (path, method, user) to every later log line."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    structlog.contextvars.clear_contextvars()
