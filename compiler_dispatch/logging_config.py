"""Logging setup for the dispatch service.

Everything the service logs goes through the ``compiler_dispatch`` logger
hierarchy. The level comes from ``DISPATCH_LOG_LEVEL`` unless given explicitly.
uvicorn follows the service level. httpx and httpcore, which log every
forwarded request, stay at WARNING unless the service runs at DEBUG.
"""

from __future__ import annotations

import logging
import os

APP_LOGGER = "compiler_dispatch"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

_UVICORN_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")
_HTTP_CLIENT_LOGGERS = ("httpx", "httpcore")


def resolve_level(level: str | None = None) -> int:
    """Turn a level name (or ``DISPATCH_LOG_LEVEL``) into a logging level.

    Unknown names fall back to INFO.
    """
    name = (level or os.getenv("DISPATCH_LOG_LEVEL") or "INFO").upper()
    resolved = logging.getLevelName(name)
    return resolved if isinstance(resolved, int) else logging.INFO


def configure_logging(level: str | None = None) -> logging.Logger:
    """Configure service logging and return the ``compiler_dispatch`` logger."""
    resolved = resolve_level(level)
    logging.basicConfig(level=resolved, format=LOG_FORMAT, datefmt=LOG_DATEFMT)

    app_logger = logging.getLogger(APP_LOGGER)
    app_logger.setLevel(resolved)

    for name in _UVICORN_LOGGERS:
        logging.getLogger(name).setLevel(resolved)

    client_level = resolved if resolved <= logging.DEBUG else max(resolved, logging.WARNING)
    for name in _HTTP_CLIENT_LOGGERS:
        logging.getLogger(name).setLevel(client_level)

    app_logger.debug("Logging configured at %s", logging.getLevelName(resolved))
    return app_logger
