"""Error telemetry sink."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol, runtime_checkable

logger = logging.getLogger("compiler_dispatch.errors")


@runtime_checkable
class ErrorReporter(Protocol):
    """Anything that can record an unexpected exception with some context."""

    def capture(self, exc: BaseException, context: Optional[Mapping[str, Any]] = None) -> None:
        ...


class LoggingErrorReporter:
    """Reports captured exceptions to the ``compiler_dispatch.errors`` logger."""

    def capture(self, exc: BaseException, context: Optional[Mapping[str, Any]] = None) -> None:
        logger.error(
            "Captured exception %s: %s (context=%s)",
            type(exc).__name__,
            exc,
            dict(context or {}),
            exc_info=(type(exc), exc, exc.__traceback__),
        )
