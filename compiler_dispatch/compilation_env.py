"""Shared environment in which compilers run.

The environment bounds how many compilations run at once, supplies the
per-compilation timeout and scratch directories, and tracks whether any
compilation is queued or running so that maintenance work can stay out of the
way.
"""

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from compiler_dispatch.temp_cleanup import TempDirTracker


class CompilationEnvironment:
    """Resource limits and busy-state shared by every compiler instance."""

    DEFAULT_COMPILE_TIMEOUT = 10.0
    DEFAULT_MAX_CONCURRENT = 2

    def __init__(
        self,
        compile_timeout: float = DEFAULT_COMPILE_TIMEOUT,
        max_concurrent: int = DEFAULT_MAX_CONCURRENT,
        temp_dirs: Optional[TempDirTracker] = None,
    ):
        """Initialize the environment.

        Args:
            compile_timeout: Seconds a single compiler process may run
            max_concurrent: Maximum number of compilations running at once
            temp_dirs: Scratch directory tracker (a fresh one by default)
        """
        self.compile_timeout = compile_timeout
        self.max_concurrent = max(1, max_concurrent)
        self.temp_dirs = temp_dirs or TempDirTracker()
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._pending = 0

    @property
    def pending(self) -> int:
        """Number of compilations queued or running."""
        return self._pending

    def is_busy(self) -> bool:
        return self._pending > 0

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        """Hold one of the concurrent compilation slots for the duration of the block."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.max_concurrent)

        self._pending += 1
        try:
            async with self._semaphore:
                yield
        finally:
            self._pending -= 1
