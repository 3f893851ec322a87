"""Scratch directory tracking and periodic cleanup.

Compilers write their inputs and outputs into scratch directories created via
``TempDirTracker.mkdtemp``. A single process-wide ``TempCleanupService``
removes them every few minutes. A tick is skipped whenever the compilation
environment reports itself busy, so cleanup never pulls a directory out from
under a running compilation.
"""

import asyncio
import logging
import os
import shutil
import tempfile
import threading
from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Set

if TYPE_CHECKING:
    from compiler_dispatch.compilation_env import CompilationEnvironment

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_INTERVAL = 600.0


class TempDirTracker:
    """Creates scratch directories and remembers them for later removal."""

    def __init__(self, prefix: str = "compiler-dispatch-", base_dir: Optional[str] = None):
        self._prefix = prefix
        self._base_dir = base_dir
        self._dirs: Set[str] = set()
        self._lock = threading.Lock()

    @property
    def tracked_count(self) -> int:
        with self._lock:
            return len(self._dirs)

    def mkdtemp(self) -> str:
        """Create and track a new scratch directory."""
        path = tempfile.mkdtemp(prefix=self._prefix, dir=self._base_dir)
        with self._lock:
            self._dirs.add(path)
        return path

    def take_tracked(self) -> List[str]:
        """Stop tracking every directory created so far and return them."""
        with self._lock:
            dirs = list(self._dirs)
            self._dirs.clear()
        return dirs

    @staticmethod
    def remove_dirs(dirs: Iterable[str]) -> Dict[str, int]:
        """Remove the given directories.

        Returns:
            Counts of removed files and directories
        """
        stats = {"files": 0, "dirs": 0}
        for path in dirs:
            if not os.path.isdir(path):
                continue
            for _root, subdirs, files in os.walk(path):
                stats["files"] += len(files)
                stats["dirs"] += len(subdirs)
            shutil.rmtree(path)
            stats["dirs"] += 1
        return stats

    def cleanup(self) -> Dict[str, int]:
        """Remove every tracked directory."""
        return self.remove_dirs(self.take_tracked())


class TempCleanupService:
    """Background task that periodically empties the scratch directory tracker.

    Use ``get_cleanup_service()`` rather than constructing this directly; the
    service is meant to exist once per process.
    """

    def __init__(self):
        self._started = False
        self._task: Optional[asyncio.Task] = None
        self._environment: Optional["CompilationEnvironment"] = None

    @property
    def started(self) -> bool:
        return self._started

    async def start(
        self,
        environment: "CompilationEnvironment",
        interval: float = DEFAULT_CLEANUP_INTERVAL,
    ) -> None:
        """Start the cleanup loop. Calling this again while running is a no-op."""
        if self._started:
            return
        self._started = True
        self._environment = environment

        logger.info("Cleaning temp dirs every %s secs", interval)
        self._task = asyncio.create_task(self._cleanup_loop(interval), name="temp_dir_cleanup")

    async def stop(self) -> None:
        """Cancel the cleanup loop."""
        if not self._started:
            return
        self._started = False

        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        self._task = None
        logger.info("Temp dir cleanup stopped")

    async def run_once(self) -> Optional[Dict[str, int]]:
        """Run a single cleanup pass.

        Returns:
            Cleanup stats, or None if the pass was skipped or failed
        """
        env = self._environment
        if env is None:
            return None

        if env.is_busy():
            logger.warning("Skipping temporary file clean up as compiler environment is busy")
            return None

        # Compilations that start after this point keep their directories
        dirs = env.temp_dirs.take_tracked()
        loop = asyncio.get_running_loop()
        try:
            stats = await loop.run_in_executor(None, env.temp_dirs.remove_dirs, dirs)
        except OSError as e:
            logger.error("Error cleaning directories: %s", e)
            return None

        logger.debug("Directory cleanup stats: %s", stats)
        return stats

    async def _cleanup_loop(self, interval: float) -> None:
        try:
            while self._started:
                await asyncio.sleep(interval)
                await self.run_once()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error("Fatal error in temp dir cleanup loop: %s", e, exc_info=True)


_cleanup_service: Optional[TempCleanupService] = None


def get_cleanup_service() -> TempCleanupService:
    """Return the process-wide cleanup service, creating it on first use."""
    global _cleanup_service
    if _cleanup_service is None:
        _cleanup_service = TempCleanupService()
    return _cleanup_service
