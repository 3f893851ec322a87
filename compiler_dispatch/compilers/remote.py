"""Compiler type for compilers hosted on another instance of the service."""

import logging
from typing import Any, Dict, List, Optional

from compiler_dispatch.compilation_env import CompilationEnvironment
from compiler_dispatch.compilers.base import BaseCompiler
from compiler_dispatch.errors import InternalError
from compiler_dispatch.models import CompilationResult, CompilerConfig

logger = logging.getLogger(__name__)


class RemoteCompiler(BaseCompiler):
    """Placeholder for a compiler that lives on a remote peer.

    Requests addressed to it are forwarded, so it never compiles anything itself.
    """

    async def compile(
        self,
        source: str,
        options: List[str],
        backend_options: Any,
        filters: Dict[str, bool],
    ) -> CompilationResult:
        raise InternalError(f"Compiler {self.id} is hosted on {self.get_remote()} and cannot run locally")


async def create_remote_compiler(
    config: CompilerConfig,
    environment: CompilationEnvironment,
    lang: str,
) -> Optional[RemoteCompiler]:
    """Factory for the ``remote`` compiler type."""
    if not config.remote:
        logger.warning("Remote compiler %s has no remote address configured", config.id)
        return None
    return RemoteCompiler(config, environment)
