"""Compiler registry API endpoints."""

import logging
from typing import Awaitable, Callable, List, Optional

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from compiler_dispatch.compiler_registry import CompilerRegistry
from compiler_dispatch.errors import RegistryRebuildError
from compiler_dispatch.models import CompilerInfo

logger = logging.getLogger(__name__)

ReloadCallback = Callable[[], Awaitable[List[CompilerInfo]]]


def _dump(infos: List[CompilerInfo]) -> list:
    return [info.model_dump(by_alias=True, exclude_none=True) for info in infos]


def setup_router(registry: CompilerRegistry, reload_callback: ReloadCallback) -> APIRouter:
    """Create the compilers router.

    Args:
        registry: The live compiler registry
        reload_callback: Coroutine function that re-reads configuration and
            rebuilds the registry

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix="/api", tags=["compilers"])

    @router.get("/compilers")
    async def list_compilers(lang: Optional[str] = None):
        """List the compilers in the live registry, optionally for one language."""
        return JSONResponse(_dump(registry.list_compilers(lang)))

    @router.post("/compilers/reload")
    async def reload_compilers():
        """Rebuild the registry from the configuration file.

        The new set of compilers replaces the old one only once it is complete;
        on failure the previous set stays in service.
        """
        try:
            infos = await reload_callback()
        except RegistryRebuildError as e:
            logger.error("Compiler reload failed: %s", e)
            return JSONResponse({"error": f"Compiler reload failed: {e}"}, status_code=500)
        return JSONResponse({"count": len(infos), "compilers": _dump(infos)})

    @router.get("/health")
    async def health():
        """Report liveness, compiler count and whether compilations are running."""
        return JSONResponse(
            {
                "status": "ok",
                "compilers": registry.compiler_count,
                "busy": registry.environment.is_busy(),
            }
        )

    return router
