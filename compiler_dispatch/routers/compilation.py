"""Compile API endpoints."""

import logging

from fastapi import APIRouter, Request
from fastapi.responses import Response

from compiler_dispatch.compile_handler import CompileHandler
from compiler_dispatch.errors import DelegationFailure
from compiler_dispatch.renderer import render_error

logger = logging.getLogger(__name__)


def setup_router(handler: CompileHandler) -> APIRouter:
    """Create the compile router.

    Args:
        handler: The compile handler serving both routes

    Returns:
        Configured APIRouter
    """
    router = APIRouter(prefix="/api", tags=["compile"])

    @router.post("/compiler/{compiler_id}/compile")
    async def compile_with(compiler_id: str, request: Request) -> Response:
        """Compile with the compiler named in the path.

        The body is either a structured JSON request or, for any other content
        type, the raw source text with options in the query string.
        """
        return await handler.handle(request, compiler_id)

    @router.post("/compile")
    async def compile_structured(request: Request) -> Response:
        """Compile a structured request whose body names the compiler."""
        return await handler.handle(request)

    return router


async def delegation_failure_handler(request: Request, exc: DelegationFailure) -> Response:
    """Exception handler turning an unreachable peer into a 502 response."""
    logger.error("Delegation to %s failed for %s", exc.target, request.url.path)
    return render_error(exc)
