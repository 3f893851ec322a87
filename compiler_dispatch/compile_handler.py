"""Dispatch of compile requests.

Each request goes through the same steps: resolve the addressed compiler, then
either forward the untouched request to the remote peer hosting the compiler,
or normalize it, run the compiler locally and render the outcome.
"""

import logging
from typing import Any, Dict, Optional

from starlette.requests import Request
from starlette.responses import Response

from compiler_dispatch.compiler_registry import CompilerRegistry
from compiler_dispatch.compilers import CompilerInstance
from compiler_dispatch.error_reporting import ErrorReporter, LoggingErrorReporter
from compiler_dispatch.errors import BadRequest, CompilerNotFound, ErrorKind
from compiler_dispatch.models import CompileRequestBody
from compiler_dispatch.proxy_client import ProxyClient
from compiler_dispatch.renderer import as_dispatch_error, render_error, render_result
from compiler_dispatch.request_parser import (
    NormalizedRequest,
    is_structured,
    normalize_legacy,
    normalize_structured,
    read_legacy_source,
    read_structured_body,
)

logger = logging.getLogger(__name__)


class CompileHandler:
    """Handles compile requests against the live compiler registry."""

    def __init__(
        self,
        registry: CompilerRegistry,
        proxy_client: ProxyClient,
        reporter: Optional[ErrorReporter] = None,
        text_banner: Optional[str] = None,
    ):
        """Initialize the handler.

        Args:
            registry: Registry used to resolve compilers
            proxy_client: Client used to forward requests to remote peers
            reporter: Sink for unexpected exceptions
            text_banner: Optional banner line for plain-text responses
        """
        self._registry = registry
        self._proxy_client = proxy_client
        self._reporter = reporter or LoggingErrorReporter()
        self._text_banner = text_banner

    def compiler_for(
        self,
        request: Request,
        compiler_id: Optional[str],
        body: Optional[CompileRequestBody] = None,
    ) -> Optional[CompilerInstance]:
        """Resolve the compiler a request addresses.

        The language comes from the ``lang`` query parameter or the structured
        body; the compiler id from the path or, for structured requests, the body.
        """
        lang = request.query_params.get("lang") or (body.lang if body is not None else None)
        if body is not None:
            compiler_id = compiler_id or body.compiler
        return self._registry.find(lang, compiler_id)

    async def parse_request(
        self,
        request: Request,
        compiler: CompilerInstance,
        body: Optional[CompileRequestBody],
    ) -> NormalizedRequest:
        if body is not None:
            return normalize_structured(body, compiler)
        source = await read_legacy_source(request)
        return normalize_legacy(source, request.query_params, compiler)

    async def handle(self, request: Request, compiler_id: Optional[str] = None) -> Response:
        """Handle one compile request.

        Args:
            request: The incoming request
            compiler_id: Compiler id from the path, if the route has one

        Returns:
            The response to send

        Raises:
            DelegationFailure: If the compiler is remote and its peer is unreachable
        """
        try:
            body = await read_structured_body(request) if is_structured(request) else None

            compiler = self.compiler_for(request, compiler_id, body)
            if compiler is None:
                raise CompilerNotFound(compiler_id or (body.compiler if body else None))
        except (BadRequest, CompilerNotFound) as e:
            logger.info("Rejected compile request %s: %s", request.url.path, e.message)
            return render_error(e)

        remote = compiler.get_remote()
        if remote:
            logger.debug("Forwarding %s request to %s", compiler.config.id, remote)
            return await self._proxy_client.forward(request, remote)

        try:
            parsed = await self.parse_request(request, compiler, body)
        except BadRequest as e:
            logger.info("Rejected compile request %s: %s", request.url.path, e.message)
            return render_error(e)

        if parsed.source is None:
            logger.info("Rejected compile request for %s: no source", compiler.config.id)
            return render_error(BadRequest("Bad request: no source supplied"))

        context = self._context(request, compiler)
        try:
            result = await compiler.compile(
                parsed.source,
                parsed.options,
                parsed.backend_options,
                parsed.filters,
            )
        except Exception as error:
            logger.error("Error during compilation with %s: %s", compiler.config.id, error)
            dispatch_error = as_dispatch_error(error)
            if dispatch_error.kind is ErrorKind.INTERNAL_ERROR:
                self._reporter.capture(error, context)
            return render_error(dispatch_error)

        return render_result(
            result,
            request.headers.get("accept"),
            self._text_banner,
            self._reporter,
            context,
        )

    @staticmethod
    def _context(request: Request, compiler: CompilerInstance) -> Dict[str, Any]:
        return {
            "method": request.method,
            "path": request.url.path,
            "lang": compiler.config.lang,
            "compiler": compiler.config.id,
        }
