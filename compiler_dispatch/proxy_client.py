"""Reverse proxy used to forward compile requests to remote peers.

When a compiler is hosted on another instance of the service, the incoming
request is replayed against that peer unchanged: same method, same original
path and query string, same body and end-to-end headers. The peer's response is
returned to the client as-is.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

import httpx
from starlette.requests import Request
from starlette.responses import Response

from compiler_dispatch.errors import DelegationFailure

logger = logging.getLogger(__name__)

HOP_BY_HOP_HEADERS = frozenset(
    {
        "connection",
        "keep-alive",
        "proxy-authenticate",
        "proxy-authorization",
        "te",
        "trailer",
        "trailers",
        "transfer-encoding",
        "upgrade",
    }
)

# httpx recomputes these for the outgoing request, and decodes response bodies
_REQUEST_SKIP = HOP_BY_HOP_HEADERS | {"host", "content-length"}
_RESPONSE_SKIP = HOP_BY_HOP_HEADERS | {"content-length", "content-encoding"}


def _filter_headers(headers: Iterable[Tuple[str, str]], skip: frozenset) -> Dict[str, str]:
    return {name: value for name, value in headers if name.lower() not in skip}


def original_path(request: Request) -> str:
    """Path and query of the request exactly as the client sent it."""
    raw_path = request.scope.get("raw_path")
    path = raw_path.decode("latin-1") if raw_path else request.url.path
    query = request.url.query
    return f"{path}?{query}" if query else path


class ProxyClient:
    """HTTP client that forwards requests to remote peers.

    Failures are not retried: a peer that cannot be reached is reported to the
    caller as a ``DelegationFailure``.
    """

    DEFAULT_TIMEOUT = 60.0

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the proxy client.

        Args:
            timeout: Timeout for a forwarded request in seconds
            transport: Optional httpx transport (used by tests)
        """
        self._timeout = timeout
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self) -> None:
        """Initialize the HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self._timeout),
                limits=httpx.Limits(max_keepalive_connections=20, max_connections=50),
                follow_redirects=False,
                transport=self._transport,
            )
            logger.debug("ProxyClient HTTP client started")

    async def close(self) -> None:
        """Close the HTTP client and release its connections."""
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.debug("ProxyClient HTTP client closed")

    def build_url(self, target: str, request: Request) -> str:
        return target.rstrip("/") + original_path(request)

    async def forward(self, request: Request, target: str) -> Response:
        """Forward a request to ``target`` and relay the peer's response.

        Args:
            request: The incoming request, before any routing changes
            target: Base URL of the remote peer

        Returns:
            Response mirroring the peer's status, headers and body

        Raises:
            DelegationFailure: If the peer could not be reached
        """
        if self._client is None:
            await self.start()

        url = self.build_url(target, request)
        body = await request.body()
        headers = _filter_headers(request.headers.items(), _REQUEST_SKIP)

        try:
            upstream = await self._client.request(request.method, url, headers=headers, content=body)
        except httpx.HTTPError as e:
            logger.error("Proxy error forwarding %s %s: %s", request.method, url, e)
            raise DelegationFailure(target, e) from e

        logger.debug("Proxied %s %s -> %d", request.method, url, upstream.status_code)
        return Response(
            content=upstream.content,
            status_code=upstream.status_code,
            headers=_filter_headers(upstream.headers.items(), _RESPONSE_SKIP),
        )
