"""Normalization of compile requests.

Two request encodings are accepted:

- Structured: a JSON body ``{"source": ..., "options": {"userArguments": ...,
  "compilerOptions": ..., "filters": {...}}}``.
- Legacy: the body is the raw source text, options come from the ``options``
  query parameter and filters from ``filters``/``addFilters``/``removeFilters``.

Both produce the same ``NormalizedRequest``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from pydantic import ValidationError
from starlette.requests import Request

from compiler_dispatch.compilers import CompilerInstance
from compiler_dispatch.errors import BadRequest
from compiler_dispatch.models import CompileRequestBody
from compiler_dispatch.options import compose_filters, split_options


@dataclass
class NormalizedRequest:
    """Canonical form of a compile request, independent of its encoding."""

    source: Optional[str]
    options: List[str] = field(default_factory=list)
    backend_options: Any = None
    filters: Dict[str, bool] = field(default_factory=dict)


def is_structured(request: Request) -> bool:
    """True if the request declares a JSON body."""
    content_type = request.headers.get("content-type", "")
    media_type = content_type.split(";", 1)[0].strip().lower()
    return media_type == "application/json" or media_type.endswith("+json")


async def read_structured_body(request: Request) -> CompileRequestBody:
    """Decode and validate a structured request body.

    Raises:
        BadRequest: If the body is not valid JSON or not a compile request object
    """
    raw = await request.body()
    try:
        data = json.loads(raw) if raw else {}
    except (ValueError, UnicodeDecodeError) as e:
        raise BadRequest(f"Malformed JSON body: {e}") from e

    if not isinstance(data, dict):
        raise BadRequest("Compile request body must be a JSON object")

    try:
        return CompileRequestBody.model_validate(data)
    except ValidationError as e:
        raise BadRequest(f"Invalid compile request: {e}") from e


async def read_legacy_source(request: Request) -> Optional[str]:
    """Return the raw request body as source text, or None if there is none."""
    raw = await request.body()
    if not raw:
        return None
    return raw.decode("utf-8", errors="replace")


def normalize_structured(body: CompileRequestBody, compiler: CompilerInstance) -> NormalizedRequest:
    """Normalize a structured request.

    Filters are taken verbatim from the request, or the compiler's defaults when
    the request has none.
    """
    options = body.options
    filters = options.filters if options.filters is not None else compiler.get_default_filters()
    return NormalizedRequest(
        source=body.source,
        options=split_options(options.user_arguments),
        backend_options=options.compiler_options,
        filters=dict(filters),
    )


def normalize_legacy(
    source: Optional[str],
    query: Mapping[str, str],
    compiler: CompilerInstance,
) -> NormalizedRequest:
    """Normalize a legacy request from its body text and query parameters."""
    filters = compose_filters(
        compiler.get_default_filters(),
        replace=query.get("filters"),
        add=query.get("addFilters"),
        remove=query.get("removeFilters"),
    )
    return NormalizedRequest(
        source=source,
        options=split_options(query.get("options")),
        backend_options=None,
        filters=filters,
    )
