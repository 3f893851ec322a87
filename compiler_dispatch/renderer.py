"""Rendering of compilation results and errors into HTTP responses.

Successful results are rendered as JSON or as a plain-text report depending on
the client's Accept header. Failures are always rendered as JSON.
"""

import traceback
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple, cast

import orjson
from starlette.responses import PlainTextResponse, Response

from compiler_dispatch.error_reporting import ErrorReporter
from compiler_dispatch.errors import (
    CompilationFailure,
    DispatchError,
    ErrorKind,
    InternalError,
)
from compiler_dispatch.models import CompilationResult, OutputLine
from compiler_dispatch.output_parser import parse_output

JSON_MEDIA_TYPE = "application/json"
TEXT_MEDIA_TYPE = "text/plain"

ERROR_STATUS = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.DELEGATION_FAILURE: 502,
    ErrorKind.COMPILATION_FAILURE: 200,
    ErrorKind.INTERNAL_ERROR: 200,
}


def json_response(payload: Any, status_code: int = 200) -> Response:
    return Response(orjson.dumps(payload), status_code=status_code, media_type=JSON_MEDIA_TYPE)


# =============================================================================
# Content negotiation
# =============================================================================


def _parse_accept(accept: str) -> List[Tuple[str, str, float]]:
    ranges = []
    for part in accept.split(","):
        pieces = [p.strip() for p in part.split(";")]
        media_range = pieces[0].lower()
        if not media_range:
            continue
        main_type, _, sub_type = media_range.partition("/")
        quality = 1.0
        for param in pieces[1:]:
            name, _, value = param.partition("=")
            if name.strip().lower() == "q":
                try:
                    quality = float(value)
                except ValueError:
                    quality = 0.0
        ranges.append((main_type, sub_type or "*", quality))
    return ranges


def _quality(ranges: Iterable[Tuple[str, str, float]], media_type: str) -> float:
    main_type, _, sub_type = media_type.partition("/")
    best_specificity = -1
    best_quality = 0.0
    for range_main, range_sub, quality in ranges:
        if range_main == main_type and range_sub == sub_type:
            specificity = 2
        elif range_main == main_type and range_sub == "*":
            specificity = 1
        elif range_main == "*" and range_sub == "*":
            specificity = 0
        else:
            continue
        if specificity > best_specificity:
            best_specificity = specificity
            best_quality = quality
    return best_quality


def prefers_json(accept: Optional[str]) -> bool:
    """Decide between JSON and plain text for a client's Accept header.

    JSON wins whenever it is at least as acceptable as text, including when no
    Accept header is sent at all.
    """
    if not accept or not accept.strip():
        return True
    ranges = _parse_accept(accept)
    json_quality = _quality(ranges, JSON_MEDIA_TYPE)
    text_quality = _quality(ranges, TEXT_MEDIA_TYPE)
    return json_quality > 0 and json_quality >= text_quality


# =============================================================================
# Successful results
# =============================================================================


def textify(lines: Optional[List[OutputLine]]) -> str:
    return "\n".join(line.text for line in lines or [])


def format_text(result: CompilationResult, text_banner: Optional[str] = None) -> Iterable[str]:
    """Yield the pieces of the plain-text report for a result."""
    if text_banner:
        yield f"# {text_banner}\n"
    yield textify(result.asm)
    if result.code != 0:
        yield f"\n# Compiler exited with result code {result.code}"
    if result.stdout:
        yield "\nStandard out:\n" + textify(result.stdout)
    if result.stderr:
        yield "\nStandard error:\n" + textify(result.stderr)


def render_result(
    result: CompilationResult,
    accept: Optional[str],
    text_banner: Optional[str],
    reporter: ErrorReporter,
    context: Optional[Mapping[str, Any]] = None,
) -> Response:
    """Render a successful compilation for the client.

    A failure while building the text report is reported and replaced by an
    error line, so the client always gets a complete response.
    """
    if prefers_json(accept):
        return json_response(result.to_payload())

    body: List[str] = []
    try:
        for piece in format_text(result, text_banner):
            body.append(piece)
    except Exception as ex:
        reporter.capture(ex, context)
        body.append(f"Error handling request: {ex}")
    body.append("\n")
    return PlainTextResponse("".join(body))


# =============================================================================
# Errors
# =============================================================================


def as_dispatch_error(error: BaseException) -> DispatchError:
    """Return ``error`` itself, or an InternalError describing it."""
    if isinstance(error, DispatchError):
        return error
    if error.__traceback__ is not None:
        detail = "".join(traceback.format_exception(type(error), error, error.__traceback__))
    else:
        detail = f"{type(error).__name__}: {error}"
    return InternalError(f"Internal compilation error: {detail.rstrip()}")


def _serialize_output(output: Any) -> Any:
    if isinstance(output, list):
        return [line.model_dump(exclude_none=True) if isinstance(line, OutputLine) else line for line in output]
    return output


def error_payload(error: DispatchError) -> Dict[str, Any]:
    """Build the JSON body for an error."""
    if error.kind is ErrorKind.COMPILATION_FAILURE:
        failure = cast(CompilationFailure, error)
        stdout, stderr = failure.stdout, failure.stderr
        if isinstance(stderr, str):
            stdout = parse_output(stdout if isinstance(stdout, str) else None)
            stderr = parse_output(stderr)
        payload = {"code": failure.code, "stdout": _serialize_output(stdout), "stderr": _serialize_output(stderr)}
        return {key: value for key, value in payload.items() if value is not None}

    if error.kind is ErrorKind.INTERNAL_ERROR:
        return {"code": -1, "stderr": [{"text": error.message}]}

    return {"error": error.message}


def render_error(error: BaseException) -> Response:
    """Render any failure as a JSON response, whatever the client asked for."""
    dispatch_error = as_dispatch_error(error)
    return json_response(error_payload(dispatch_error), status_code=ERROR_STATUS[dispatch_error.kind])
