"""Error taxonomy for compile request dispatch.

Every failure that can end a compile request is one of the ``DispatchError``
subclasses below. Each carries an ``ErrorKind`` tag and callers branch on that
tag rather than on which attributes the error happens to have.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Dict, List, Optional, Union

# Captured process output: raw text straight from the process, or already split
# into ``{"text": ...}`` line entries.
RawOutput = Union[str, List[Dict[str, Any]], None]


class ErrorKind(str, Enum):
    """Tag identifying which branch of the error taxonomy an error belongs to."""

    BAD_REQUEST = "bad_request"
    NOT_FOUND = "not_found"
    DELEGATION_FAILURE = "delegation_failure"
    COMPILATION_FAILURE = "compilation_failure"
    INTERNAL_ERROR = "internal_error"


class DispatchError(Exception):
    """Base class for errors raised while handling a compile request."""

    kind: ErrorKind = ErrorKind.INTERNAL_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BadRequest(DispatchError):
    """The request could not be normalized (no source, unparsable options)."""

    kind = ErrorKind.BAD_REQUEST


class CompilerNotFound(DispatchError):
    """No compiler resolves for the requested identifiers."""

    kind = ErrorKind.NOT_FOUND

    def __init__(self, compiler_id: Optional[str], lang: Optional[str] = None):
        super().__init__(f"Compiler not found: {compiler_id}")
        self.compiler_id = compiler_id
        self.lang = lang


class DelegationFailure(DispatchError):
    """Forwarding the request to a remote peer failed at the transport level."""

    kind = ErrorKind.DELEGATION_FAILURE

    def __init__(self, target: str, cause: Optional[BaseException] = None):
        super().__init__(f"Unable to reach remote compiler host {target}: {cause}")
        self.target = target
        self.cause = cause


class CompilationFailure(DispatchError):
    """Structured failure from a compiler: it ran, or tried to, and has an exit code."""

    kind = ErrorKind.COMPILATION_FAILURE

    def __init__(
        self,
        code: int,
        stdout: RawOutput = None,
        stderr: RawOutput = None,
        message: str = "",
    ):
        super().__init__(message or f"Compilation failed with code {code}")
        self.code = code
        self.stdout = stdout
        self.stderr = stderr


class InternalError(DispatchError):
    """Any failure that is not one of the structured cases above."""

    kind = ErrorKind.INTERNAL_ERROR


class ConfigurationError(Exception):
    """The compiler configuration could not be read or validated."""


class RegistryRebuildError(Exception):
    """A registry rebuild failed as a whole; the previous snapshot is still live."""
