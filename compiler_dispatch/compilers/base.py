"""Base class and protocol for compiler instances."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, runtime_checkable

from compiler_dispatch.models import CompilationResult, CompilerConfig, CompilerInfo

if TYPE_CHECKING:
    from compiler_dispatch.compilation_env import CompilationEnvironment


@runtime_checkable
class CompilerInstance(Protocol):
    """What the registry and the dispatch pipeline need from a compiler.

    Properties:
        config: The configuration the instance was built from
        mtime: Modification time (ns) of the executable when it was built, or
            None for virtual compilers
    """

    config: CompilerConfig
    mtime: Optional[int]

    def get_default_filters(self) -> Dict[str, bool]:
        ...

    def get_remote(self) -> Optional[str]:
        ...

    async def compile(
        self,
        source: str,
        options: List[str],
        backend_options: Any,
        filters: Dict[str, bool],
    ) -> CompilationResult:
        ...

    def get_info(self) -> CompilerInfo:
        ...


class BaseCompiler:
    """Common state and behaviour for the shipped compiler types."""

    def __init__(self, config: CompilerConfig, environment: "CompilationEnvironment"):
        self.config = config
        self.env = environment
        self.mtime: Optional[int] = None
        self.version: Optional[str] = None

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def lang(self) -> str:
        return self.config.lang

    def get_default_filters(self) -> Dict[str, bool]:
        """Return a fresh copy of this compiler's default filters."""
        return dict(self.config.default_filters)

    def get_remote(self) -> Optional[str]:
        return self.config.remote

    async def compile(
        self,
        source: str,
        options: List[str],
        backend_options: Any,
        filters: Dict[str, bool],
    ) -> CompilationResult:
        raise NotImplementedError

    def get_info(self) -> CompilerInfo:
        return CompilerInfo(
            id=self.config.id,
            name=self.config.display_name,
            lang=self.config.lang,
            compiler_type=self.config.compiler_type,
            version=self.version,
            remote=self.config.remote,
            default_filters=self.get_default_filters(),
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}(lang={self.lang!r}, id={self.id!r})"
