"""Registry of compiler construction strategies.

Each compiler type tag (``compilerType`` in the configuration) maps to an
async factory that builds a ready compiler instance, or returns None when the
compiler cannot be used (for example when its version probe fails).

Usage:
    from compiler_dispatch.compilers import get_compiler_factory

    factory = get_compiler_factory("default")
    compiler = await factory(config, environment, config.lang)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Awaitable, Callable, Dict, List, Optional

from compiler_dispatch.compilers.base import BaseCompiler, CompilerInstance
from compiler_dispatch.compilers.default import DefaultCompiler, create_default_compiler
from compiler_dispatch.compilers.remote import RemoteCompiler, create_remote_compiler

if TYPE_CHECKING:
    from compiler_dispatch.compilation_env import CompilationEnvironment
    from compiler_dispatch.models import CompilerConfig

logger = logging.getLogger(__name__)

# Factory receives (config, environment, lang) and resolves to an instance or None
CompilerFactory = Callable[
    ["CompilerConfig", "CompilationEnvironment", str],
    Awaitable[Optional[CompilerInstance]],
]

_COMPILER_FACTORIES: Dict[str, CompilerFactory] = {}


def register_compiler_type(compiler_type: str, factory: CompilerFactory) -> None:
    """Register the factory for a compiler type tag.

    Args:
        compiler_type: Tag used as ``compilerType`` in the configuration
        factory: Async factory building instances of that type
    """
    if compiler_type in _COMPILER_FACTORIES:
        logger.warning("Overwriting existing compiler factory for '%s'", compiler_type)
    _COMPILER_FACTORIES[compiler_type] = factory


def get_compiler_factory(compiler_type: str) -> CompilerFactory:
    """Look up the factory for a compiler type tag.

    Raises:
        KeyError: If no factory is registered for the tag
    """
    try:
        return _COMPILER_FACTORIES[compiler_type]
    except KeyError:
        available = sorted(_COMPILER_FACTORIES)
        raise KeyError(
            f"Unknown compiler type '{compiler_type}'. Available types: {available}"
        ) from None


def get_registered_compiler_types() -> List[str]:
    return list(_COMPILER_FACTORIES.keys())


register_compiler_type("default", create_default_compiler)
register_compiler_type("remote", create_remote_compiler)

__all__ = [
    "BaseCompiler",
    "CompilerFactory",
    "CompilerInstance",
    "DefaultCompiler",
    "RemoteCompiler",
    "get_compiler_factory",
    "get_registered_compiler_types",
    "register_compiler_type",
]
