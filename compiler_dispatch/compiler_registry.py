"""Registry of live compiler instances.

The registry maps language id -> compiler id -> compiler instance. It is
rebuilt from configuration as a whole: every compiler is constructed (or
reused) concurrently, and once all of them are settled the new mapping replaces
the old one in a single assignment. Readers never take a lock, so a request
always sees one complete generation of compilers.

Compilers with an absolute executable path are stat'ed on every rebuild; if the
executable's modification time is unchanged the existing instance is kept,
which avoids re-probing the binary.
"""

import asyncio
import logging
import os
from typing import Dict, Iterator, List, Mapping, Optional

from compiler_dispatch.compilation_env import CompilationEnvironment
from compiler_dispatch.compilers import CompilerFactory, CompilerInstance, get_compiler_factory
from compiler_dispatch.errors import RegistryRebuildError
from compiler_dispatch.models import CompilerConfig, CompilerInfo

logger = logging.getLogger(__name__)

Snapshot = Dict[str, Dict[str, CompilerInstance]]


class CompilerRegistry:
    """Owns the current snapshot of compiler instances.

    Factories are resolved by compiler type tag on first use and cached for the
    lifetime of the registry.
    """

    def __init__(
        self,
        environment: Optional[CompilationEnvironment] = None,
        factories: Optional[Mapping[str, CompilerFactory]] = None,
    ):
        """Initialize an empty registry.

        Args:
            environment: Compilation environment handed to every factory
            factories: Optional fixed factory table; when omitted, factories
                come from the compiler type registry
        """
        self._environment = environment or CompilationEnvironment()
        self._factory_overrides = dict(factories) if factories is not None else None
        self._factories: Dict[str, CompilerFactory] = {}
        self._compilers: Snapshot = {}
        self._rebuild_lock = asyncio.Lock()

    @property
    def environment(self) -> CompilationEnvironment:
        return self._environment

    @property
    def compiler_count(self) -> int:
        return sum(len(by_id) for by_id in self._compilers.values())

    def __iter__(self) -> Iterator[CompilerInstance]:
        snapshot = self._compilers
        for by_id in snapshot.values():
            yield from by_id.values()

    def list_compilers(self, lang: Optional[str] = None) -> List[CompilerInfo]:
        """Describe the live compilers, optionally only those of one language."""
        return [c.get_info() for c in self if lang is None or c.config.lang == lang]

    def find(self, lang: Optional[str], compiler_id: Optional[str]) -> Optional[CompilerInstance]:
        """Find a compiler by language and id.

        When the language is missing or unknown, every language is searched
        and the first compiler with a matching id wins, in insertion order.

        Args:
            lang: Language id, may be None
            compiler_id: Compiler id

        Returns:
            The compiler instance, or None if there is no match
        """
        snapshot = self._compilers
        if lang and lang in snapshot:
            return snapshot[lang].get(compiler_id)

        for by_id in snapshot.values():
            compiler = by_id.get(compiler_id)
            if compiler is not None:
                return compiler
        return None

    async def rebuild(self, configs: List[CompilerConfig]) -> List[CompilerInfo]:
        """Build a new snapshot from configuration and swap it in.

        A compiler that cannot be built is left out of the new snapshot; it does
        not affect the others. Concurrent rebuilds are serialized.

        Args:
            configs: Compiler configurations for the new generation

        Returns:
            Public info for every compiler in the new snapshot

        Raises:
            RegistryRebuildError: If the rebuild fails as a whole; the previous
                snapshot stays live
        """
        async with self._rebuild_lock:
            try:
                results = await asyncio.gather(*(self._create(config) for config in configs))

                snapshot: Snapshot = {}
                for compiler in results:
                    if compiler is None:
                        continue
                    snapshot.setdefault(compiler.config.lang, {})[compiler.config.id] = compiler
            except Exception as e:
                logger.error("Compiler registry rebuild failed: %s", e, exc_info=True)
                raise RegistryRebuildError(str(e)) from e

            self._compilers = snapshot

        infos = self.list_compilers()
        logger.info(
            "Compiler registry rebuilt: %d of %d configured compiler(s) available",
            len(infos),
            len(configs),
        )
        return infos

    def _get_factory(self, compiler_type: str) -> CompilerFactory:
        factory = self._factories.get(compiler_type)
        if factory is None:
            logger.info("Loading compiler factory for type '%s'", compiler_type)
            if self._factory_overrides is not None:
                if compiler_type not in self._factory_overrides:
                    raise KeyError(f"Unknown compiler type '{compiler_type}'")
                factory = self._factory_overrides[compiler_type]
            else:
                factory = get_compiler_factory(compiler_type)
            self._factories[compiler_type] = factory
        return factory

    def _find_exact(self, lang: str, compiler_id: str) -> Optional[CompilerInstance]:
        return self._compilers.get(lang, {}).get(compiler_id)

    async def _create(self, config: CompilerConfig) -> Optional[CompilerInstance]:
        """Build (or reuse) the instance for one config; None drops it."""
        try:
            return await self._create_or_reuse(config)
        except Exception as e:
            logger.error("Dropping compiler config %r: %s", config, e, exc_info=True)
            return None

    async def _create_or_reuse(self, config: CompilerConfig) -> Optional[CompilerInstance]:
        try:
            factory = self._get_factory(config.compiler_type)
        except KeyError as e:
            logger.error("Cannot build compiler %s: %s", config.id, e)
            return None

        if not os.path.isabs(config.exe):
            return await self._construct(factory, config)

        loop = asyncio.get_running_loop()
        try:
            stat_result = await loop.run_in_executor(None, os.stat, config.exe)
        except (OSError, ValueError) as e:
            logger.warning("Unable to stat compiler binary %r: %s", config.exe, e)
            return None

        mtime = stat_result.st_mtime_ns
        cached = self._find_exact(config.lang, config.id)
        if cached is not None and cached.mtime == mtime:
            logger.debug("%s is unchanged", config.id)
            return cached

        compiler = await self._construct(factory, config)
        if compiler is not None:
            compiler.mtime = mtime
        return compiler

    async def _construct(
        self,
        factory: CompilerFactory,
        config: CompilerConfig,
    ) -> Optional[CompilerInstance]:
        try:
            compiler = await factory(config, self._environment, config.lang)
        except Exception as e:
            logger.error("Error constructing compiler %s: %s", config.id, e, exc_info=True)
            return None

        if compiler is None:
            logger.warning("Compiler %s could not be built and is skipped", config.id)
        return compiler
