"""Application factory and context for the compiler dispatch API.

All runtime state lives in an ``AppContext`` rather than in module globals, so
each app instance (and each test) gets its own registry, environment and proxy
client.

Usage:
------
    # Production: settings come from the environment
    app = create_app()

    # Tests: explicit configuration
    app = create_app(compilers_file="compilers.json", text_banner=None)
"""

import logging
import os
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from compiler_dispatch.compilation_env import CompilationEnvironment
from compiler_dispatch.compile_handler import CompileHandler
from compiler_dispatch.compiler_config import load_compiler_configs
from compiler_dispatch.compiler_registry import CompilerRegistry
from compiler_dispatch.error_reporting import ErrorReporter, LoggingErrorReporter
from compiler_dispatch.errors import ConfigurationError, DelegationFailure, RegistryRebuildError
from compiler_dispatch.logging_config import configure_logging
from compiler_dispatch.models import CompilerInfo
from compiler_dispatch.proxy_client import ProxyClient
from compiler_dispatch.temp_cleanup import DEFAULT_CLEANUP_INTERVAL, get_cleanup_service

DEFAULT_API_PORT = 10240


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


@dataclass
class AppContext:
    """Runtime context holding all application state."""

    # Configuration
    compilers_file: Optional[str] = field(
        default_factory=lambda: os.getenv("DISPATCH_COMPILERS_FILE")
    )
    text_banner: Optional[str] = field(default_factory=lambda: os.getenv("DISPATCH_TEXT_BANNER"))
    temp_dir_cleanup_secs: float = field(
        default_factory=lambda: _env_float("DISPATCH_TEMP_DIR_CLEANUP_SECS", DEFAULT_CLEANUP_INTERVAL)
    )
    compile_timeout: float = field(
        default_factory=lambda: _env_float(
            "DISPATCH_COMPILE_TIMEOUT", CompilationEnvironment.DEFAULT_COMPILE_TIMEOUT
        )
    )
    max_concurrent_compiles: int = field(
        default_factory=lambda: int(
            os.getenv("DISPATCH_MAX_CONCURRENT_COMPILES", str(CompilationEnvironment.DEFAULT_MAX_CONCURRENT))
        )
    )
    proxy_timeout: float = field(
        default_factory=lambda: _env_float("DISPATCH_PROXY_TIMEOUT", ProxyClient.DEFAULT_TIMEOUT)
    )
    api_port: int = field(
        default_factory=lambda: int(os.getenv("DISPATCH_API_PORT", str(DEFAULT_API_PORT)))
    )
    production_mode: bool = field(
        default_factory=lambda: os.getenv("PRODUCTION", "false").lower() == "true"
    )
    allowed_origins: list = field(
        default_factory=lambda: os.getenv("ALLOWED_ORIGINS", "*").split(",")
    )

    # Services (created in __post_init__ unless supplied)
    environment: Optional[CompilationEnvironment] = None
    registry: Optional[CompilerRegistry] = None
    proxy_client: Optional[ProxyClient] = None
    reporter: ErrorReporter = field(default_factory=LoggingErrorReporter)
    compile_handler: Optional[CompileHandler] = None

    # Logging
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("compiler_dispatch"))

    def __post_init__(self) -> None:
        if self.environment is None:
            self.environment = CompilationEnvironment(
                compile_timeout=self.compile_timeout,
                max_concurrent=self.max_concurrent_compiles,
            )
        if self.registry is None:
            self.registry = CompilerRegistry(environment=self.environment)
        if self.proxy_client is None:
            self.proxy_client = ProxyClient(timeout=self.proxy_timeout)

    def build_compile_handler(self) -> CompileHandler:
        if self.compile_handler is None:
            self.compile_handler = CompileHandler(
                registry=self.registry,
                proxy_client=self.proxy_client,
                reporter=self.reporter,
                text_banner=self.text_banner,
            )
        return self.compile_handler

    async def reload_compilers(self) -> List[CompilerInfo]:
        """Re-read the compiler configuration and rebuild the registry.

        Raises:
            RegistryRebuildError: If the configuration is unusable or the rebuild
                fails; the previous compilers stay live
        """
        try:
            configs = load_compiler_configs(self.compilers_file)
        except ConfigurationError as e:
            self.logger.error("Unable to load compiler configuration: %s", e)
            raise RegistryRebuildError(str(e)) from e
        return await self.registry.rebuild(configs)


def create_app(
    *,
    compilers_file: Optional[str] = None,
    text_banner: Optional[str] = None,
    production_mode: Optional[bool] = None,
    context: Optional[AppContext] = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        compilers_file: Override the compiler configuration path
            (default: DISPATCH_COMPILERS_FILE env var)
        text_banner: Override the plain-text banner (default: DISPATCH_TEXT_BANNER)
        production_mode: Override production mode (default: PRODUCTION env var)
        context: Pre-configured AppContext (for testing). If None, creates a new one.

    Returns:
        Configured FastAPI application with context attached as app.state.context
    """
    logger = configure_logging()

    if context is None:
        context = AppContext()

    if compilers_file is not None:
        context.compilers_file = compilers_file
    if text_banner is not None:
        context.text_banner = text_banner
    if production_mode is not None:
        context.production_mode = production_mode

    context.logger = logger

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Lifespan context manager for startup and shutdown."""
        ctx: AppContext = app.state.context
        cleanup_service = get_cleanup_service()

        try:
            await ctx.proxy_client.start()
            try:
                await ctx.reload_compilers()
            except RegistryRebuildError as e:
                ctx.logger.error("Starting with no compilers: %s", e)

            await cleanup_service.start(ctx.environment, ctx.temp_dir_cleanup_secs)

            ctx.logger.info("Startup complete with %d compiler(s)", ctx.registry.compiler_count)
            yield
            ctx.logger.info("Received shutdown signal")
        finally:
            await cleanup_service.stop()
            await ctx.proxy_client.close()

    app = FastAPI(
        title="Compiler Dispatch API",
        lifespan=lifespan,
        docs_url=None if context.production_mode else "/docs",
        redoc_url=None if context.production_mode else "/redoc",
    )

    app.state.context = context

    app.add_middleware(
        CORSMiddleware,
        allow_origins=context.allowed_origins if context.production_mode else ["*"],
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    _setup_routers(app, context)
    return app


def _setup_routers(app: FastAPI, ctx: AppContext) -> None:
    """Include the API routers and exception handlers."""
    from compiler_dispatch.routers import compilation, compilers

    app.include_router(compilation.setup_router(ctx.build_compile_handler()))
    app.include_router(compilers.setup_router(ctx.registry, ctx.reload_compilers))
    app.add_exception_handler(DelegationFailure, compilation.delegation_failure_handler)

    ctx.logger.info("API routers configured")
