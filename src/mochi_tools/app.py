"""FastAPI application factory and lifespan management.

This module contains the create_app() factory function that creates and configures
the FastAPI application instance, including lifespan management for startup/shutdown
and router registration.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mochi_tools.config import MochiToolsSettings
from mochi_tools.routers import health, tools
from mochi_tools.tools import CustomToolError, CustomToolRegistry, ToolLoader

logger = logging.getLogger(__name__)


def create_registry(settings: MochiToolsSettings) -> CustomToolRegistry:
    """Create a CustomToolRegistry configured from settings."""
    loader = ToolLoader(
        install_root=settings.install_root,
        extra_resolution_paths=settings.extra_resolution_paths,
        max_concurrency=settings.max_concurrent_compiles,
        compile_timeout=settings.compile_timeout,
    )
    return CustomToolRegistry(loader=loader)


async def load_configured_tools(app: FastAPI) -> None:
    """Load the configured tool directories into the app's registry.

    A failed load leaves the previously registered tools in place and records
    the error message on app.state.tool_load_error.

    Raises:
        CustomToolError: Re-raised after being recorded.
    """
    settings: MochiToolsSettings = app.state.settings
    registry: CustomToolRegistry = app.state.tool_registry
    tool_dirs = settings.resolved_tool_dirs

    try:
        loaded = await registry.load_from_directories(tool_dirs)
    except CustomToolError as e:
        app.state.tool_load_error = str(e)
        raise

    app.state.tool_load_error = None
    logger.info(f"Loaded {len(loaded)} custom tool(s) from {[str(d) for d in tool_dirs]}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan context manager for FastAPI application.

    The tool registry is created once at startup and stored in app.state for
    reuse across all requests. A failing tool directory does not prevent the
    server from starting; the error is reported by the health endpoint.

    Args:
        app: The FastAPI application instance.

    Yields:
        None: Control is yielded while the app is running.
    """
    settings: MochiToolsSettings = app.state.settings
    app.state.tool_registry = create_registry(settings)
    app.state.tool_load_error = None

    try:
        await load_configured_tools(app)
    except CustomToolError as e:
        logger.error(f"Custom tools could not be loaded at startup: {e}")

    yield

    # Shutdown: drop loaded tools
    app.state.tool_registry.clear()
    logger.info("Custom tool registry cleared")


def create_app(settings: MochiToolsSettings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    This factory function creates a FastAPI instance with all routers,
    middleware, and configuration applied. It can accept an optional
    settings object for testing or explicit configuration.

    Args:
        settings: Optional MochiToolsSettings instance. If not provided,
                  settings will be loaded from environment variables.

    Returns:
        FastAPI: Configured FastAPI application instance.
    """
    if settings is None:
        from mochi_tools.dependencies import get_settings

        settings = get_settings()

    app = FastAPI(
        title="mochi-tools",
        description="Custom tool catalog server for LLM function calling and XML prompts",
        version="0.1.0",
        lifespan=lifespan,
    )

    # Store settings in app.state for lifespan access
    app.state.settings = settings

    # Note: FastAPI's type hints for add_middleware are overly strict
    app.add_middleware(
        CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health.router)
    app.include_router(tools.router)

    return app
