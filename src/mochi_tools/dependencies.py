"""Dependency injection providers for FastAPI endpoints.

This module provides FastAPI dependency functions that are used across
multiple routers to inject common dependencies like settings and the tool
registry.
"""

from functools import lru_cache

from fastapi import HTTPException, Request

from mochi_tools.config import MochiToolsSettings
from mochi_tools.tools import CustomToolRegistry


@lru_cache
def get_settings() -> MochiToolsSettings:
    """Get the application settings instance.

    This function is cached so that the same settings instance is reused
    across all requests. Settings are loaded from environment variables
    with the MOCHI_TOOLS_ prefix.

    Returns:
        MochiToolsSettings: The application configuration settings.
    """
    return MochiToolsSettings()


def get_tool_registry(request: Request) -> CustomToolRegistry:
    """Get the custom tool registry from app state.

    Args:
        request: The FastAPI request object.

    Returns:
        CustomToolRegistry: The registry created at startup.

    Raises:
        HTTPException: If the registry is not initialized (503 Service Unavailable).
    """
    if not hasattr(request.app.state, "tool_registry"):
        raise HTTPException(
            status_code=503,
            detail="Custom tool registry not initialized",
        )
    return request.app.state.tool_registry
