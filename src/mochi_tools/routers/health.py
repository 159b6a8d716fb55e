"""Health check endpoint router."""

import logging

from fastapi import APIRouter, Request

from mochi_tools.models.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1", tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    """Health check endpoint.

    Returns the current health status and version of mochi-tools together
    with the number of registered tools. The status is "degraded" when the
    last tool load pass failed.

    Args:
        request: The FastAPI request object.

    Returns:
        HealthResponse: Health status and version information.
    """
    tools_loaded = 0
    if hasattr(request.app.state, "tool_registry"):
        tools_loaded = request.app.state.tool_registry.size

    tool_load_error = getattr(request.app.state, "tool_load_error", None)
    if tool_load_error:
        logger.debug(f"Reporting degraded health: {tool_load_error}")

    return HealthResponse(
        status="degraded" if tool_load_error else "ok",
        version="0.1.0",
        tools_loaded=tools_loaded,
        tool_load_error=tool_load_error,
    )
