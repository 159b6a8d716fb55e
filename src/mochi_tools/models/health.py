"""Health check response model."""

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Response model for the health check endpoint.

    Attributes:
        status: Health status indicator ("ok" or "degraded").
        version: The version of mochi-tools.
        tools_loaded: Number of custom tools currently registered.
        tool_load_error: Message of the last failed load pass, if any.
    """

    status: str = Field(..., description="Health status of the service")
    version: str = Field(..., description="Version of mochi-tools")
    tools_loaded: int = Field(default=0, description="Number of registered custom tools")
    tool_load_error: str | None = Field(
        default=None,
        description="Error from the last failed tool load, if any",
    )
