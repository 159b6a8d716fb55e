"""Pydantic models for API request and response schemas.

This package contains all Pydantic models used for validating and
serializing API requests and responses across all endpoints.
"""

from mochi_tools.models.health import HealthResponse
from mochi_tools.models.tools import (
    ExecuteToolRequest,
    ExecuteToolResponse,
    NativeToolsResponse,
    ReloadToolsResponse,
    ToolListItem,
    ToolListResponse,
    XmlToolsResponse,
)

__all__ = [
    "ExecuteToolRequest",
    "ExecuteToolResponse",
    "HealthResponse",
    "NativeToolsResponse",
    "ReloadToolsResponse",
    "ToolListItem",
    "ToolListResponse",
    "XmlToolsResponse",
]
