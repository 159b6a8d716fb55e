"""Pydantic models for custom tool API requests and responses."""

from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ToolListItem(BaseModel):
    """A registered custom tool in its serialized form."""

    name: str = Field(..., description="Unique tool name")
    description: str = Field(..., description="Tool description shown to the model")
    parameters: dict[str, Any] | None = Field(
        default=None,
        description="Canonical parameters object, omitted for tools without parameters",
    )
    source: str | None = Field(default=None, description="File the tool was loaded from")

    model_config = ConfigDict(from_attributes=True)


class ToolListResponse(BaseModel):
    """Response model for listing custom tools."""

    tools: list[ToolListItem] = Field(default_factory=list)
    count: int = Field(default=0, description="Number of tools")


class NativeToolsResponse(BaseModel):
    """Custom tools formatted for native function calling."""

    tools: list[dict[str, Any]] = Field(default_factory=list)


class XmlToolsResponse(BaseModel):
    """Custom tools formatted as an XML-style prompt catalog."""

    content: str = Field(..., description="Catalog block, empty when no tools are loaded")


class ReloadToolsResponse(BaseModel):
    """Response model for reloading the tool directories."""

    loaded: list[str] = Field(default_factory=list, description="Names of loaded tools")
    count: int = Field(default=0)


class ExecuteToolRequest(BaseModel):
    """Request model for executing a custom tool."""

    args: dict[str, Any] = Field(default_factory=dict, description="Tool arguments")
    task_id: str | None = Field(default=None, description="Invoking task, if any")


class ExecuteToolResponse(BaseModel):
    """Response model for a tool execution."""

    name: str
    result: Any = Field(..., description="Value returned by the tool")
