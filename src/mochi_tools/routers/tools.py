"""Custom tools router.

This module provides REST API endpoints for:
- Listing the registered custom tools in serialized form
- Rendering the tools for native function calling
- Rendering the tools as an XML-style prompt catalog
- Reloading the configured tool directories
- Executing a tool
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import ValidationError

from mochi_tools.dependencies import get_tool_registry
from mochi_tools.models.tools import (
    ExecuteToolRequest,
    ExecuteToolResponse,
    NativeToolsResponse,
    ReloadToolsResponse,
    ToolListItem,
    ToolListResponse,
    XmlToolsResponse,
)
from mochi_tools.tools import (
    CustomToolContext,
    CustomToolError,
    CustomToolRegistry,
    ToolNotFoundError,
    format_native_tools,
    format_xml,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/v1/tools", tags=["tools"])


def _serialized_tools(registry: CustomToolRegistry):
    try:
        return registry.get_all_serialized()
    except CustomToolError as e:
        logger.error(f"Failed to serialize custom tools: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to serialize custom tools: {str(e)}",
        )


@router.get(
    "",
    response_model=ToolListResponse,
    response_model_exclude_none=True,
    summary="List custom tools",
)
async def list_tools(
    registry: Annotated[CustomToolRegistry, Depends(get_tool_registry)],
) -> ToolListResponse:
    """List all registered custom tools in their serialized form.

    Args:
        registry: Injected CustomToolRegistry

    Returns:
        Serialized tools with the file each was loaded from
    """
    items = [
        ToolListItem(
            name=serialized["name"],
            description=serialized["description"],
            parameters=serialized.get("parameters"),
            source=str(tool.source) if tool.source else None,
        )
        for tool, serialized in zip(registry.get_all(), _serialized_tools(registry))
    ]
    return ToolListResponse(tools=items, count=len(items))


@router.get(
    "/native",
    response_model=NativeToolsResponse,
    summary="Custom tools for native function calling",
)
async def get_native_tools(
    registry: Annotated[CustomToolRegistry, Depends(get_tool_registry)],
) -> NativeToolsResponse:
    """Render all registered tools as strict function-calling definitions."""
    return NativeToolsResponse(tools=format_native_tools(_serialized_tools(registry)))


@router.get(
    "/xml",
    response_model=XmlToolsResponse,
    summary="Custom tools as an XML prompt catalog",
)
async def get_xml_tools(
    registry: Annotated[CustomToolRegistry, Depends(get_tool_registry)],
) -> XmlToolsResponse:
    """Render all registered tools as the custom tools section of a prompt."""
    return XmlToolsResponse(content=format_xml(_serialized_tools(registry)))


@router.post(
    "/reload",
    response_model=ReloadToolsResponse,
    summary="Reload custom tools",
)
async def reload_tools(request: Request) -> ReloadToolsResponse:
    """Reload the configured tool directories.

    On failure the previously loaded tools stay registered.

    Args:
        request: The FastAPI request object

    Returns:
        Names of the loaded tools

    Raises:
        HTTPException: 500 with the offending file and diagnostic on failure
    """
    # Imported here to avoid a circular import with the app module
    from mochi_tools.app import load_configured_tools

    registry = get_tool_registry(request)
    try:
        await load_configured_tools(request.app)
    except CustomToolError as e:
        logger.error(f"Failed to reload custom tools: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e),
        )

    loaded = registry.names()
    return ReloadToolsResponse(loaded=loaded, count=len(loaded))


@router.post(
    "/{name}/execute",
    response_model=ExecuteToolResponse,
    summary="Execute a custom tool",
)
async def execute_tool(
    name: str,
    body: ExecuteToolRequest,
    request: Request,
    registry: Annotated[CustomToolRegistry, Depends(get_tool_registry)],
) -> ExecuteToolResponse:
    """Execute a registered tool with the given arguments.

    Args:
        name: Name of the tool
        body: Tool arguments and optional task id
        request: The FastAPI request object
        registry: Injected CustomToolRegistry

    Returns:
        The tool's result

    Raises:
        HTTPException: 404 if the tool is unknown, 422 if the arguments do
            not validate
    """
    context = CustomToolContext(
        mode=request.app.state.settings.tool_mode,
        task_id=body.task_id,
    )

    try:
        result = await registry.execute(name, body.args, context)
    except ToolNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValidationError as e:
        raise HTTPException(
            status_code=422,
            detail=[
                {"loc": list(err["loc"]), "msg": err["msg"], "type": err["type"]}
                for err in e.errors()
            ],
        )

    logger.info(f"Executed custom tool '{name}'")
    return ExecuteToolResponse(name=name, result=result)
