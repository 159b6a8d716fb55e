"""Rendering of serialized tools for function-calling chat APIs.

The output matches the `tools` entries accepted by OpenAI-compatible and
Ollama chat endpoints: {"type": "function", "function": {...}}.
"""

from typing import Any

from mochi_tools.tools.types import SerializedCustomToolDefinition


def format_native(tool: SerializedCustomToolDefinition) -> dict[str, Any]:
    """Format a serialized tool as a strict function-calling definition.

    The input is not mutated. When the tool has no parameters the
    `parameters` key is left out of the function object.

    Args:
        tool: A serialized tool definition

    Returns:
        dict with type "function" and the function object
    """
    function: dict[str, Any] = {
        "name": tool["name"],
        "description": tool["description"],
    }

    parameters = tool.get("parameters")
    if parameters is not None:
        parameters = dict(parameters)
        parameters.pop("$schema", None)
        # Function-calling APIs reject objects without a required list.
        if not parameters.get("required"):
            parameters["required"] = []
        function["parameters"] = parameters

    function["strict"] = True
    return {"type": "function", "function": function}


def format_native_tools(tools: list[SerializedCustomToolDefinition]) -> list[dict[str, Any]]:
    """Format every serialized tool in the list."""
    return [format_native(tool) for tool in tools]
