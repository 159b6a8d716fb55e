"""Rendering of serialized tools as a text catalog for XML-style tool calls.

Models that do not support native function calling are given a markdown
catalog describing each tool, followed by an XML usage skeleton they can fill
in to invoke it.
"""

from typing import Any

from mochi_tools.tools.types import SerializedCustomToolDefinition

PREAMBLE = (
    "# Custom Tools\n"
    "\n"
    "The following custom tools are available for this mode. "
    "Use them in the same way as built-in tools."
)


def _parameter_type(parameter: dict[str, Any]) -> str:
    if parameter.get("type"):
        return str(parameter["type"])

    # Raw JSON schemas express nullable types as anyOf with a null member
    any_of = parameter.get("anyOf")
    if isinstance(any_of, list):
        types = [
            str(member["type"])
            for member in any_of
            if isinstance(member, dict) and member.get("type") and member["type"] != "null"
        ]
        if types:
            return " | ".join(types)

    return "unknown"


def _parameter_line(name: str, parameter: dict[str, Any], required: list[str]) -> str:
    required_text = "(required)" if name in required else "(optional)"
    description = parameter.get("description") or ""
    return f"- {name}: {required_text} {description} (type: {_parameter_type(parameter)})"


def _usage(tool: SerializedCustomToolDefinition) -> str:
    lines = [f"<{tool['name']}>"]

    parameters = tool.get("parameters")
    if parameters is not None:
        required = parameters.get("required") or []
        for arg_name in parameters.get("properties") or {}:
            if arg_name in required:
                placeholder = f"{arg_name} value here"
            else:
                placeholder = f"optional {arg_name} value"
            lines.append(f"<{arg_name}>{placeholder}</{arg_name}>")

    lines.append(f"</{tool['name']}>")
    return "\n".join(lines)


def _describe(tool: SerializedCustomToolDefinition) -> str:
    parts = [
        f"## {tool['name']}",
        f"Description: {tool['description']}",
    ]

    parameters = tool.get("parameters")
    properties = parameters.get("properties") if parameters is not None else None
    if properties is not None:
        required = parameters.get("required") or []
        parts.append("Parameters:")
        for name, parameter in properties.items():
            if not isinstance(parameter, dict):
                continue
            parts.append(_parameter_line(name, parameter, required))
    else:
        parts.append("Parameters: None")

    parts.append("Usage:")
    parts.append(_usage(tool))
    return "\n".join(parts)


def format_xml(tools: list[SerializedCustomToolDefinition]) -> str:
    """Build the custom tools section of a text prompt.

    Args:
        tools: Serialized tool definitions, in the order they should appear

    Returns:
        The catalog block, or an empty string when there are no tools.

    Raises:
        TypeError: If tools is None or not a list
    """
    if not isinstance(tools, list):
        raise TypeError(f"format_xml() expects a list of tools, got {type(tools).__name__}")

    if not tools:
        return ""

    descriptions = "\n\n".join(_describe(tool) for tool in tools)
    return f"{PREAMBLE}\n\n{descriptions}"
