"""Conversion of custom tools into their canonical serialized form."""

from mochi_tools.tools.schema import as_parameter_schema
from mochi_tools.tools.types import (
    CustomToolDefinition,
    SerializedCustomToolDefinition,
    SerializedParameters,
)


def serialize_custom_tool(tool: CustomToolDefinition) -> SerializedCustomToolDefinition:
    """Serialize a tool definition into its protocol-agnostic form.

    The parameters object is omitted entirely when the tool has no schema or
    its schema declares no properties.

    Args:
        tool: The tool definition to serialize

    Returns:
        SerializedCustomToolDefinition with name, description and, when the
        schema has properties, parameters.

    Raises:
        SchemaError: If the tool's parameters cannot be introspected
    """
    serialized = SerializedCustomToolDefinition(
        name=tool.name,
        description=tool.description,
    )

    if tool.parameters is None:
        return serialized

    schema = as_parameter_schema(tool.parameters)
    properties = schema.canonical_properties()
    if not properties:
        return serialized

    serialized["parameters"] = SerializedParameters(
        type="object",
        properties=properties,
        required=[name for name in properties if schema.is_key_required(name)],
        additionalProperties=False,
    )
    return serialized


def serialize_custom_tools(
    tools: list[CustomToolDefinition],
) -> list[SerializedCustomToolDefinition]:
    """Serialize a list of tool definitions, preserving order."""
    return [serialize_custom_tool(tool) for tool in tools]
