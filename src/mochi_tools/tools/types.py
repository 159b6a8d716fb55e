"""Type definitions for custom tools.

This module contains the authored tool definition, the execution context
passed to tools, the serialized (protocol-agnostic) shapes produced by the
serializer, and the check used to decide whether an exported value is a tool.
"""

import inspect
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from types import ModuleType
from typing import Any, Awaitable, Callable, TypedDict

from mochi_tools.tools.errors import ToolDefinitionError
from mochi_tools.tools.schema import is_parameter_schema


@dataclass
class CustomToolContext:
    """Context provided to tool execute functions.

    Attributes:
        mode: The host mode the tool is invoked from (e.g. "code")
        task_id: Identifier of the task invoking the tool, if any
    """

    mode: str = "code"
    task_id: str | None = None


ExecuteFn = Callable[[Any, CustomToolContext], Awaitable[str] | str]


@dataclass
class CustomToolDefinition:
    """Definition structure for a custom tool.

    Attributes:
        name: Identifies the tool in prompts and in the registry
        description: Shown to the model to help it decide when to use the tool
        execute: Called with the validated arguments and a CustomToolContext;
            usually a coroutine function returning a string
        parameters: Optional pydantic model (or ParameterSchema) describing
            the tool's arguments
        source: File the tool was loaded from, if any
    """

    name: str
    description: str
    execute: ExecuteFn
    parameters: Any = None
    source: Path | None = None


def define_custom_tool(
    *,
    name: str,
    description: str,
    parameters: Any = None,
    execute: ExecuteFn | None = None,
) -> Any:
    """Define a custom tool.

    Can be called directly with an execute function, or used as a decorator
    over the execute coroutine:

        class Params(BaseModel):
            a: int = Field(description="First number")
            b: int = Field(description="Second number")

        @define_custom_tool(name="add_numbers", description="Add two numbers",
                            parameters=Params)
        async def add_numbers(args: Params, context) -> str:
            return f"The sum is {args.a + args.b}"

    Returns:
        A CustomToolDefinition, or a decorator producing one when execute
        is omitted.
    """

    def build(fn: ExecuteFn) -> CustomToolDefinition:
        return CustomToolDefinition(
            name=name,
            description=description,
            execute=fn,
            parameters=parameters,
        )

    if execute is None:
        return build
    return build(execute)


class SerializedParameters(TypedDict):
    """Canonical parameters object of a serialized tool."""

    type: str
    properties: dict[str, Any]
    required: list[str]
    additionalProperties: bool


class _SerializedToolBase(TypedDict):
    name: str
    description: str


class SerializedCustomToolDefinition(_SerializedToolBase, total=False):
    """Protocol-agnostic form of a tool; parameters only when it has any."""

    parameters: SerializedParameters


@dataclass(frozen=True)
class IsTool:
    """check_tool result for a value that is a tool."""

    definition: CustomToolDefinition


@dataclass(frozen=True)
class NotATool:
    """check_tool result for a value that is not a tool."""

    reason: str


ToolCheck = IsTool | NotATool


def _field(value: Any, key: str) -> tuple[bool, Any]:
    if isinstance(value, Mapping):
        return key in value, value.get(key)
    return hasattr(value, key), getattr(value, key, None)


def check_tool(value: Any, export_name: str) -> ToolCheck:
    """Decide whether an exported value is a custom tool.

    A value is a tool when it has a name, a description and a callable
    execute, either as attributes or as mapping keys. Classes, modules and
    plain functions are never tools.

    Args:
        value: The exported value to inspect
        export_name: Name the value was exported under (used in errors)

    Returns:
        IsTool wrapping a normalised CustomToolDefinition, or NotATool.

    Raises:
        ToolDefinitionError: If the value is tool-shaped but its name,
            description or parameters are invalid.
    """
    if value is None or isinstance(value, (str, bytes, int, float, bool, type, ModuleType)):
        return NotATool(f"'{export_name}' is a {type(value).__name__}")
    if inspect.isroutine(value):
        return NotATool(f"'{export_name}' is a function")

    has_execute, execute = _field(value, "execute")
    if not has_execute or not callable(execute):
        return NotATool(f"'{export_name}' has no callable execute")

    has_name, name = _field(value, "name")
    has_description, description = _field(value, "description")
    if not has_name or not has_description:
        return NotATool(f"'{export_name}' is missing a name or description")

    errors = []
    if not isinstance(name, str):
        errors.append("name: Expected string")
    elif not name:
        errors.append("name: Tool must have a non-empty name")

    if not isinstance(description, str):
        errors.append("description: Expected string")
    elif not description:
        errors.append("description: Tool must have a non-empty description")

    _, parameters = _field(value, "parameters")
    if parameters is not None and not is_parameter_schema(parameters):
        errors.append("parameters: parameters must be a pydantic model")

    if errors:
        raise ToolDefinitionError(
            f"Invalid tool definition for '{export_name}': {', '.join(errors)}"
        )

    if isinstance(value, CustomToolDefinition):
        return IsTool(value)

    _, source = _field(value, "source")
    return IsTool(
        CustomToolDefinition(
            name=name,
            description=description,
            execute=execute,
            parameters=parameters,
            source=Path(source) if source else None,
        )
    )
