"""Custom tool compilation, loading and prompt serialization.

Tool sources are compiled by the toolbundle process, imported, and folded
into a name -> definition map. Each definition can be serialized into a
canonical form and rendered for native function calling or as an XML-style
prompt catalog.
"""

from mochi_tools.tools.compiler import CompileRequest, get_bundler_script_path, run_bundler
from mochi_tools.tools.errors import (
    BundlerNotFoundError,
    CompileError,
    CustomToolError,
    SchemaError,
    ToolDefinitionError,
    ToolLoadError,
    ToolNotFoundError,
)
from mochi_tools.tools.format_native import format_native, format_native_tools
from mochi_tools.tools.format_xml import format_xml
from mochi_tools.tools.loader import ToolLoader
from mochi_tools.tools.registry import CustomToolRegistry
from mochi_tools.tools.schema import ParameterSchema, PydanticParameterSchema
from mochi_tools.tools.serialize import serialize_custom_tool, serialize_custom_tools
from mochi_tools.tools.types import (
    CustomToolContext,
    CustomToolDefinition,
    IsTool,
    NotATool,
    SerializedCustomToolDefinition,
    check_tool,
    define_custom_tool,
)

__all__ = [
    "BundlerNotFoundError",
    "CompileError",
    "CompileRequest",
    "CustomToolContext",
    "CustomToolDefinition",
    "CustomToolError",
    "CustomToolRegistry",
    "IsTool",
    "NotATool",
    "ParameterSchema",
    "PydanticParameterSchema",
    "SchemaError",
    "SerializedCustomToolDefinition",
    "ToolDefinitionError",
    "ToolLoadError",
    "ToolLoader",
    "ToolNotFoundError",
    "check_tool",
    "define_custom_tool",
    "format_native",
    "format_native_tools",
    "format_xml",
    "get_bundler_script_path",
    "run_bundler",
    "serialize_custom_tool",
    "serialize_custom_tools",
]
