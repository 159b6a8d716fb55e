"""mochi-tools: custom tool loading and prompt serialization for LLM hosts.

This package compiles user-authored tool sources, folds tool directories
with last-writer-wins overrides, and renders the resulting tools for native
function calling or as an XML-style prompt catalog. A FastAPI app exposes
the catalog over HTTP.
"""

from mochi_tools.app import create_app
from mochi_tools.tools import (
    CustomToolContext,
    CustomToolDefinition,
    CustomToolRegistry,
    define_custom_tool,
    format_native,
    format_xml,
    serialize_custom_tool,
)

__version__ = "0.1.0"

__all__ = [
    "CustomToolContext",
    "CustomToolDefinition",
    "CustomToolRegistry",
    "create_app",
    "define_custom_tool",
    "format_native",
    "format_xml",
    "serialize_custom_tool",
    "__version__",
]
