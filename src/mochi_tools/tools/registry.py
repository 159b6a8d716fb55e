"""Registry of the custom tools available to the host.

The registry owns the tool map produced by the most recent successful load
pass, plus any tools registered directly. It hands out serialized views for
the prompt formatters and dispatches tool execution.
"""

import inspect
import logging
from pathlib import Path
from typing import Any, Iterable

from mochi_tools.tools.errors import ToolDefinitionError, ToolNotFoundError
from mochi_tools.tools.loader import ToolLoader
from mochi_tools.tools.schema import is_parameters_model
from mochi_tools.tools.serialize import serialize_custom_tool
from mochi_tools.tools.types import (
    CustomToolContext,
    CustomToolDefinition,
    NotATool,
    SerializedCustomToolDefinition,
    check_tool,
)

logger = logging.getLogger(__name__)


class CustomToolRegistry:
    """Holds custom tool definitions keyed by name.

    Attributes:
        loader: The ToolLoader used by the load_* methods
    """

    def __init__(self, loader: ToolLoader | None = None) -> None:
        self.loader = loader or ToolLoader()
        self._tools: dict[str, CustomToolDefinition] = {}

    async def load_from_directories(self, tool_dirs: Iterable[str | Path]) -> list[str]:
        """Replace the registered tools with a fresh load of tool_dirs.

        The current tools are kept untouched if the load pass fails.

        Args:
            tool_dirs: Directories in override order (later directories win)

        Returns:
            Names of the loaded tools

        Raises:
            ToolLoadError: If any tool source fails to load
            BundlerNotFoundError: If toolbundle cannot be located
        """
        tools = await self.loader.load_from_directories(tool_dirs)
        self._tools = dict(tools)
        logger.info(f"Custom tool registry now holds {len(self._tools)} tool(s)")
        return self.names()

    async def load_from_directory(self, tool_dir: str | Path) -> list[str]:
        """Replace the registered tools with a fresh load of one directory."""
        return await self.load_from_directories([tool_dir])

    def register(self, definition: Any, source: str | Path | None = None) -> None:
        """Register a tool directly, without loading it from a file.

        Raises:
            ToolDefinitionError: If definition is not a valid tool
        """
        name = getattr(definition, "name", None) or "<unnamed>"
        check = check_tool(definition, name)
        if isinstance(check, NotATool):
            raise ToolDefinitionError(f"Invalid tool definition for '{name}': {check.reason}")

        tool = check.definition
        if source is not None:
            tool = CustomToolDefinition(
                name=tool.name,
                description=tool.description,
                execute=tool.execute,
                parameters=tool.parameters,
                source=Path(source),
            )
        self._tools[tool.name] = tool

    def unregister(self, name: str) -> bool:
        """Remove a tool by name. Returns True if it was registered."""
        return self._tools.pop(name, None) is not None

    def get(self, name: str) -> CustomToolDefinition | None:
        return self._tools.get(name)

    def has(self, name: str) -> bool:
        return name in self._tools

    def names(self) -> list[str]:
        """Get all registered tool names."""
        return list(self._tools)

    def get_all(self) -> list[CustomToolDefinition]:
        return list(self._tools.values())

    def get_all_serialized(self) -> list[SerializedCustomToolDefinition]:
        """Get all registered tools in serialized form."""
        return [serialize_custom_tool(tool) for tool in self._tools.values()]

    @property
    def size(self) -> int:
        return len(self._tools)

    def clear(self) -> None:
        self._tools.clear()

    async def execute(
        self,
        name: str,
        args: dict[str, Any],
        context: CustomToolContext | None = None,
    ) -> Any:
        """Execute a registered tool.

        Arguments are validated with the tool's pydantic model when it has
        one; the validated model instance is passed to execute.

        Raises:
            ToolNotFoundError: If no tool is registered under name
            pydantic.ValidationError: If args do not match the tool's model
        """
        tool = self._tools.get(name)
        if tool is None:
            raise ToolNotFoundError(name)

        parsed: Any = args
        if is_parameters_model(tool.parameters):
            parsed = tool.parameters.model_validate(args)

        logger.debug(f"Executing custom tool '{name}'")
        result = tool.execute(parsed, context or CustomToolContext())
        if inspect.isawaitable(result):
            result = await result
        return result
