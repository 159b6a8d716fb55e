"""Exceptions raised while compiling, loading and serializing custom tools."""

from pathlib import Path


class CustomToolError(Exception):
    """Base class for all custom tool errors."""


class BundlerNotFoundError(CustomToolError):
    """Raised when the toolbundle script cannot be located."""


class CompileError(CustomToolError):
    """Raised when the bundler process fails to produce an output module.

    Attributes:
        diagnostic: The text reported by the bundler (stderr, stdout or a
            synthesized exit-code message).
        exit_code: The process exit code, or None if the process was killed.
    """

    def __init__(self, diagnostic: str, exit_code: int | None = None) -> None:
        self.diagnostic = diagnostic
        self.exit_code = exit_code
        super().__init__(f"toolbundle failed: {diagnostic}")


class ToolLoadError(CustomToolError):
    """Raised when a tool source file cannot be compiled or imported.

    A single failing file aborts the whole load pass, so this error always
    names the offending file together with the underlying diagnostic.
    """

    def __init__(self, path: Path, diagnostic: str) -> None:
        self.path = path
        self.diagnostic = diagnostic
        super().__init__(f"Failed to load custom tools from {path}: {diagnostic}")


class ToolDefinitionError(CustomToolError):
    """Raised for tool-shaped values whose fields are invalid."""


class SchemaError(CustomToolError):
    """Raised when a parameter schema cannot be converted to canonical form."""


class ToolNotFoundError(CustomToolError, KeyError):
    """Raised when a tool name is not present in the registry."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Custom tool '{name}' not found")

    def __str__(self) -> str:
        return str(self.args[0])
