"""Loading of custom tools from directories of tool sources.

A load pass compiles every tool source in the given directories with
toolbundle, imports the compiled modules and collects the tools they export.
Directories are folded left to right: a tool defined in a later directory
replaces a tool of the same name from an earlier one. Within a directory,
files are processed in sorted filename order with the same rule.

Files whose names start with an underscore are not loaded as tools. They are
helper modules that tool sources import and that toolbundle inlines.
"""

import asyncio
import importlib.util
import logging
import sys
import tempfile
import uuid
from dataclasses import replace
from pathlib import Path
from types import ModuleType
from typing import Any, Iterable, Iterator

from mochi_tools.tools.compiler import CompileRequest, run_bundler
from mochi_tools.tools.errors import CompileError, ToolDefinitionError, ToolLoadError
from mochi_tools.tools.schema import is_parameters_model
from mochi_tools.tools.types import CustomToolDefinition, NotATool, check_tool

logger = logging.getLogger(__name__)

LoadResult = dict[str, CustomToolDefinition]


def exported_bindings(module: ModuleType) -> Iterator[tuple[str, Any]]:
    """Yield the (name, value) pairs a tool module exports.

    Uses __all__ when the module defines it, otherwise every module attribute
    whose name does not start with an underscore.
    """
    names = getattr(module, "__all__", None)
    if names is None:
        names = [name for name in vars(module) if not name.startswith("_")]
    for name in names:
        yield name, getattr(module, name, None)


class ToolLoader:
    """Compiles and imports tool sources into a name -> definition map.

    Loaders hold configuration only; every load pass starts from scratch and
    compiled modules are discarded with the pass's temporary directory.

    Attributes:
        install_root: Host installation root searched first for toolbundle
        extra_resolution_paths: Extra directories for resolving modules
            imported by tool sources
        max_concurrency: Maximum number of bundler processes at once
        compile_timeout: Seconds before a bundler process is killed
        extensions: File suffixes treated as tool sources
    """

    def __init__(
        self,
        install_root: str | Path | None = None,
        extra_resolution_paths: Iterable[str] | None = None,
        max_concurrency: int = 4,
        compile_timeout: float | None = None,
        extensions: Iterable[str] = (".py",),
    ) -> None:
        self.install_root = install_root
        self.extra_resolution_paths = list(extra_resolution_paths or [])
        self.max_concurrency = max(1, max_concurrency)
        self.compile_timeout = compile_timeout
        self.extensions = tuple(extensions)

    def discover(self, tool_dir: Path) -> list[Path]:
        """List the tool sources in a directory, in sorted order.

        Missing directories yield an empty list.
        """
        tool_dir = Path(tool_dir)
        if not tool_dir.is_dir():
            logger.debug(f"Custom tools directory does not exist: {tool_dir}")
            return []

        return sorted(
            path
            for path in tool_dir.iterdir()
            if path.is_file()
            and path.suffix in self.extensions
            and not path.name.startswith("_")
        )

    async def load_from_directory(self, tool_dir: str | Path) -> LoadResult:
        """Load all tools from a single directory."""
        return await self.load_from_directories([tool_dir])

    async def load_from_directories(self, tool_dirs: Iterable[str | Path]) -> LoadResult:
        """Load all tools from multiple directories.

        Args:
            tool_dirs: Directories in override order (later directories win)

        Returns:
            Mapping of tool name to definition

        Raises:
            ToolLoadError: If any source fails to compile or import, or
                exports an invalid tool. No partial result is returned.
            BundlerNotFoundError: If toolbundle cannot be located
        """
        sources: list[Path] = []
        for tool_dir in tool_dirs:
            sources.extend(self.discover(Path(tool_dir)))

        result: LoadResult = {}
        if not sources:
            return result

        with tempfile.TemporaryDirectory(prefix="mochi-tools-") as build_dir:
            outfiles = await self._compile_all(sources, Path(build_dir))

            for source, outfile in zip(sources, outfiles):
                module = self._import(source, outfile)

                for export_name, value in exported_bindings(module):
                    try:
                        check = check_tool(value, export_name)
                    except ToolDefinitionError as e:
                        raise ToolLoadError(source, str(e)) from e

                    if isinstance(check, NotATool):
                        continue

                    tool = replace(check.definition, source=source)
                    previous = result.get(tool.name)
                    if previous is not None:
                        logger.info(
                            f"Custom tool '{tool.name}' from {source} overrides {previous.source}"
                        )
                    result[tool.name] = tool
                    logger.info(f"Loaded custom tool '{tool.name}' from {source}")

        return result

    async def _compile_all(self, sources: list[Path], build_dir: Path) -> list[Path]:
        semaphore = asyncio.Semaphore(self.max_concurrency)

        async def compile_one(index: int, source: Path) -> Path:
            outfile = build_dir / f"{index:04d}_{source.stem}.py"
            request = CompileRequest(
                entry_point=source.resolve(),
                outfile=outfile,
                bundle=True,
                sourcemap="inline",
                packages="bundle",
                extra_resolution_paths=self.extra_resolution_paths,
            )
            async with semaphore:
                logger.debug(f"Compiling custom tool source {source}")
                try:
                    await run_bundler(
                        request,
                        install_root=self.install_root,
                        timeout=self.compile_timeout,
                    )
                except CompileError as e:
                    raise ToolLoadError(source, e.diagnostic) from e
            return outfile

        tasks = [
            asyncio.create_task(compile_one(index, source))
            for index, source in enumerate(sources)
        ]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            # One failure (or cancellation) stops every remaining compile
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    def _import(self, source: Path, outfile: Path) -> ModuleType:
        """Import a compiled tool module under a unique module name.

        The module (and any helper modules its bundle registered beneath it)
        is only present in sys.modules while it executes. Pydantic models it
        defines are rebuilt before the entries are removed, so later schema
        generation and validation never look the module up by name.
        """
        module_name = f"mochi_tools_custom_{source.stem}_{uuid.uuid4().hex[:8]}"
        spec = importlib.util.spec_from_file_location(module_name, outfile)
        if spec is None or spec.loader is None:
            raise ToolLoadError(source, f"Cannot import compiled module {outfile}")

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
            _rebuild_models(module_name)
        except Exception as e:
            raise ToolLoadError(source, f"{type(e).__name__}: {e}") from e
        finally:
            _forget_modules(module_name)

        logger.debug(f"Imported {source} as {module_name}")
        return module


def _owned_modules(module_name: str) -> list[str]:
    prefix = f"{module_name}."
    return [name for name in list(sys.modules) if name == module_name or name.startswith(prefix)]


def _rebuild_models(module_name: str) -> None:
    """Resolve the annotations of every pydantic model defined under module_name."""
    for name in _owned_modules(module_name):
        for value in list(vars(sys.modules[name]).values()):
            if is_parameters_model(value) and value.__module__ == name:
                value.model_rebuild()


def _forget_modules(module_name: str) -> None:
    for name in _owned_modules(module_name):
        del sys.modules[name]
