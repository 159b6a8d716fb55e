"""CLI entry point for mochi-tools.

This module provides the command-line interface for mochi-tools. It can be
invoked as `mochi-tools` (via the script entry point) or `python -m mochi_tools`.
By default it starts the HTTP server; with --render it loads the configured
tool directories, prints them in the chosen protocol format and exits.
"""

import argparse
import asyncio
import json
import logging
import sys

import uvicorn

from mochi_tools import __version__, create_app
from mochi_tools.app import create_registry
from mochi_tools.config import MochiToolsSettings
from mochi_tools.tools import CustomToolError, format_native_tools, format_xml

logger = logging.getLogger(__name__)


async def render_tools(settings: MochiToolsSettings, fmt: str) -> str:
    """Load the configured tool directories and render them.

    Args:
        settings: Settings providing the tool directories and bundler options
        fmt: "xml" or "native"

    Returns:
        The XML catalog, or the native definitions as a JSON array
    """
    registry = create_registry(settings)
    await registry.load_from_directories(settings.resolved_tool_dirs)
    serialized = registry.get_all_serialized()

    if fmt == "native":
        return json.dumps(format_native_tools(serialized), indent=2)
    return format_xml(serialized)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="mochi-tools",
        description="Custom tool catalog server for LLM function calling and XML prompts",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"mochi-tools {__version__}",
    )

    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind the server to (default: 127.0.0.1, can be set via MOCHI_TOOLS_HOST)",
    )

    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind the server to (default: 8000, can be set via MOCHI_TOOLS_PORT)",
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default=None,
        help="Base directory for tool directories (default: ., can be set via MOCHI_TOOLS_DATA_DIR)",
    )

    parser.add_argument(
        "--tools-dir",
        type=str,
        default=None,
        help="Built-in tools directory (default: tools, can be set via MOCHI_TOOLS_TOOLS_DIR)",
    )

    parser.add_argument(
        "--user-tools-dir",
        type=str,
        default=None,
        help="Override tools directory, loaded after the built-in one "
        "(can be set via MOCHI_TOOLS_USER_TOOLS_DIR)",
    )

    parser.add_argument(
        "--install-root",
        type=str,
        default=None,
        help="Installation root shipping dist/bin/toolbundle "
        "(can be set via MOCHI_TOOLS_INSTALL_ROOT)",
    )

    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: INFO, can be set via MOCHI_TOOLS_LOG_LEVEL)",
    )

    parser.add_argument(
        "--render",
        choices=["xml", "native"],
        default=None,
        help="Print the loaded tools in the given format and exit instead of serving",
    )

    return parser


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the mochi-tools CLI.

    Parses command-line arguments and either renders the tool catalog or
    starts the uvicorn server with the FastAPI application.

    Returns:
        Process exit code
    """
    args = build_parser().parse_args(argv)

    # Build settings, CLI args override environment variables
    settings_kwargs = {}
    if args.host is not None:
        settings_kwargs["host"] = args.host
    if args.port is not None:
        settings_kwargs["port"] = args.port
    if args.data_dir is not None:
        settings_kwargs["data_dir"] = args.data_dir
    if args.tools_dir is not None:
        settings_kwargs["tools_dir"] = args.tools_dir
    if args.user_tools_dir is not None:
        settings_kwargs["user_tools_dir"] = args.user_tools_dir
    if args.install_root is not None:
        settings_kwargs["install_root"] = args.install_root
    if args.log_level is not None:
        settings_kwargs["log_level"] = args.log_level

    settings = MochiToolsSettings(**settings_kwargs)

    if args.render is not None:
        logging.basicConfig(
            level=settings.log_level.upper(),
            format="%(levelname)s %(name)s: %(message)s",
            stream=sys.stderr,
        )
        try:
            output = asyncio.run(render_tools(settings, args.render))
        except CustomToolError as e:
            logger.error(str(e))
            return 1
        print(output)
        return 0

    app = create_app(settings=settings)

    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
