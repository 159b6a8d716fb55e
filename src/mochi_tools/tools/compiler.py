"""Bridge to the toolbundle process that compiles tool sources.

Tool sources are never compiled in-process. This module locates the
toolbundle script and runs it with the host interpreter as a subprocess,
one process per source file.

In an installed package the script lives in mochi_tools/bin/ next to this
package. A host application that ships its own copy places it under
<install_root>/dist/bin/.
"""

import asyncio
import logging
import os
import sys
from dataclasses import dataclass, field
from pathlib import Path

from mochi_tools.tools.errors import BundlerNotFoundError, CompileError

logger = logging.getLogger(__name__)

BUNDLER_NAME = "toolbundle"
BUNDLER_PACKAGE = "mochi_tools"
MAX_SEARCH_DEPTH = 10

MODULE_DIR = Path(__file__).resolve().parent

DEFAULT_FORMAT = "module"
DEFAULT_PLATFORM = "cpython"
DEFAULT_TARGET = f"py{sys.version_info.major}{sys.version_info.minor}"


@dataclass
class CompileRequest:
    """Options for a single bundler invocation.

    Attributes:
        entry_point: Absolute path of the tool source file
        outfile: Absolute path of the module to produce
        format: Output format ("module" or "script")
        platform: Target implementation ("cpython", "pypy" or "neutral")
        target: Target language version (e.g. "py311")
        bundle: Inline local modules imported by the entry point
        sourcemap: True for a linked map, or a mode ("linked", "inline",
            "external", "both")
        packages: "bundle" to also inline modules found on the extra
            resolution paths, "external" to leave them as imports
        extra_resolution_paths: Directories exposed to the bundler via
            PYTHONPATH
    """

    entry_point: Path
    outfile: Path
    format: str = DEFAULT_FORMAT
    platform: str = DEFAULT_PLATFORM
    target: str = DEFAULT_TARGET
    bundle: bool = True
    sourcemap: bool | str = False
    packages: str | None = None
    extra_resolution_paths: list[str] = field(default_factory=list)

    def build_args(self) -> list[str]:
        """Build the bundler command-line arguments (without the script)."""
        args = [
            str(self.entry_point),
            f"--outfile={self.outfile}",
            f"--format={self.format}",
            f"--platform={self.platform}",
            f"--target={self.target}",
        ]

        if self.bundle:
            args.append("--bundle")

        if self.sourcemap:
            args.append("--sourcemap" if self.sourcemap is True else f"--sourcemap={self.sourcemap}")

        if self.packages:
            args.append(f"--packages={self.packages}")

        return args

    def build_env(self) -> dict[str, str]:
        """Build the subprocess environment.

        PYTHONPATH is replaced by the extra resolution paths, or removed when
        there are none, so only configured directories are bundled.
        """
        env = dict(os.environ)
        if self.extra_resolution_paths:
            env["PYTHONPATH"] = os.pathsep.join(self.extra_resolution_paths)
        else:
            env.pop("PYTHONPATH", None)
        return env


def find_bundler_script(start_dir: Path) -> Path | None:
    """Find the toolbundle script by walking up the directory tree.

    At each level both <dir>/mochi_tools/bin/toolbundle (an installed package
    or a src/ directory) and <dir>/src/mochi_tools/bin/toolbundle (a source
    checkout using the src layout) are checked.

    Args:
        start_dir: Directory to start the search from

    Returns:
        Path to the script, or None if not found within MAX_SEARCH_DEPTH levels
    """
    current = Path(start_dir).resolve()
    root = Path(current.anchor)

    for _ in range(MAX_SEARCH_DEPTH):
        script = current / BUNDLER_PACKAGE / "bin" / BUNDLER_NAME
        if script.is_file():
            return script

        workspace_script = current / "src" / BUNDLER_PACKAGE / "bin" / BUNDLER_NAME
        if workspace_script.is_file():
            return workspace_script

        if current == root:
            break
        current = current.parent

    return None


def get_bundler_script_path(install_root: str | Path | None = None) -> Path:
    """Get the path to the toolbundle script.

    Resolution order:
    1. <install_root>/dist/bin/toolbundle, when install_root is given
    2. Walking up from this module's directory
    3. Walking up from the current working directory

    Args:
        install_root: Root directory of a host installation shipping its own
            copy of the script

    Returns:
        Path to the toolbundle script

    Raises:
        BundlerNotFoundError: If the script is not found anywhere
    """
    if install_root:
        shipped = Path(install_root) / "dist" / "bin" / BUNDLER_NAME
        if shipped.is_file():
            return shipped

    script = find_bundler_script(MODULE_DIR)
    if script is not None:
        return script

    script = find_bundler_script(Path.cwd())
    if script is not None:
        return script

    raise BundlerNotFoundError(
        f"{BUNDLER_NAME} script not found. Ensure mochi-tools is installed correctly."
    )


async def run_bundler(
    request: CompileRequest,
    install_root: str | Path | None = None,
    timeout: float | None = None,
) -> None:
    """Run toolbundle to compile a tool source into an importable module.

    Args:
        request: Compile options
        install_root: Forwarded to get_bundler_script_path()
        timeout: Seconds to wait before killing the process, or None

    Raises:
        BundlerNotFoundError: If the script cannot be located
        CompileError: If the process fails, times out or produces no output
    """
    script = get_bundler_script_path(install_root)
    args = request.build_args()
    logger.debug(f"Running {BUNDLER_NAME}: {script} {' '.join(args)}")

    process = await asyncio.create_subprocess_exec(
        sys.executable,
        str(script),
        *args,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        env=request.build_env(),
    )

    try:
        stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
    except asyncio.TimeoutError:
        await _kill(process)
        raise CompileError(
            f"{BUNDLER_NAME} timed out after {timeout}s compiling {request.entry_point}"
        )
    except asyncio.CancelledError:
        await _kill(process)
        raise

    if process.returncode != 0:
        diagnostic = (
            stderr.decode(errors="replace").strip()
            or stdout.decode(errors="replace").strip()
            or f"{BUNDLER_NAME} exited with code {process.returncode}"
        )
        raise CompileError(diagnostic, exit_code=process.returncode)

    if not Path(request.outfile).is_file():
        raise CompileError(
            f"{BUNDLER_NAME} produced no output file at {request.outfile}",
            exit_code=process.returncode,
        )


async def _kill(process: asyncio.subprocess.Process) -> None:
    if process.returncode is None:
        try:
            process.kill()
        except ProcessLookupError:
            # Exited between the check and the signal
            pass
    await process.wait()
