"""toolbundle: compile a typed Python tool source into a standalone module.

The bundler runs as its own process (see mochi_tools/bin/toolbundle) and only
depends on the standard library, so it can be launched without importing the
rest of the package.

    toolbundle ENTRY --outfile=PATH [--format=module|script]
               [--platform=cpython|pypy|neutral] [--target=pyXY] [--bundle]
               [--sourcemap[=linked|inline|external|both]]
               [--packages=bundle|external]

The entry point is syntax-checked against the target version. With --bundle,
single-file modules it imports from its own directory (and, with
--packages=bundle, from the PYTHONPATH entries) are embedded in the output.
Embedded sources are compiled under their original filenames, so tracebacks
from the bundle point at the authored files.

Embedded modules are registered as submodules of the bundle itself
("<bundle>.<name>"). Their bare names are only visible in sys.modules while
bundled code executes, so a tool directory holding e.g. json.py never
replaces the real json module for the rest of the process. Imports of an
embedded module deferred into a function body therefore do not resolve.
"""

import argparse
import ast
import base64
import json
import os
import re
import sys
from dataclasses import dataclass
from pathlib import Path

FORMATS = ("module", "script")
PLATFORMS = ("cpython", "pypy", "neutral")
SOURCEMAP_MODES = ("linked", "inline", "external", "both")
PACKAGE_MODES = ("bundle", "external")

_TARGET_PATTERN = re.compile(r"^py(\d)(\d+)$")

_PRELUDE = '''\
import contextlib as _toolbundle_contextlib
import sys as _toolbundle_sys
import types as _toolbundle_types

_toolbundle_modules = {}
_toolbundle_missing = object()


@_toolbundle_contextlib.contextmanager
def _toolbundle_scope():
    # Inlined modules are importable by their bare names only while bundled
    # code runs; previous sys.modules entries are restored afterwards.
    saved = {
        name: _toolbundle_sys.modules.get(name, _toolbundle_missing)
        for name in _toolbundle_modules
    }
    _toolbundle_sys.modules.update(_toolbundle_modules)
    try:
        yield
    finally:
        for name, previous in saved.items():
            if previous is _toolbundle_missing:
                _toolbundle_sys.modules.pop(name, None)
            else:
                _toolbundle_sys.modules[name] = previous


def _toolbundle_define(name, filename, source):
    module = _toolbundle_types.ModuleType(__name__ + "." + name)
    module.__file__ = filename
    _toolbundle_sys.modules[module.__name__] = module
    with _toolbundle_scope():
        exec(compile(source, filename, "exec"), module.__dict__)
    _toolbundle_modules[name] = module
    return module
'''

_PLATFORM_GUARD = '''\
if _toolbundle_sys.implementation.name != {platform!r}:
    raise ImportError(
        "bundle targets {platform}, running on " + _toolbundle_sys.implementation.name
    )
'''


class BundleError(Exception):
    """Raised for any problem that prevents the bundle from being written."""


@dataclass
class SourceModule:
    """A local module embedded in the bundle."""

    name: str
    path: Path
    source: str


def parse_target(target: str) -> tuple[int, int]:
    """Parse a target such as "py311" into a (major, minor) tuple."""
    match = _TARGET_PATTERN.match(target)
    if not match:
        raise BundleError(f'Invalid target "{target}" (expected e.g. "py311")')
    return int(match.group(1)), int(match.group(2))


def _target_arg(value: str) -> str:
    try:
        parse_target(value)
    except BundleError as e:
        raise argparse.ArgumentTypeError(str(e))
    return value


def read_source(path: Path) -> str:
    if not path.is_file():
        raise BundleError(f'Could not resolve "{path}"')
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        raise BundleError(f"{path}: ERROR: File is not valid UTF-8: {e}")


def parse_source(source: str, path: Path, feature_version: tuple[int, int]) -> ast.Module:
    """Parse source, rejecting syntax newer than feature_version."""
    version = min(feature_version, sys.version_info[:2])
    try:
        return ast.parse(source, filename=str(path), feature_version=version)
    except SyntaxError as e:
        raise BundleError(f"{path}:{e.lineno}:{e.offset}: ERROR: {e.msg}")
    except ValueError as e:
        raise BundleError(f"{path}: ERROR: {e}")


def imported_modules(tree: ast.Module, path: Path) -> list[str]:
    """List the top-level module names imported anywhere in tree."""
    names = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            names.extend(alias.name.split(".")[0] for alias in node.names)
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                raise BundleError(
                    f"{path}:{node.lineno}:{node.col_offset}: ERROR: "
                    "Relative imports are not supported in tool sources"
                )
            if node.module:
                names.append(node.module.split(".")[0])
    return list(dict.fromkeys(names))


def resolve_local(name: str, search_dirs: list[Path]) -> Path | None:
    for directory in search_dirs:
        candidate = directory / f"{name}.py"
        if candidate.is_file():
            return candidate.resolve()
    return None


def collect_modules(
    entry: Path,
    tree: ast.Module,
    search_dirs: list[Path],
    feature_version: tuple[int, int],
) -> list[SourceModule]:
    """Collect the local modules imported by entry, dependencies first."""
    ordered: list[SourceModule] = []
    done = {entry.resolve()}
    visiting: set[Path] = set()

    def visit(module_tree: ast.Module, module_path: Path) -> None:
        for name in imported_modules(module_tree, module_path):
            dependency = resolve_local(name, search_dirs)
            if dependency is None or dependency in done or dependency in visiting:
                continue
            visiting.add(dependency)
            source = read_source(dependency)
            visit(parse_source(source, dependency, feature_version), dependency)
            visiting.discard(dependency)
            done.add(dependency)
            ordered.append(SourceModule(name=name, path=dependency, source=source))

    visit(tree, entry)
    return ordered


def render_bundle(
    entry: Path,
    entry_source: str,
    modules: list[SourceModule],
    options: argparse.Namespace,
) -> tuple[str, list[dict]]:
    """Render the bundle text and the source map sections.

    Returns:
        The bundle source and, for every embedded source, the output line
        holding it.
    """
    lines = []
    if options.format == "script":
        lines.append("#!/usr/bin/env python3")
    lines.append(f"# Bundled by toolbundle from {entry}")
    lines.append(
        f"# format={options.format} platform={options.platform} target={options.target}"
    )
    lines.extend(_PRELUDE.splitlines())

    if options.platform != "neutral":
        lines.append("")
        lines.extend(_PLATFORM_GUARD.format(platform=options.platform).splitlines())

    lines.append("")
    sections = []
    for module in modules:
        sections.append(
            {"module": module.name, "source": str(module.path), "line": len(lines) + 1}
        )
        lines.append(
            f"_toolbundle_define({module.name!r}, {str(module.path)!r}, {module.source!r})"
        )

    lines.append("with _toolbundle_scope():")
    sections.append({"module": entry.stem, "source": str(entry), "line": len(lines) + 1})
    lines.append(f'    exec(compile({entry_source!r}, {str(entry)!r}, "exec"), globals())')

    return "\n".join(lines) + "\n", sections


def write_sourcemap(outfile: Path, sections: list[dict], mode: str) -> str | None:
    """Write the source map for mode and return the comment to append, if any."""
    payload = json.dumps(
        {
            "version": 1,
            "generator": "toolbundle",
            "file": outfile.name,
            "sources": [section["source"] for section in sections],
            "sections": sections,
        },
        indent=2,
    )

    if mode in ("linked", "external", "both"):
        outfile.with_name(f"{outfile.name}.map").write_text(payload, encoding="utf-8")

    if mode == "linked":
        return f"# sourceMappingURL={outfile.name}.map"
    if mode in ("inline", "both"):
        encoded = base64.b64encode(payload.encode("utf-8")).decode("ascii")
        return f"# sourceMappingURL=data:application/json;base64,{encoded}"
    return None


def resolution_paths() -> list[Path]:
    """Directories listed in PYTHONPATH."""
    raw = os.environ.get("PYTHONPATH", "")
    return [Path(p) for p in raw.split(os.pathsep) if p]


def bundle(options: argparse.Namespace) -> None:
    """Bundle options.entry into options.outfile."""
    entry = Path(options.entry).resolve()
    outfile = Path(options.outfile).resolve()
    feature_version = parse_target(options.target)

    entry_source = read_source(entry)
    tree = parse_source(entry_source, entry, feature_version)

    modules: list[SourceModule] = []
    if options.bundle:
        search_dirs = [entry.parent]
        if options.packages == "bundle":
            search_dirs.extend(resolution_paths())
        modules = collect_modules(entry, tree, search_dirs, feature_version)
    else:
        # Still reject relative imports, which cannot work outside a package
        imported_modules(tree, entry)

    text, sections = render_bundle(entry, entry_source, modules, options)

    try:
        outfile.parent.mkdir(parents=True, exist_ok=True)
        if options.sourcemap:
            comment = write_sourcemap(outfile, sections, options.sourcemap)
            if comment:
                text += comment + "\n"
        outfile.write_text(text, encoding="utf-8")
        if options.format == "script":
            outfile.chmod(0o755)
    except OSError as e:
        raise BundleError(f"{outfile}: ERROR: Failed to write output: {e}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="toolbundle",
        description="Compile a typed Python tool source into a standalone module",
    )
    parser.add_argument("entry", help="Tool source file")
    parser.add_argument("--outfile", required=True, help="Path of the module to write")
    parser.add_argument("--format", choices=FORMATS, default="module")
    parser.add_argument("--platform", choices=PLATFORMS, default="cpython")
    parser.add_argument(
        "--target",
        type=_target_arg,
        default=f"py{sys.version_info.major}{sys.version_info.minor}",
    )
    parser.add_argument(
        "--bundle",
        action="store_true",
        help="Inline local modules imported by the entry point",
    )
    parser.add_argument(
        "--sourcemap",
        nargs="?",
        const="linked",
        choices=SOURCEMAP_MODES,
        default=None,
    )
    parser.add_argument("--packages", choices=PACKAGE_MODES, default=None)
    return parser


def main(argv: list[str] | None = None) -> int:
    """Run the bundler and return the process exit code."""
    options = build_parser().parse_args(argv)
    try:
        bundle(options)
    except BundleError as e:
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
