"""Unit tests for locating and running the toolbundle process."""

import os
import sys
from pathlib import Path

import pytest

from mochi_tools.tools import compiler
from mochi_tools.tools.compiler import (
    BUNDLER_NAME,
    CompileRequest,
    find_bundler_script,
    get_bundler_script_path,
    run_bundler,
)
from mochi_tools.tools.errors import BundlerNotFoundError, CompileError


def _make_script(root, *parts):
    script = root.joinpath(*parts, BUNDLER_NAME)
    script.parent.mkdir(parents=True, exist_ok=True)
    script.write_text("#!/usr/bin/env python3\n")
    return script


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    """Point the module-directory search and the cwd at an empty tree."""
    empty = tmp_path / "empty"
    empty.mkdir()
    monkeypatch.setattr(compiler, "MODULE_DIR", empty)
    monkeypatch.chdir(empty)
    return tmp_path


def test_build_args_defaults():
    """Test the argument list for a default request."""
    request = CompileRequest(entry_point="/tools/a.py", outfile="/build/a.py")

    args = request.build_args()

    assert args[0] == "/tools/a.py"
    assert "--outfile=/build/a.py" in args
    assert "--format=module" in args
    assert "--platform=cpython" in args
    assert f"--target=py{sys.version_info.major}{sys.version_info.minor}" in args
    assert "--bundle" in args
    assert not any(arg.startswith("--sourcemap") for arg in args)
    assert not any(arg.startswith("--packages") for arg in args)


def test_build_args_with_options():
    """Test the argument list with source maps and bundled packages."""
    request = CompileRequest(
        entry_point="/tools/a.py",
        outfile="/build/a.py",
        format="script",
        platform="neutral",
        target="py310",
        bundle=False,
        sourcemap="inline",
        packages="bundle",
    )

    args = request.build_args()

    assert "--format=script" in args
    assert "--platform=neutral" in args
    assert "--target=py310" in args
    assert "--bundle" not in args
    assert "--sourcemap=inline" in args
    assert "--packages=bundle" in args


def test_build_args_linked_sourcemap():
    """Test that sourcemap=True passes the bare flag."""
    request = CompileRequest(entry_point="a.py", outfile="b.py", sourcemap=True)

    assert "--sourcemap" in request.build_args()


def test_build_env_sets_pythonpath(monkeypatch):
    """Test that extra resolution paths are exposed through PYTHONPATH."""
    monkeypatch.delenv("PYTHONPATH", raising=False)
    request = CompileRequest(
        entry_point="a.py",
        outfile="b.py",
        extra_resolution_paths=["/opt/libs", "/srv/shared"],
    )

    env = request.build_env()

    assert env["PYTHONPATH"] == os.pathsep.join(["/opt/libs", "/srv/shared"])


def test_build_env_without_paths_drops_inherited_pythonpath(monkeypatch):
    """Test that an inherited PYTHONPATH is not passed to the bundler."""
    monkeypatch.setenv("PYTHONPATH", "/inherited")
    monkeypatch.setenv("MOCHI_TOOLS_MARKER", "kept")
    request = CompileRequest(entry_point="a.py", outfile="b.py")

    env = request.build_env()

    assert "PYTHONPATH" not in env
    assert env["MOCHI_TOOLS_MARKER"] == "kept"
    assert os.environ["PYTHONPATH"] == "/inherited"


def test_build_env_replaces_inherited_pythonpath(monkeypatch):
    """Test that extra paths replace rather than extend an inherited PYTHONPATH."""
    monkeypatch.setenv("PYTHONPATH", "/inherited")
    request = CompileRequest(
        entry_point="a.py", outfile="b.py", extra_resolution_paths=["/opt/libs"]
    )

    assert request.build_env()["PYTHONPATH"] == "/opt/libs"


def test_install_root_script_is_preferred(isolated):
    """Test that <install_root>/dist/bin/toolbundle wins."""
    shipped = _make_script(isolated / "host", "dist", "bin")

    assert get_bundler_script_path(isolated / "host") == shipped


def test_missing_install_root_script_falls_back(isolated, monkeypatch):
    """Test fallback to the module-directory search."""
    package_dir = isolated / "site-packages" / "mochi_tools" / "tools"
    package_dir.mkdir(parents=True)
    expected = _make_script(isolated / "site-packages", "mochi_tools", "bin")
    monkeypatch.setattr(compiler, "MODULE_DIR", package_dir)

    assert get_bundler_script_path(isolated / "no-such-host") == expected.resolve()


def test_cwd_search_finds_src_layout(isolated, monkeypatch):
    """Test that a source checkout is found from the working directory."""
    checkout = isolated / "checkout"
    expected = _make_script(checkout, "src", "mochi_tools", "bin")
    nested = checkout / "tests" / "unit"
    nested.mkdir(parents=True)
    monkeypatch.chdir(nested)

    assert get_bundler_script_path() == expected.resolve()


def test_not_found_raises(isolated):
    """Test the error when no script exists anywhere."""
    with pytest.raises(BundlerNotFoundError, match="toolbundle script not found"):
        get_bundler_script_path()


def test_search_depth_is_bounded(tmp_path):
    """Test that the upward walk stops after a fixed number of levels."""
    _make_script(tmp_path, "mochi_tools", "bin")
    deep = tmp_path.joinpath(*[f"d{i}" for i in range(compiler.MAX_SEARCH_DEPTH)])
    deep.mkdir(parents=True)

    assert find_bundler_script(deep) is None
    assert find_bundler_script(deep.parent) is not None


def test_search_checks_filesystem_root(tmp_path, monkeypatch):
    """Test that the root directory itself is searched."""
    checked = []

    def fake_is_file(self):
        checked.append(self)
        return False

    monkeypatch.setattr(Path, "is_file", fake_is_file)
    root = Path(tmp_path.anchor)

    assert find_bundler_script(root) is None
    assert root / "mochi_tools" / "bin" / BUNDLER_NAME in checked
    assert root / "src" / "mochi_tools" / "bin" / BUNDLER_NAME in checked


def test_search_reaches_root_from_below(tmp_path, monkeypatch):
    """Test that a walk starting one level below the root finds a script there."""
    root = Path(tmp_path.anchor)
    expected = root / "mochi_tools" / "bin" / BUNDLER_NAME
    monkeypatch.setattr(Path, "is_file", lambda self: self == expected)

    assert find_bundler_script(root / "mochi-tools-missing") == expected


def test_real_bundler_is_found():
    """Test that the package's own toolbundle script is located."""
    script = get_bundler_script_path()

    assert script.name == BUNDLER_NAME
    assert script.is_file()


@pytest.mark.asyncio
async def test_run_bundler_success(tmp_path):
    """Test compiling a tool source with the real bundler."""
    source = tmp_path / "hello.py"
    source.write_text("GREETING = 'hello'\n")
    outfile = tmp_path / "build" / "hello.py"

    await run_bundler(CompileRequest(entry_point=source, outfile=outfile))

    assert outfile.is_file()
    namespace = {"__name__": "compiled_hello"}
    exec(compile(outfile.read_text(), str(outfile), "exec"), namespace)
    assert namespace["GREETING"] == "hello"


@pytest.mark.asyncio
async def test_run_bundler_reports_stderr(tmp_path):
    """Test that a failing compile raises CompileError with the diagnostic."""
    source = tmp_path / "bad.py"
    source.write_text("def broken(:\n")
    outfile = tmp_path / "bad_out.py"

    with pytest.raises(CompileError) as exc_info:
        await run_bundler(CompileRequest(entry_point=source, outfile=outfile))

    assert exc_info.value.exit_code == 1
    assert "bad.py" in exc_info.value.diagnostic
    assert str(exc_info.value).startswith("toolbundle failed: ")
    assert not outfile.exists()


@pytest.mark.asyncio
async def test_run_bundler_exit_code_without_output(isolated):
    """Test the synthesized diagnostic when the process prints nothing."""
    _make_script(isolated / "host", "dist", "bin").write_text("import sys\nsys.exit(3)\n")

    with pytest.raises(CompileError) as exc_info:
        await run_bundler(
            CompileRequest(entry_point=isolated / "a.py", outfile=isolated / "out.py"),
            install_root=isolated / "host",
        )

    assert exc_info.value.exit_code == 3
    assert exc_info.value.diagnostic == "toolbundle exited with code 3"


@pytest.mark.asyncio
async def test_run_bundler_missing_outfile(isolated):
    """Test that a zero exit without an output file is an error."""
    _make_script(isolated / "host", "dist", "bin").write_text("print('done')\n")

    with pytest.raises(CompileError, match="produced no output file"):
        await run_bundler(
            CompileRequest(entry_point=isolated / "a.py", outfile=isolated / "out.py"),
            install_root=isolated / "host",
        )


@pytest.mark.asyncio
async def test_run_bundler_timeout_kills_process(isolated):
    """Test that a hanging bundler is killed after the timeout."""
    _make_script(isolated / "host", "dist", "bin").write_text("import time\ntime.sleep(30)\n")

    with pytest.raises(CompileError, match="timed out"):
        await run_bundler(
            CompileRequest(entry_point=isolated / "a.py", outfile=isolated / "out.py"),
            install_root=isolated / "host",
            timeout=0.5,
        )
