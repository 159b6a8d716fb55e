"""Unit tests for the toolbundle command, run in-process."""

import base64
import json
import stat
import sys

import pytest

from mochi_tools import bundler


def _run(*args):
    return bundler.main([str(arg) for arg in args])


def _exec_bundle(path, name="bundled_under_test"):
    namespace = {"__name__": name}
    exec(compile(path.read_text(), str(path), "exec"), namespace)
    return namespace


@pytest.fixture
def project(tmp_path):
    """A tool source importing a sibling helper module."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "_helpers.py").write_text("def shout(text):\n    return text.upper() + '!'\n")
    (src / "tool.py").write_text(
        "from _helpers import shout\n"
        "\n"
        "MESSAGE = shout('hello')\n"
    )
    return src


def test_bundle_inlines_sibling_modules(project, tmp_path):
    """Test that sibling helpers are embedded in the output."""
    outfile = tmp_path / "out" / "tool.py"

    assert _run(project / "tool.py", f"--outfile={outfile}", "--bundle") == 0

    text = outfile.read_text()
    assert "_toolbundle_define('_helpers'" in text
    # The helper is embedded before the entry point runs
    assert text.index("_toolbundle_define('_helpers'") < text.index("exec(compile(")
    assert _exec_bundle(outfile)["MESSAGE"] == "HELLO!"


def test_bundle_keeps_inlined_modules_out_of_global_names(project, tmp_path):
    """Test that inlined helpers are registered under the bundle's own name."""
    outfile = tmp_path / "out" / "tool.py"
    _run(project / "tool.py", f"--outfile={outfile}", "--bundle")

    try:
        namespace = _exec_bundle(outfile, name="bundle_scope_check")

        assert "_helpers" not in sys.modules
        helper = sys.modules["bundle_scope_check._helpers"]
        assert helper.shout("hi") == "HI!"
        assert namespace["shout"] is helper.shout
    finally:
        sys.modules.pop("bundle_scope_check._helpers", None)


def test_bundle_restores_shadowed_module(tmp_path):
    """Test that a helper sharing a stdlib name does not replace it after exec."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "json.py").write_text("def dumps(*args, **kwargs):\n    return 'local'\n")
    (src / "tool.py").write_text("import json\n\nRESULT = json.dumps({})\n")
    outfile = tmp_path / "out.py"
    original = sys.modules["json"]

    assert _run(src / "tool.py", f"--outfile={outfile}", "--bundle") == 0
    try:
        namespace = _exec_bundle(outfile, name="bundle_shadow_check")

        assert namespace["RESULT"] == "local"
        assert sys.modules["json"] is original
        assert json.dumps({}) == "{}"
    finally:
        sys.modules.pop("bundle_shadow_check.json", None)


def test_bundle_without_flag_keeps_imports(project, tmp_path):
    """Test that without --bundle local modules are left as imports."""
    outfile = tmp_path / "tool.py"

    assert _run(project / "tool.py", f"--outfile={outfile}") == 0

    assert "_toolbundle_define('_helpers'" not in outfile.read_text()


def test_header_records_options(project, tmp_path):
    """Test the bundle header lines."""
    outfile = tmp_path / "tool.py"

    _run(project / "tool.py", f"--outfile={outfile}", "--platform=neutral", "--target=py310")

    lines = outfile.read_text().splitlines()
    assert lines[0].startswith("# Bundled by toolbundle from ")
    assert lines[1] == "# format=module platform=neutral target=py310"
    assert "_toolbundle_sys.implementation.name !=" not in outfile.read_text()


def test_platform_guard_rejects_other_implementation(project, tmp_path):
    """Test that a bundle for another implementation refuses to import."""
    outfile = tmp_path / "tool.py"
    other = "pypy" if sys.implementation.name == "cpython" else "cpython"

    assert _run(project / "tool.py", f"--outfile={outfile}", f"--platform={other}", "--bundle") == 0

    with pytest.raises(ImportError, match=f"bundle targets {other}"):
        _exec_bundle(outfile)


def test_inline_sourcemap(project, tmp_path):
    """Test that an inline source map is appended as a data URL."""
    outfile = tmp_path / "tool.py"

    _run(project / "tool.py", f"--outfile={outfile}", "--bundle", "--sourcemap=inline")

    last_line = outfile.read_text().splitlines()[-1]
    prefix = "# sourceMappingURL=data:application/json;base64,"
    assert last_line.startswith(prefix)

    payload = json.loads(base64.b64decode(last_line[len(prefix):]))
    assert payload["version"] == 1
    assert payload["file"] == "tool.py"
    assert [s["module"] for s in payload["sections"]] == ["_helpers", "tool"]
    assert not (tmp_path / "tool.py.map").exists()


def test_linked_sourcemap_writes_map_file(project, tmp_path):
    """Test that the bare --sourcemap flag writes a sibling .map file."""
    outfile = tmp_path / "tool.py"

    _run(project / "tool.py", f"--outfile={outfile}", "--sourcemap")

    assert (tmp_path / "tool.py.map").is_file()
    assert outfile.read_text().splitlines()[-1] == "# sourceMappingURL=tool.py.map"


def test_external_sourcemap_has_no_comment(project, tmp_path):
    """Test that external maps are written without a trailing comment."""
    outfile = tmp_path / "tool.py"

    _run(project / "tool.py", f"--outfile={outfile}", "--sourcemap=external")

    assert (tmp_path / "tool.py.map").is_file()
    assert "sourceMappingURL" not in outfile.read_text()


def test_script_format_is_executable(project, tmp_path):
    """Test the shebang and mode of script output."""
    outfile = tmp_path / "tool"

    _run(project / "tool.py", f"--outfile={outfile}", "--format=script", "--bundle")

    assert outfile.read_text().startswith("#!/usr/bin/env python3\n")
    assert outfile.stat().st_mode & stat.S_IXUSR


def test_packages_bundle_uses_pythonpath(tmp_path, monkeypatch):
    """Test that modules on PYTHONPATH are embedded with --packages=bundle."""
    shared = tmp_path / "shared"
    shared.mkdir()
    (shared / "sharedlib.py").write_text("VALUE = 7\n")
    source = tmp_path / "tool.py"
    source.write_text("import sharedlib\n\nRESULT = sharedlib.VALUE * 6\n")
    monkeypatch.setenv("PYTHONPATH", str(shared))

    outfile = tmp_path / "out.py"
    assert _run(source, f"--outfile={outfile}", "--bundle", "--packages=bundle") == 0

    assert "_toolbundle_define('sharedlib'" in outfile.read_text()
    assert _exec_bundle(outfile)["RESULT"] == 42


def test_syntax_error_fails(tmp_path, capsys):
    """Test that a syntax error is reported with file and position."""
    source = tmp_path / "broken.py"
    source.write_text("value = {{{ invalid syntax\n")

    assert _run(source, f"--outfile={tmp_path / 'out.py'}") == 1

    err = capsys.readouterr().err
    assert err.startswith("error: ")
    assert "broken.py:1:" in err
    assert not (tmp_path / "out.py").exists()


def test_missing_entry_fails(tmp_path, capsys):
    """Test that a missing entry point is reported."""
    assert _run(tmp_path / "nope.py", f"--outfile={tmp_path / 'out.py'}") == 1

    assert "Could not resolve" in capsys.readouterr().err


def test_relative_import_is_rejected(tmp_path, capsys):
    """Test that relative imports cannot be bundled."""
    source = tmp_path / "tool.py"
    source.write_text("from . import sibling\n")

    assert _run(source, f"--outfile={tmp_path / 'out.py'}", "--bundle") == 1

    assert "Relative imports are not supported" in capsys.readouterr().err


def test_invalid_target_is_a_usage_error(tmp_path):
    """Test that argparse rejects malformed targets."""
    source = tmp_path / "tool.py"
    source.write_text("x = 1\n")

    with pytest.raises(SystemExit) as exc_info:
        _run(source, f"--outfile={tmp_path / 'out.py'}", "--target=es2022")

    assert exc_info.value.code == 2


def test_parse_target():
    """Test parsing of target versions."""
    assert bundler.parse_target("py311") == (3, 11)
    assert bundler.parse_target("py39") == (3, 9)

    with pytest.raises(bundler.BundleError):
        bundler.parse_target("python3")
