from pathlib import Path

import pytest

from lglob.config import DEFAULT_DIALECT, DEFAULT_TIMEOUT, AnalysisOptions
from lglob.luac import build_luac_command, find_luac
from lglob.utils import expand_sources, parse_line_range, write_json


def test_defaults_without_environment():
    options = AnalysisOptions.from_env({})
    assert options.dialect == DEFAULT_DIALECT
    assert options.timeout == DEFAULT_TIMEOUT
    assert options.luac is None
    assert options.include_stdlib


def test_environment_and_overrides():
    env = {"LGLOB_DIALECT": "5.2", "LGLOB_LUAC": "/opt/luac", "LGLOB_TIMEOUT": "5"}
    options = AnalysisOptions.from_env(env, luac=None, timeout=1.5)
    assert (options.dialect, options.luac, options.timeout) == ("5.2", "/opt/luac", 1.5)


def test_bad_timeout_falls_back():
    assert AnalysisOptions.from_env({"LGLOB_TIMEOUT": "soon"}).timeout == DEFAULT_TIMEOUT


def test_tolerant_implies_resolution():
    assert AnalysisOptions(tolerant=True).resolve_requires


def test_luac_command_lists_debug_info():
    assert build_luac_command(Path("/usr/bin/luac"), Path("a.lua")) == [
        "/usr/bin/luac",
        "-l",
        "-l",
        "-p",
        "a.lua",
    ]


def test_find_luac_prefers_explicit_path(tmp_path, lua51):
    tool = tmp_path / "luac-custom"
    tool.write_text("", encoding="utf-8")
    assert find_luac(lua51, tool) == tool
    assert find_luac(lua51, tmp_path / "missing-luac-binary") is None


def test_expand_sources(tmp_path):
    (tmp_path / "a.lua").write_text("", encoding="utf-8")
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.lua").write_text("", encoding="utf-8")
    (tmp_path / "notes.txt").write_text("", encoding="utf-8")
    found = expand_sources([str(tmp_path), str(tmp_path / "*.lua"), "missing.lua"])
    assert [path.name for path in found] == ["a.lua", "b.lua", "missing.lua"]


def test_parse_line_range():
    assert parse_line_range("3-7") == (3, 7)
    assert parse_line_range("4") == (4, 4)
    with pytest.raises(ValueError):
        parse_line_range("9-2")


def test_write_json_is_atomic(tmp_path):
    target = tmp_path / "nested" / "out.json"
    write_json(target, {"ok": True})
    assert target.read_text(encoding="utf-8").strip().startswith("{")
    assert [item.name for item in target.parent.iterdir()] == ["out.json"]
