import json
from pathlib import Path

import pytest

from lglob import main as cli
from lglob.exceptions import ToolUnavailableError


@pytest.fixture
def project(tmp_path):
    (tmp_path / "basic.lua").write_text("-- placeholder source\n", encoding="utf-8")
    (tmp_path / "wl.json").write_text(
        json.dumps({"print": "function", "require": "function", "module": "function"}),
        encoding="utf-8",
    )
    return tmp_path


@pytest.fixture
def fake_luac(monkeypatch, listing):
    """Serve recorded listings instead of running the real disassembler."""

    calls = []

    def _install(by_name):
        def _disassemble(source, *, dialect=None, luac=None, timeout=None):
            calls.append((Path(source).name, dialect.name if dialect else None))
            value = by_name[Path(source).name]
            if isinstance(value, Exception):
                raise value
            return listing(value) if value.endswith(("51", "52")) else value

        monkeypatch.setattr(cli, "disassemble", _disassemble)
        return calls

    return _install


def base_args(project):
    return ["--no-stdlib", "-w", str(project / "wl.json")]


def test_reports_diagnostics_and_fails(project, fake_luac, capsys):
    fake_luac({"basic.lua": "basic51"})
    source = project / "basic.lua"
    code = cli.main([str(source), *base_args(project)])
    out = capsys.readouterr().out.splitlines()
    assert code == 1
    assert out == [
        f"{source}:1: undefined get undefined_thing",
        f"{source}:2: undefined set counter",
        f"{source}:3: redefined set print",
    ]


def test_clean_file_passes(project, fake_luac, capsys):
    (project / "mod.lua").write_text("return {}\n", encoding="utf-8")
    calls = fake_luac({"mod.lua": "mod52"})
    code = cli.main([str(project / "mod.lua"), "--dialect", "5.2", *base_args(project)])
    assert code == 0
    assert capsys.readouterr().out == ""
    assert calls == [("mod.lua", "5.2")]


def test_dialect_from_environment(project, fake_luac, monkeypatch):
    monkeypatch.setenv("LGLOB_DIALECT", "lua53")
    calls = fake_luac({"basic.lua": "globals52"})
    cli.main([str(project / "basic.lua"), *base_args(project)])
    assert calls == [("basic.lua", "5.2")]


def test_directories_are_expanded(project, fake_luac):
    nested = project / "pkg"
    nested.mkdir()
    (nested / "inner.lua").write_text("\n", encoding="utf-8")
    calls = fake_luac({"basic.lua": "basic51", "inner.lua": "mod52"})
    cli.main([str(project), "--dialect", "5.2", *base_args(project)])
    assert sorted(name for name, _ in calls) == ["basic.lua", "inner.lua"]


def test_missing_disassembler_skips_file(project, fake_luac, capsys):
    fake_luac({"basic.lua": ToolUnavailableError("no disassembler found")})
    code = cli.main([str(project / "basic.lua"), *base_args(project)])
    captured = capsys.readouterr()
    assert code == 0
    assert captured.out == ""
    assert "skipping" in captured.err


def test_missing_source_is_skipped(project, fake_luac, capsys):
    fake_luac({})
    code = cli.main([str(project / "absent.lua"), *base_args(project)])
    assert code == 0
    assert "no such file" in capsys.readouterr().err


def test_malformed_listing_exits_with_2(project, fake_luac):
    fake_luac({"basic.lua": "this is not a listing\n"})
    assert cli.main([str(project / "basic.lua"), *base_args(project)]) == 2


def test_bad_whitelist_exits_with_2(project, fake_luac):
    (project / "wl.json").write_text("[1, 2]", encoding="utf-8")
    fake_luac({"basic.lua": "basic51"})
    assert cli.main([str(project / "basic.lua"), *base_args(project)]) == 2


def test_unknown_dialect_is_a_usage_error(project):
    with pytest.raises(SystemExit) as excinfo:
        cli.main([str(project / "basic.lua"), "--dialect", "4.0", *base_args(project)])
    assert excinfo.value.code == 2


def test_json_report(project, fake_luac):
    fake_luac({"basic.lua": "basic51"})
    target = project / "out" / "report.json"
    cli.main([str(project / "basic.lua"), "--json", str(target), *base_args(project)])
    payload = json.loads(target.read_text(encoding="utf-8"))
    assert payload["passed"] is False
    assert len(payload["files"][0]["diagnostics"]) == 3


def test_xref_replaces_diagnostic_lines(project, fake_luac, capsys):
    fake_luac({"basic.lua": "basic51"})
    code = cli.main([str(project / "basic.lua"), "-x", *base_args(project)])
    out = capsys.readouterr().out
    assert code == 1
    assert "print\tget 1; set 3" in out
    assert "undefined get" not in out


def test_line_range_dump(project, fake_luac, capsys):
    fake_luac({"basic.lua": "basic51"})
    cli.main([str(project / "basic.lua"), "--lines", "2-2", "-x", *base_args(project)])
    out = capsys.readouterr().out
    assert "global_set counter" in out


def test_trace_file(project, fake_luac):
    fake_luac({"basic.lua": "basic51"})
    trace = project / "trace.log"
    cli.main([str(project / "basic.lua"), "--trace", str(trace), *base_args(project)])
    text = trace.read_text(encoding="utf-8")
    assert "function <basic.lua:0>" in text
    assert "GETGLOBAL" in text
