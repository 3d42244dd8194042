import json

from lglob.listing import read_listing
from lglob.report import RunReport, format_dump, format_range, format_xref
from lglob.resolver import Resolver
from lglob.whitelist import Whitelist


def check(listing_text, dialect, mapping=None, **kwargs):
    whitelist = Whitelist.from_mapping(mapping or {"print": "function", "require": "function"}, **kwargs)
    return Resolver(whitelist, dialect).check_listing(listing_text, filename="demo.lua")


def test_xref_groups_lines_by_access(listing, lua51):
    result = check(listing("basic51"), lua51)
    assert format_xref(result.extraction).splitlines() == [
        "counter\tset 2",
        "print\tget 1; set 3",
        "undefined_thing\tget 1",
    ]


def test_dump_lists_requires_and_known_locals(listing, lua51):
    result = check(listing("require51"), lua51)
    text = format_dump(result)
    assert text.startswith("File: demo.lua\nReferences:\n  1: get require")
    assert "Requires:\n  1: json as json" in text
    assert "Known locals:\n  json -> json" in text


def test_dump_shows_module_remarks_and_definitions(listing, lua52):
    result = check(listing("mod52"), lua52)
    text = format_dump(result)
    assert "  implicit_module: M" in text
    assert "  M: table {greet, name}" in text


def test_range_dump_decodes_instructions(listing, lua52):
    text = format_range(read_listing(listing("mod52")), lua52, 2, 2)
    lines = text.splitlines()
    assert lines[0] == "main <mod52.lua:0,0>"
    assert "function <mod52.lua:2,2>" in lines
    assert any("table_set greet" in line for line in lines)
    assert any("upvalue_field_get name (upvalue M)" in line for line in lines)


def test_run_report_text_and_json(listing, lua51):
    failing = check(listing("basic51"), lua51)
    report = RunReport(results=[failing], skipped=[("gone.lua", "no such file")])
    assert not report.passed
    text = report.to_text()
    assert "Checked 1 file(s), 1 failed" in text
    assert "Diagnostics: 3" in text
    assert "  - gone.lua: no such file" in text

    payload = report.to_json()
    json.dumps(payload)
    assert payload["passed"] is False
    entry = payload["files"][0]
    assert entry["filename"] == "demo.lua"
    assert [item["name"] for item in entry["diagnostics"]] == ["undefined_thing", "counter", "print"]
    assert payload["skipped"] == [{"filename": "gone.lua", "reason": "no such file"}]


def test_open_module_exports_in_dump_and_json(listing, lua51):
    mapping = {"print": "function", "module": "function", "package": {"seeall": "function"}}
    result = check(listing("open51"), lua51, mapping)
    assert "Exports: counter, greet" in format_dump(result)
    entry = RunReport(results=[result]).to_json()["files"][0]
    assert entry["exports"] == ["counter", "greet"]
