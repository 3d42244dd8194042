import pytest

from lglob.whitelist import IN_MODULE, Whitelist, is_table, split_name


@pytest.fixture
def base():
    return Whitelist.from_mapping(
        {
            "print": "function",
            "string": {"format": "function", "byte": "function"},
            "globalTable": {},
        },
        modules={"json": {"encode": "function"}, "socket": {"http": {"request": "function"}}},
    )


def test_resolve_full_and_partial(base):
    full = base.resolve("string.format")
    assert full.found and full.root_found and not full.partial
    assert full.unresolved_at is None
    assert full.value == "function"

    partial = base.resolve("globalTable.sub.x")
    assert partial.partial
    assert (partial.depth, partial.segments) == (1, 3)
    assert partial.unresolved_at == "globalTable.sub"

    missing = base.resolve("nothing.here")
    assert not missing.root_found
    assert missing.unresolved_at == "nothing"


def test_scalar_value_stops_the_walk(base):
    resolution = base.resolve("print.x")
    assert resolution.depth == 1
    assert resolution.unresolved_at == "print.x"


def test_child_definitions_do_not_leak(base):
    working = base.child()
    working.define("M", {"f": IN_MODULE})
    assert "M" in working
    assert "M" not in base
    assert "print" in working
    assert working.definitions() == {"M": {"f": IN_MODULE}}
    assert working.resolve("M.f").is_marker


def test_narrowed_scope_is_detached(base):
    strict = base.child().narrowed({"VERSION": IN_MODULE})
    assert "VERSION" in strict
    assert "print" not in strict
    assert strict.exports == {"VERSION"}
    assert strict.module("json") == {"encode": "function"}


def test_is_table(base):
    assert base.is_table("string")
    assert base.is_table("globalTable")
    assert not base.is_table("print")
    assert not base.is_table("string.missing")


def test_module_lookup_supports_dotted_names(base):
    assert base.module("json") == {"encode": "function"}
    assert base.module("socket.http") == {"request": "function"}
    assert base.module("socket.ftp") is None


def test_names_and_iteration(base):
    working = base.child()
    working.define("extra", "number")
    assert list(working) == ["extra", "globalTable", "print", "string"]


def test_in_module_is_a_singleton():
    assert type(IN_MODULE)() is IN_MODULE
    assert repr(IN_MODULE) == "<in-module>"


def test_helpers():
    assert split_name("a..b.") == ["a", "b"]
    assert is_table({}) and not is_table("table")
