"""Embedded Lua runtime helpers built on :mod:`lupa`.

The checker needs a real Lua interpreter for three things: snapshotting the
standard globals as the default whitelist, executing Lua whitelist files,
and resolving ``require``-d modules by loading them and diffing the global
table before and after.  Every operation uses a fresh runtime so nothing
leaks between files.
"""

from __future__ import annotations

import importlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from types import ModuleType
from typing import Any, Dict, Iterable, List, Optional, Sequence

import lupa

from .dialects import Dialect
from .exceptions import UnresolvedModuleError

LOG = logging.getLogger(__name__)

# Globals lupa itself installs into every runtime.
_BRIDGE_GLOBALS = frozenset({"python"})

_TABLE_ID_SOURCE = """
local ids, count = setmetatable({}, {__mode = "k"}), 0
return function(t)
  local id = ids[t]
  if id == nil then
    count = count + 1
    id = count
    ids[t] = id
  end
  return id
end
"""

__all__ = [
    "LoadedModule",
    "LuaBridge",
    "ModuleLoader",
    "standard_whitelist",
]


def _lupa_module(dialect: Dialect | None) -> ModuleType:
    """Return the lupa runtime module matching ``dialect`` when installed."""

    if dialect is not None and dialect.lupa_module and dialect.lupa_module != "lupa":
        try:
            return importlib.import_module(dialect.lupa_module)
        except ImportError:
            LOG.debug("%s not available, using the default lupa runtime", dialect.lupa_module)
    return lupa


class LuaBridge:
    """A fresh Lua state plus conversions back to whitelist values."""

    def __init__(self, dialect: Dialect | None = None) -> None:
        self.module = _lupa_module(dialect)
        self.runtime = self.module.LuaRuntime(unpack_returned_tuples=True)
        self.LuaError = self.module.LuaError
        # Python wrappers are recreated on every access, so table identity
        # has to be established on the Lua side.
        self._table_id = self.runtime.execute(_TABLE_ID_SOURCE)

    @property
    def globals(self):
        return self.runtime.globals()

    def lua_type(self, value: Any) -> Optional[str]:
        return self.module.lua_type(value)

    def global_names(self) -> List[str]:
        return [
            name
            for name in self.globals.keys()
            if isinstance(name, str) and name not in _BRIDGE_GLOBALS
        ]

    def to_python(self, value: Any, *, _memo: Optional[Dict[int, Dict[str, Any]]] = None) -> Any:
        """Convert a Lua value into a whitelist value.

        Tables become dictionaries keyed by their string keys (self
        references such as ``_G._G`` map back to the same dictionary); every
        other Lua value becomes its type name.  Python scalars pass through.
        """

        memo = _memo if _memo is not None else {}
        kind = self.lua_type(value)
        if kind is None:
            return value
        if kind != "table":
            return kind
        key = self._table_id(value)
        if key in memo:
            return memo[key]
        converted: Dict[str, Any] = {}
        memo[key] = converted
        for name, item in value.items():
            if isinstance(name, str):
                converted[name] = self.to_python(item, _memo=memo)
        return converted

    def snapshot(self, names: Iterable[str]) -> Dict[str, Any]:
        memo: Dict[int, Dict[str, Any]] = {}
        lua_globals = self.globals
        return {name: self.to_python(lua_globals[name], _memo=memo) for name in names}

    def execute_mapping(self, source: str, *, chunk_name: str = "whitelist") -> Dict[str, Any]:
        """Run ``source`` and return the table it yields.

        A chunk returning a table contributes that table; a chunk returning
        nothing contributes the globals it defined.
        """

        before = set(self.global_names())
        compile_chunk = self.runtime.eval(
            "function(source, name) return assert((loadstring or load)(source, '=' .. name)) end"
        )
        returned = compile_chunk(source, chunk_name)()
        if isinstance(returned, tuple):
            returned = returned[0] if returned else None
        if self.lua_type(returned) == "table":
            return dict(self.to_python(returned))
        return self.snapshot(name for name in self.global_names() if name not in before)


def standard_whitelist(dialect: Dialect | None = None) -> Dict[str, Any]:
    """Return the globals of a pristine runtime as a whitelist mapping."""

    bridge = LuaBridge(dialect)
    return bridge.snapshot(bridge.global_names())


@dataclass
class LoadedModule:
    """Result of loading a module through the real ``require``."""

    name: str
    value: Any
    new_globals: List[str] = field(default_factory=list)
    binds_own_name: bool = False

    @property
    def polluting(self) -> List[str]:
        """Globals the load created besides the module name bound to itself."""

        root = self.name.split(".", 1)[0]
        return [name for name in self.new_globals if not (name == root and self.binds_own_name)]


class ModuleLoader:
    """Resolve modules by running ``require`` in a throwaway runtime."""

    def __init__(self, dialect: Dialect | None = None, search_dirs: Sequence[str | Path] = ()) -> None:
        self.dialect = dialect
        self.search_dirs = [Path(item) for item in search_dirs]
        self._cache: Dict[tuple, LoadedModule] = {}

    def load(self, name: str, search_dirs: Iterable[str | Path] = ()) -> LoadedModule:
        dirs = [Path(item) for item in search_dirs] + self.search_dirs
        key = (name, tuple(str(item) for item in dirs))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        bridge = LuaBridge(self.dialect)
        lua_globals = bridge.globals
        package = lua_globals.package
        prefix = ";".join(f"{directory}/?.lua;{directory}/?/init.lua" for directory in dirs)
        if prefix:
            package.path = f"{prefix};{package.path}"
        before = set(bridge.global_names())
        try:
            value = lua_globals.require(name)
        except bridge.LuaError as exc:
            reason = str(exc).strip().splitlines()[0] if str(exc).strip() else "load failed"
            raise UnresolvedModuleError(name, reason) from exc
        if isinstance(value, tuple):
            value = value[0] if value else None

        new_globals = sorted(item for item in bridge.global_names() if item not in before)
        parts = name.split(".")
        binds_own_name = False
        if parts[0] in new_globals:
            target = lua_globals[parts[0]]
            for part in parts[1:]:
                target = target[part] if bridge.lua_type(target) == "table" else None
            same = bridge.runtime.eval("function(a, b) return rawequal(a, b) end")
            binds_own_name = bool(same(target, value))

        loaded = LoadedModule(
            name=name,
            value=bridge.to_python(value),
            new_globals=new_globals,
            binds_own_name=binds_own_name,
        )
        LOG.debug("loaded module %s (new globals: %s)", name, ", ".join(new_globals) or "none")
        self._cache[key] = loaded
        return loaded
