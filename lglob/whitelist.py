"""Layered symbol table of legitimately defined globals.

A :class:`Whitelist` is a short chain of scopes consulted tip to root.  The
process-wide base whitelist is never mutated while a file is analysed: the
resolver works on :meth:`Whitelist.child` and simply drops it afterwards,
and a strict module declaration switches to :meth:`Whitelist.narrowed`,
which does not chain to the outer scopes at all.

Values are nested mappings for tables, any other object (usually the Lua
type name) for scalars, or :data:`IN_MODULE` for names a file legitimately
defines itself.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Iterator, List, MutableMapping, Optional, Set

__all__ = [
    "IN_MODULE",
    "Resolution",
    "Whitelist",
    "is_table",
    "split_name",
]


class _InModule:
    """Marker for symbols known to be legal inside the analysed file."""

    _instance: Optional["_InModule"] = None

    def __new__(cls) -> "_InModule":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<in-module>"

    def __reduce__(self):
        return (_InModule, ())


IN_MODULE = _InModule()
_MISSING = object()


def is_table(value: Any) -> bool:
    return isinstance(value, Mapping)


def split_name(name: str) -> List[str]:
    return [part for part in name.split(".") if part]


@dataclass(frozen=True)
class Resolution:
    """Outcome of walking a dotted name through a whitelist."""

    name: str
    depth: int
    segments: int
    value: Any = None

    @property
    def found(self) -> bool:
        return self.segments > 0 and self.depth == self.segments

    @property
    def root_found(self) -> bool:
        return self.depth > 0

    @property
    def partial(self) -> bool:
        return self.root_found and not self.found

    @property
    def is_marker(self) -> bool:
        return self.value is IN_MODULE

    @property
    def unresolved_at(self) -> Optional[str]:
        if self.found:
            return None
        return ".".join(split_name(self.name)[: self.depth + 1])


class Whitelist:
    """Chain of name scopes with qualified lookups."""

    def __init__(
        self,
        scopes: Iterable[MutableMapping[str, Any]] | None = None,
        *,
        modules: Mapping[str, Any] | None = None,
        exports: Iterable[str] = (),
    ) -> None:
        self._scopes: List[MutableMapping[str, Any]] = list(scopes) if scopes is not None else [{}]
        if not self._scopes:
            self._scopes.append({})
        self.modules: Dict[str, Any] = dict(modules or {})
        self.exports: Set[str] = set(exports)

    # --- construction -----------------------------------------------
    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], **kwargs: Any) -> "Whitelist":
        return cls([dict(mapping)], **kwargs)

    def child(self) -> "Whitelist":
        """Return a working copy whose definitions never reach this one."""

        return Whitelist(self._scopes + [{}], modules=self.modules, exports=self.exports)

    def narrowed(self, names: Mapping[str, Any]) -> "Whitelist":
        """Return a detached scope holding only ``names``."""

        return Whitelist([dict(names), {}], modules=self.modules, exports=set(names))

    # --- mutation ---------------------------------------------------
    def define(self, name: str, value: Any) -> None:
        self._scopes[-1][name] = value

    # --- queries ----------------------------------------------------
    def lookup(self, name: str) -> Any:
        """Return the value bound to the undotted ``name`` or ``None``."""

        value = self._get(name)
        return None if value is _MISSING else value

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self._get(name) is not _MISSING

    def is_table(self, name: str) -> bool:
        resolution = self.resolve(name)
        return resolution.found and is_table(resolution.value)

    def resolve(self, name: str) -> Resolution:
        """Walk ``name`` one segment at a time through nested tables."""

        parts = split_name(name)
        if not parts:
            return Resolution(name=name, depth=0, segments=0)
        value = self._get(parts[0])
        if value is _MISSING:
            return Resolution(name=name, depth=0, segments=len(parts))
        depth = 1
        for part in parts[1:]:
            if not is_table(value) or part not in value:
                break
            value = value[part]
            depth += 1
        return Resolution(name=name, depth=depth, segments=len(parts), value=value)

    def module(self, name: str) -> Any:
        """Return the pre-loaded export table of module ``name``."""

        if name in self.modules:
            return self.modules[name]
        value: Any = self.modules
        for part in split_name(name):
            if not is_table(value) or part not in value:
                return None
            value = value[part]
        return value

    def names(self) -> Set[str]:
        result: Set[str] = set()
        for scope in self._scopes:
            result.update(scope)
        return result

    def definitions(self) -> Dict[str, Any]:
        """Return the names defined in the innermost scope."""

        return dict(self._scopes[-1])

    def __iter__(self) -> Iterator[str]:
        return iter(sorted(self.names()))

    def _get(self, name: str) -> Any:
        for scope in reversed(self._scopes):
            if name in scope:
                return scope[name]
        return _MISSING
