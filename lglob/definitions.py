"""Load whitelist definition files and assemble the base whitelist."""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping

from .dialects import Dialect
from .exceptions import WhitelistError
from .lua_runtime import LuaBridge, standard_whitelist
from .whitelist import Whitelist

LOG = logging.getLogger(__name__)

__all__ = ["build_whitelist", "load_whitelist_file"]


def load_whitelist_file(path: str | Path, *, dialect: Dialect | None = None) -> Dict[str, Any]:
    """Return the top-level mapping declared by ``path``.

    JSON files must contain an object.  Anything else is executed as Lua:
    a returned table is used as-is, otherwise the globals the chunk defined
    are collected.
    """

    path = Path(path)
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise WhitelistError(f"cannot read whitelist {path}: {exc}") from exc

    if path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise WhitelistError(f"invalid JSON in {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise WhitelistError(f"{path} must contain a JSON object, not {type(data).__name__}")
        return data

    bridge = LuaBridge(dialect)
    try:
        mapping = bridge.execute_mapping(text, chunk_name=path.name)
    except bridge.LuaError as exc:
        raise WhitelistError(f"failed to execute {path}: {exc}") from exc
    LOG.debug("whitelist %s declared %d names", path, len(mapping))
    return mapping


def build_whitelist(
    *,
    dialect: Dialect | None = None,
    include_stdlib: bool = True,
    whitelist_files: Iterable[str | Path] = (),
    module_files: Iterable[str | Path] = (),
    extra: Mapping[str, Any] | None = None,
) -> Whitelist:
    """Assemble the process-wide base whitelist."""

    mapping: Dict[str, Any] = {}
    if include_stdlib:
        mapping.update(standard_whitelist(dialect))
    for path in whitelist_files:
        mapping.update(load_whitelist_file(path, dialect=dialect))
    if extra:
        mapping.update(extra)

    modules: Dict[str, Any] = {}
    for path in module_files:
        modules.update(load_whitelist_file(path, dialect=dialect))
    return Whitelist.from_mapping(mapping, modules=modules)
