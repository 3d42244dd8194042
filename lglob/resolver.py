"""Classify extracted references against the whitelist.

For each file the resolver works on a child of the base whitelist, so the
names a file introduces (require aliases, its implicit module table, its
module exports) are dropped with the child once the file is done.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from .dialects import Dialect
from .exceptions import UnresolvedModuleError
from .extractor import (
    MODULE_BUILTIN,
    OPEN,
    Extraction,
    GlobalReference,
    GlobalReferenceExtractor,
)
from .listing import read_listing
from .lua_runtime import ModuleLoader
from .whitelist import IN_MODULE, Whitelist, is_table

LOG = logging.getLogger(__name__)

UNDEFINED = "undefined"
REDEFINED = "redefined"

__all__ = [
    "Diagnostic",
    "FileResult",
    "REDEFINED",
    "Resolver",
    "UNDEFINED",
]


@dataclass(frozen=True)
class Diagnostic:
    line: int
    kind: str
    is_write: bool
    name: str
    unresolved_at: Optional[str] = None
    filename: Optional[str] = None

    def format(self) -> str:
        access = "set" if self.is_write else "get"
        return f"{self.filename or '<listing>'}:{self.line}: {self.kind} {access} {self.name}"

    def as_dict(self) -> Dict[str, Any]:
        return {
            "filename": self.filename,
            "line": self.line,
            "kind": self.kind,
            "is_write": self.is_write,
            "name": self.name,
            "unresolved_at": self.unresolved_at,
        }


@dataclass
class FileResult:
    filename: str
    extraction: Extraction
    diagnostics: List[Diagnostic] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    definitions: Dict[str, Any] = field(default_factory=dict)
    exports: List[str] = field(default_factory=list)

    @property
    def passed(self) -> bool:
        return not self.diagnostics


class Resolver:
    """Whitelist resolution engine for one run.

    ``whitelist`` is the base whitelist and is never modified.  In tolerant
    mode no diagnostics are produced but require and module resolution
    still run, so their effects remain visible in :attr:`FileResult.definitions`.
    """

    def __init__(
        self,
        whitelist: Whitelist,
        dialect: Dialect,
        *,
        tolerant: bool = False,
        resolve_requires: bool = False,
        loader: ModuleLoader | None = None,
        trace: logging.Logger | None = None,
    ) -> None:
        self.whitelist = whitelist
        self.dialect = dialect
        self.tolerant = tolerant
        self.resolve_requires = resolve_requires or tolerant
        self.loader = loader
        self.trace = trace

    def check_listing(
        self,
        listing: str | Iterable[str],
        *,
        filename: str = "<listing>",
        search_dirs: Iterable[str | Path] = (),
        report: Callable[[Diagnostic], None] | None = None,
    ) -> FileResult:
        """Extract and resolve the references of one disassembled file."""

        working = self.whitelist.child()
        extractor = GlobalReferenceExtractor(self.dialect, working, trace=self.trace)
        extraction = extractor.extract(read_listing(listing))
        return self.resolve(extraction, working, filename=filename, search_dirs=search_dirs, report=report)

    def resolve(
        self,
        extraction: Extraction,
        working: Whitelist | None = None,
        *,
        filename: str = "<listing>",
        search_dirs: Iterable[str | Path] = (),
        report: Callable[[Diagnostic], None] | None = None,
    ) -> FileResult:
        working = working if working is not None else self.whitelist.child()
        result = FileResult(filename=filename, extraction=extraction)
        remarks = extraction.remarks

        if self.resolve_requires:
            self._resolve_requires(extraction, working, list(search_dirs), result)
        if remarks.implicit_module:
            self._register_module_table(remarks.implicit_module, extraction, working)
        local_definitions = working.definitions()

        exports: Dict[str, Any] = {}
        if remarks.module_declared:
            if remarks.module_mode == OPEN:
                working.exports = {ref.name for ref in _plain_writes(extraction.references)}
                for name in working.exports:
                    working.define(name, IN_MODULE)
            else:
                exports = {
                    ref.name: IN_MODULE
                    for ref in _plain_writes(extraction.references)
                    if ref.line >= remarks.module_line
                }
        if remarks.end_of_globals_line is not None:
            for ref in _plain_writes(extraction.references):
                if ref.line < remarks.end_of_globals_line and ref.name not in working:
                    working.define(ref.name, IN_MODULE)

        current = working
        narrowed = False
        for ref in extraction.sorted_references():
            if (
                remarks.module_declared
                and remarks.strict
                and not narrowed
                and ref.line >= remarks.module_line
                and not _is_declaration(ref, remarks.module_line)
            ):
                current = working.narrowed({**exports, **local_definitions})
                narrowed = True
                LOG.debug("%s: strict module scope from line %d", filename, ref.line)
            diagnostic = self.classify(ref, current, filename=filename)
            if diagnostic is None:
                continue
            result.diagnostics.append(diagnostic)
            if report is not None:
                report(diagnostic)

        result.definitions = working.definitions()
        result.exports = sorted(exports if remarks.strict else working.exports)
        if narrowed:
            result.definitions.update(exports)
        return result

    def classify(self, ref: GlobalReference, whitelist: Whitelist, *, filename: str | None = None) -> Diagnostic | None:
        """Return the diagnostic for ``ref`` or ``None`` when it is legitimate."""

        resolution = whitelist.resolve(ref.name)
        if resolution.root_found:
            if ref.is_write and not self.tolerant and not resolution.is_marker:
                return Diagnostic(ref.line, REDEFINED, True, ref.name, resolution.unresolved_at, filename)
            return None
        if self.tolerant:
            return None
        return Diagnostic(ref.line, UNDEFINED, ref.is_write, ref.name, resolution.unresolved_at, filename)

    # --- helpers ----------------------------------------------------
    def _resolve_requires(
        self,
        extraction: Extraction,
        working: Whitelist,
        search_dirs: List[str | Path],
        result: FileResult,
    ) -> None:
        for record in extraction.requires:
            table = working.module(record.module)
            if table is None:
                table = self._load_module(record.module, record.line, search_dirs, result)
            if table is None:
                continue
            if record.alias_name:
                working.define(record.alias_name, table)

    def _load_module(self, name: str, line: int, search_dirs: List[str | Path], result: FileResult) -> Any:
        if self.loader is None:
            self._warn(result, f"{result.filename}:{line}: module {name!r} is not whitelisted")
            return None
        try:
            loaded = self.loader.load(name, search_dirs)
        except UnresolvedModuleError as exc:
            self._warn(result, f"{result.filename}:{line}: {exc}")
            return None
        if loaded.polluting:
            self._warn(
                result,
                f"{result.filename}:{line}: loading {name!r} created globals: {', '.join(loaded.polluting)}",
            )
        return loaded.value

    @staticmethod
    def _register_module_table(name: str, extraction: Extraction, working: Whitelist) -> None:
        existing = working.lookup(name)
        table: Dict[str, Any] = dict(existing) if is_table(existing) else {}
        prefix = f"{name}."
        for ref in extraction.references:
            if ref.is_write and ref.name.startswith(prefix):
                table[ref.name[len(prefix):].split(".", 1)[0]] = IN_MODULE
        working.define(name, table)

    @staticmethod
    def _warn(result: FileResult, message: str) -> None:
        LOG.warning(message)
        result.warnings.append(message)


def _plain_writes(references: Iterable[GlobalReference]) -> List[GlobalReference]:
    return [ref for ref in references if ref.is_write and "." not in ref.name]


def _is_declaration(ref: GlobalReference, module_line: int) -> bool:
    return ref.line == module_line and not ref.is_write and ref.name == MODULE_BUILTIN
