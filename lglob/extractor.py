"""Turn decoded instruction streams into qualified global references.

The extractor walks every function of a listing once, in order, carrying a
small explicit :class:`WalkState` from one instruction to the next:

* ``last_root`` remembers the most recent load of a global (or of an
  upvalue that aliases a known local) so that a following table access on
  the same register and source line can be reported as ``root.field``;
* ``pending`` maps registers to candidate alias names.  One instruction
  later the alias is promoted onto whatever declared local occupies that
  register, unless that instruction is a call.  A plain global table load
  only becomes an alias when it is the first instruction of a function;
* ``expect`` tracks the multi-instruction ``require "mod"`` and
  ``module(...)`` idioms.

Known locals live in a file-wide registry so that closures see the aliases
established by the main chunk.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Set

from .dialects import (
    CALL,
    ENV_SET,
    GLOBAL_GET,
    GLOBAL_SET,
    LOADK,
    TABLE_GET,
    TABLE_SET,
    UPVALUE_FIELD_GET,
    UPVALUE_FIELD_SET,
    UPVALUE_GET,
    VARARG,
    Dialect,
    Event,
)
from .listing import FunctionBlock
from .scope import KnownLocals, LocalSlot, ScopeTable
from .whitelist import Whitelist

LOG = logging.getLogger(__name__)

REQUIRE_BUILTIN = "require"
MODULE_BUILTIN = "module"
SEEALL_FIELD = "seeall"
END_OF_GLOBALS = "_END_GLOBALS"

STRICT = "strict"
OPEN = "open"

_JUMP_TARGET_RE = re.compile(r"\bto (\d+)\b")

__all__ = [
    "END_OF_GLOBALS",
    "Extraction",
    "GlobalReference",
    "GlobalReferenceExtractor",
    "MODULE_BUILTIN",
    "OPEN",
    "REQUIRE_BUILTIN",
    "Remarks",
    "RequireRecord",
    "STRICT",
    "WalkState",
]


@dataclass(frozen=True)
class GlobalReference:
    line: int
    name: str
    is_write: bool = False

    @property
    def root(self) -> str:
        return self.name.split(".", 1)[0]

    @property
    def access(self) -> str:
        return "set" if self.is_write else "get"


@dataclass
class RequireRecord:
    """A ``require "module"`` call and the local receiving its result."""

    line: int
    module: str
    alias: Optional[LocalSlot] = None

    @property
    def alias_name(self) -> Optional[str]:
        if self.alias is None:
            return None
        return self.alias.reference_name or self.alias.name


@dataclass
class Remarks:
    """Per-file facts gathered while walking the instructions."""

    module_line: Optional[int] = None
    module_name: Optional[str] = None
    module_mode: Optional[str] = None
    implicit_module: Optional[str] = None
    implicit_module_line: Optional[int] = None
    end_of_globals_line: Optional[int] = None

    @property
    def module_declared(self) -> bool:
        return self.module_line is not None

    @property
    def strict(self) -> bool:
        return self.module_mode == STRICT

    def declare_module(self, line: int, name: Optional[str], mode: str) -> None:
        if self.module_declared:
            LOG.debug("ignoring second module declaration at line %d", line)
            return
        self.module_line = line
        self.module_name = name
        self.module_mode = mode

    def as_dict(self) -> Dict[str, object]:
        return {
            "module_line": self.module_line,
            "module_name": self.module_name,
            "module_mode": self.module_mode,
            "implicit_module": self.implicit_module,
            "implicit_module_line": self.implicit_module_line,
            "end_of_globals_line": self.end_of_globals_line,
        }


@dataclass
class Extraction:
    references: List[GlobalReference] = field(default_factory=list)
    requires: List[RequireRecord] = field(default_factory=list)
    remarks: Remarks = field(default_factory=Remarks)
    known: KnownLocals = field(default_factory=KnownLocals)
    functions: int = 0

    def sorted_references(self) -> List[GlobalReference]:
        return sorted(self.references, key=lambda ref: ref.line)

    def written_names(self) -> List[GlobalReference]:
        return [ref for ref in self.references if ref.is_write]


@dataclass
class TableRoot:
    name: str
    register: Optional[int]
    line: int
    called: bool = False


@dataclass(frozen=True)
class PendingAlias:
    name: str
    created_at: int


@dataclass
class _Expectation:
    builtin: str
    line: int
    register: Optional[int]
    stage: str
    module: Optional[str] = None
    mode: Optional[str] = None


@dataclass
class WalkState:
    """Mutable state threaded from one instruction to the next."""

    last_root: Optional[TableRoot] = None
    pending: Dict[int, PendingAlias] = field(default_factory=dict)
    at_function_start: bool = True
    in_main: bool = True
    expect: Optional[_Expectation] = None

    def begin_function(self, is_main: bool) -> None:
        self.last_root = None
        self.pending.clear()
        self.expect = None
        self.at_function_start = True
        self.in_main = is_main


class GlobalReferenceExtractor:
    """Single-pass extractor of global references, requires and remarks."""

    def __init__(
        self,
        dialect: Dialect,
        whitelist: Whitelist | None = None,
        *,
        trace: logging.Logger | None = None,
    ) -> None:
        self.dialect = dialect
        self.whitelist = whitelist
        self.trace = trace if trace is not None else LOG

    def extract(self, blocks: Iterable[FunctionBlock]) -> Extraction:
        result: Extraction | None = None
        state = WalkState()
        for block in blocks:
            if result is None:
                result = Extraction(known=block.scope.known)
            result.functions += 1
            self.walk(block, state, result)
        return result if result is not None else Extraction()

    def walk(self, block: FunctionBlock, state: WalkState, result: Extraction) -> None:
        state.begin_function(block.is_main)
        self.trace.debug("function <%s:%d> (%s)", block.source, block.line_defined, block.kind)
        if block.is_main:
            self._detect_implicit_module(block, result)
        for instruction in block.instructions:
            event = self.dialect.decode(instruction)
            self.trace.debug("%s -> %s", instruction.describe(), _describe_event(event))
            self.step(event, block.scope, state, result)
            state.at_function_start = False

    # --- per-instruction rules --------------------------------------
    def step(self, event: Event, scope: ScopeTable, state: WalkState, result: Extraction) -> None:
        self._finalize_aliases(event, scope, state)
        if state.expect is not None:
            self._advance_expectation(event, scope, state, result)

        kind = event.kind
        if kind == GLOBAL_GET:
            self._global_read(event, state, result)
        elif kind == GLOBAL_SET:
            if event.name == END_OF_GLOBALS:
                if result.remarks.end_of_globals_line is None:
                    result.remarks.end_of_globals_line = event.line
            else:
                self._record(result, event, event.name, write=True)
        elif kind in (UPVALUE_FIELD_GET, UPVALUE_FIELD_SET):
            known = scope.find_known_by_name(event.upvalue)
            if known is not None:
                qualified = f"{known.reference_name}.{event.name}"
                self._record(result, event, qualified, write=kind == UPVALUE_FIELD_SET)
                if kind == UPVALUE_FIELD_GET:
                    self._arm(state, qualified, event)
        elif kind in (TABLE_GET, TABLE_SET):
            self._table_access(event, scope, state, result)
        elif kind == UPVALUE_GET:
            known = scope.find_known_by_name(event.upvalue)
            if known is not None:
                state.last_root = TableRoot(known.reference_name or known.name, event.register, event.line)
        elif kind == ENV_SET:
            local = scope.match_local(event.register, event.index)
            result.remarks.declare_module(event.line, local.name if local else None, STRICT)
        elif kind == CALL:
            if state.last_root is not None:
                state.last_root.called = True

    def _global_read(self, event: Event, state: WalkState, result: Extraction) -> None:
        name = event.name
        self._record(result, event, name, write=False)
        state.last_root = TableRoot(name, event.register, event.line)
        if name == REQUIRE_BUILTIN:
            state.expect = _Expectation(REQUIRE_BUILTIN, event.line, event.register, stage="literal")
        elif name == MODULE_BUILTIN and state.in_main:
            state.expect = _Expectation(MODULE_BUILTIN, event.line, event.register, stage="first")
        elif state.at_function_start and self.whitelist is not None and self.whitelist.is_table(name):
            state.pending[event.register] = PendingAlias(name, event.index)

    def _table_access(self, event: Event, scope: ScopeTable, state: WalkState, result: Extraction) -> None:
        root = state.last_root
        qualified = None
        if (
            root is not None
            and not root.called
            and root.register == event.table
            and root.line == event.line
        ):
            qualified = f"{root.name}.{event.name}"
            state.last_root = None
        else:
            local = scope.match_local(event.table, event.index, at_block_start=state.at_function_start)
            if local is not None and local.is_known:
                qualified = f"{local.reference_name}.{event.name}"
        if qualified is None:
            return
        self._record(result, event, qualified, write=event.kind == TABLE_SET)
        if event.kind == TABLE_GET:
            state.pending[event.register] = PendingAlias(qualified, event.index)
            self._arm(state, qualified, event)

    def _advance_expectation(self, event: Event, scope: ScopeTable, state: WalkState, result: Extraction) -> None:
        expect = state.expect
        if expect.builtin == REQUIRE_BUILTIN:
            if expect.stage == "literal" and event.kind == LOADK and event.constant is not None:
                expect.module = event.constant
                expect.stage = "call"
                return
            if expect.stage == "call" and event.kind == CALL and event.register == expect.register:
                alias = scope.match_local(event.register, event.index)
                if alias is not None:
                    scope.promote_to_known(alias)
                result.requires.append(RequireRecord(expect.line, expect.module, alias))
                LOG.debug("require %r at line %d (alias %s)", expect.module, expect.line, alias.name if alias else None)
            state.expect = None
            return

        if expect.stage == "first":
            if event.kind == VARARG:
                expect.mode = OPEN
                expect.stage = "args"
                return
            if event.kind == LOADK and event.constant is not None:
                expect.module = event.constant
                expect.mode = STRICT
                expect.stage = "args"
                return
            if event.kind == CALL and event.register == expect.register:
                result.remarks.declare_module(expect.line, None, OPEN)
            state.expect = None
            return

        if event.kind == TABLE_GET and event.name == SEEALL_FIELD:
            expect.mode = OPEN
        elif event.kind == CALL and event.register == expect.register:
            result.remarks.declare_module(expect.line, expect.module, expect.mode or OPEN)
            state.expect = None

    def _finalize_aliases(self, event: Event, scope: ScopeTable, state: WalkState) -> None:
        if not state.pending:
            return
        for slot, alias in list(state.pending.items()):
            del state.pending[slot]
            if event.kind == CALL:
                continue
            local = scope.match_local(slot, event.index)
            if local is not None:
                self.trace.debug("alias %s read at %d bound to %s", alias.name, alias.created_at, local.name)
                scope.promote_to_known(local, alias.name)

    def _detect_implicit_module(self, block: FunctionBlock, result: Extraction) -> None:
        instructions = block.instructions
        if len(instructions) < 2:
            return
        final, candidate = instructions[-1], instructions[-2]
        if final.opname != "RETURN" or candidate.opname != "RETURN" or candidate.b != 2:
            return
        if final.index in _jump_targets(block):
            # the final return is reachable without passing the candidate
            return
        local = block.scope.match_local(candidate.a, candidate.index)
        if local is None:
            return
        block.scope.promote_to_known(local)
        result.remarks.implicit_module = local.reference_name
        result.remarks.implicit_module_line = candidate.line

    @staticmethod
    def _arm(state: WalkState, name: str, event: Event) -> None:
        state.last_root = TableRoot(name, event.register, event.line)

    @staticmethod
    def _record(result: Extraction, event: Event, name: str, *, write: bool) -> None:
        result.references.append(GlobalReference(event.line, name, write))


def _jump_targets(block: FunctionBlock) -> Set[int]:
    targets: Set[int] = set()
    for instruction in block.instructions:
        match = _JUMP_TARGET_RE.search(instruction.constant or "")
        if match:
            targets.add(int(match.group(1)))
    return targets


def _describe_event(event: Event) -> str:
    parts = [event.kind]
    if event.upvalue:
        parts.append(f"up={event.upvalue}")
    if event.name:
        parts.append(f"name={event.name}")
    if event.table is not None:
        parts.append(f"table=R{event.table}")
    return " ".join(parts)
