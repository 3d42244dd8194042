"""Instruction-set dialects understood by the checker.

Each dialect decodes raw :class:`~lglob.instructions.Instruction` records
into dialect-neutral :class:`Event` objects so the extractor never needs to
branch on the Lua version.  Dialects register themselves by name; callers
select one once via :func:`get_dialect`.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterator, Optional, Tuple, Type

from ..instructions import Instruction, is_constant_operand, unquote

ENV_UPVALUE = "_ENV"

# Event kinds
GLOBAL_GET = "global_get"
GLOBAL_SET = "global_set"
UPVALUE_GET = "upvalue_get"
UPVALUE_SET = "upvalue_set"
UPVALUE_FIELD_GET = "upvalue_field_get"
UPVALUE_FIELD_SET = "upvalue_field_set"
ENV_SET = "env_set"
TABLE_GET = "table_get"
TABLE_SET = "table_set"
CALL = "call"
LOADK = "loadk"
VARARG = "vararg"
RETURN = "return"
OTHER = "other"

WRITE_KINDS = frozenset({GLOBAL_SET, UPVALUE_FIELD_SET, TABLE_SET})


@dataclass(frozen=True)
class Event:
    """Semantic view of one instruction.

    ``register`` is the register written (reads, loads, calls) or read
    (writes); ``table`` is the register being indexed by table accesses.
    ``name`` carries the global or field name and ``upvalue`` the name of
    the upvalue involved, if any.
    """

    kind: str
    instruction: Instruction
    register: Optional[int] = None
    table: Optional[int] = None
    name: Optional[str] = None
    upvalue: Optional[str] = None
    constant: Optional[str] = None

    @property
    def index(self) -> int:
        return self.instruction.index

    @property
    def line(self) -> int:
        return self.instruction.line

    @property
    def is_write(self) -> bool:
        return self.kind in WRITE_KINDS


class Dialect:
    """Interface implemented by the instruction-set adapters."""

    name: str = "unknown"
    aliases: Tuple[str, ...] = ()
    luac_names: Tuple[str, ...] = ("luac",)
    lupa_module: str = "lupa"
    env_upvalue: Optional[str] = None

    def decode(self, instruction: Instruction) -> Event:
        op = instruction.opname
        tokens = instruction.tokens()
        if op in ("GETTABLE", "SELF"):
            field = unquote(tokens[0]) if tokens and is_constant_operand(instruction.c) else None
            if field is not None:
                return Event(TABLE_GET, instruction, register=instruction.a, table=instruction.b, name=field)
            return Event(OTHER, instruction, register=instruction.a)
        if op == "SETTABLE":
            field = unquote(tokens[0]) if tokens and is_constant_operand(instruction.b) else None
            if field is not None:
                return Event(TABLE_SET, instruction, register=instruction.c, table=instruction.a, name=field)
            return Event(OTHER, instruction)
        if op in ("CALL", "TAILCALL"):
            return Event(CALL, instruction, register=instruction.a)
        if op == "LOADK":
            constant = unquote(tokens[0]) if tokens else None
            return Event(LOADK, instruction, register=instruction.a, constant=constant)
        if op == "VARARG":
            return Event(VARARG, instruction, register=instruction.a)
        if op == "RETURN":
            return Event(RETURN, instruction, register=instruction.a)
        if op == "GETUPVAL":
            return Event(UPVALUE_GET, instruction, register=instruction.a, upvalue=tokens[0] if tokens else None)
        if op == "SETUPVAL":
            return self._decode_upvalue_write(instruction, tokens[0] if tokens else None)
        return self._decode_specific(instruction, tokens)

    def decode_name(self, constant: str | None) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(upvalue, name)`` for a global-access comment."""

        raise NotImplementedError

    def is_global_access(self, upvalue: str | None) -> bool:
        return upvalue is None or upvalue == self.env_upvalue

    def _decode_upvalue_write(self, instruction: Instruction, upvalue: str | None) -> Event:
        return Event(UPVALUE_SET, instruction, register=instruction.a, upvalue=upvalue)

    def _decode_specific(self, instruction: Instruction, tokens) -> Event:
        return Event(OTHER, instruction, register=instruction.a)

    def __repr__(self) -> str:  # pragma: no cover - debugging helper
        return f"<Dialect {self.name}>"


_DIALECT_REGISTRY: Dict[str, Type[Dialect]] = {}


def register_dialect(dialect: Type[Dialect]) -> Type[Dialect]:
    """Register ``dialect`` under its name and aliases."""

    _DIALECT_REGISTRY[dialect.name] = dialect
    for alias in dialect.aliases:
        _DIALECT_REGISTRY[alias] = dialect
    return dialect


def get_dialect(name: str) -> Dialect:
    """Return an instance of the dialect registered as ``name``."""

    cls = _DIALECT_REGISTRY.get(str(name).strip().lower())
    if cls is None:
        raise KeyError(name)
    return cls()


def iter_dialects() -> Iterator[Dialect]:
    """Yield one instance per registered dialect."""

    seen = set()
    for cls in _DIALECT_REGISTRY.values():
        if cls in seen:
            continue
        seen.add(cls)
        yield cls()


__all__ = [
    "CALL",
    "ENV_SET",
    "ENV_UPVALUE",
    "Dialect",
    "Event",
    "GLOBAL_GET",
    "GLOBAL_SET",
    "LOADK",
    "OTHER",
    "RETURN",
    "TABLE_GET",
    "TABLE_SET",
    "UPVALUE_FIELD_GET",
    "UPVALUE_FIELD_SET",
    "UPVALUE_GET",
    "UPVALUE_SET",
    "VARARG",
    "get_dialect",
    "iter_dialects",
    "register_dialect",
]


# Ensure built-in dialects register themselves on import.
from . import lua51, lua52  # noqa: E402,F401
