"""Lua 5.2/5.3 dialect: globals are fields of the ``_ENV`` upvalue."""

from __future__ import annotations

from typing import Optional, Tuple

from ..instructions import Instruction, is_constant_operand, split_constant, unquote
from . import (
    ENV_SET,
    ENV_UPVALUE,
    GLOBAL_GET,
    GLOBAL_SET,
    OTHER,
    UPVALUE_FIELD_GET,
    UPVALUE_FIELD_SET,
    Dialect,
    Event,
    register_dialect,
)


class Lua52Dialect(Dialect):
    """Global access is unified into ``GETTABUP`` / ``SETTABUP``.

    The comment names the upvalue followed by the quoted key::

        1	[1]	GETTABUP 	0 0 -1	; _ENV "print"

    Only accesses through ``_ENV`` are true globals; the same opcodes on any
    other upvalue are upvalue-qualified field accesses.
    """

    name = "5.2"
    aliases = ("52", "lua52", "lua5.2", "5.3", "53", "lua53", "lua5.3")
    luac_names = ("luac5.2", "luac52", "luac5.3", "luac53", "luac")
    lupa_module = "lupa.lua52"
    env_upvalue = ENV_UPVALUE

    def decode_name(self, constant: str | None) -> Tuple[Optional[str], Optional[str]]:
        tokens = split_constant(constant)
        if len(tokens) < 2:
            return (tokens[0] if tokens else None), None
        return tokens[0], unquote(tokens[1])

    def _decode_upvalue_write(self, instruction: Instruction, upvalue: str | None) -> Event:
        if upvalue == self.env_upvalue:
            return Event(ENV_SET, instruction, register=instruction.a, upvalue=upvalue)
        return super()._decode_upvalue_write(instruction, upvalue)

    def _decode_specific(self, instruction: Instruction, tokens) -> Event:
        op = instruction.opname
        if op == "GETTABUP":
            if not is_constant_operand(instruction.c):
                return Event(OTHER, instruction, register=instruction.a)
            upvalue, name = self.decode_name(instruction.constant)
            if name is None:
                return Event(OTHER, instruction, register=instruction.a)
            if self.is_global_access(upvalue):
                return Event(GLOBAL_GET, instruction, register=instruction.a, name=name)
            return Event(UPVALUE_FIELD_GET, instruction, register=instruction.a, name=name, upvalue=upvalue)
        if op == "SETTABUP":
            if not is_constant_operand(instruction.b):
                return Event(OTHER, instruction)
            upvalue, name = self.decode_name(instruction.constant)
            if name is None:
                return Event(OTHER, instruction)
            if self.is_global_access(upvalue):
                return Event(GLOBAL_SET, instruction, register=instruction.c, name=name)
            return Event(UPVALUE_FIELD_SET, instruction, register=instruction.c, name=name, upvalue=upvalue)
        return Event(OTHER, instruction, register=instruction.a)


register_dialect(Lua52Dialect)

__all__ = ["Lua52Dialect"]
