"""Lua 5.1 dialect: explicit ``GETGLOBAL`` / ``SETGLOBAL`` opcodes."""

from __future__ import annotations

from typing import Optional, Tuple

from ..instructions import Instruction
from . import GLOBAL_GET, GLOBAL_SET, OTHER, Dialect, Event, register_dialect


class Lua51Dialect(Dialect):
    """Globals live in the function environment and have dedicated opcodes.

    ``luac`` 5.1 prints the global's name as a bare word::

        1	[1]	GETGLOBAL	0 -1	; print
    """

    name = "5.1"
    aliases = ("51", "lua51", "lua5.1", "luajit")
    luac_names = ("luac5.1", "luac51", "luac")
    lupa_module = "lupa.lua51"

    def decode_name(self, constant: str | None) -> Tuple[Optional[str], Optional[str]]:
        tokens = constant.split() if constant else []
        return None, tokens[0] if tokens else None

    def _decode_specific(self, instruction: Instruction, tokens) -> Event:
        op = instruction.opname
        if op in ("GETGLOBAL", "SETGLOBAL"):
            _, name = self.decode_name(instruction.constant)
            if name is None:
                return Event(OTHER, instruction, register=instruction.a)
            kind = GLOBAL_GET if op == "GETGLOBAL" else GLOBAL_SET
            return Event(kind, instruction, register=instruction.a, name=name)
        return Event(OTHER, instruction, register=instruction.a)


register_dialect(Lua51Dialect)

__all__ = ["Lua51Dialect"]
