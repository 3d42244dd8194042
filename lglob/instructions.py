"""Parse single ``luac -l`` instruction lines into structured records.

``luac`` prints one instruction per line using a fixed columnar layout::

    	3	[2]	GETTABLE 	1 0 -2	; "format"

The columns are the 1-based instruction index, the bracketed source line
(``[-]`` when debug information was stripped), the mnemonic, one to three
operands and an optional trailing comment holding decoded constants.  The
comment is kept verbatim; dialect adapters decide what it means.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from .exceptions import MalformedListingError

__all__ = [
    "Instruction",
    "is_constant_operand",
    "parse_instruction",
    "split_constant",
    "unquote",
]

_INSTRUCTION_RE = re.compile(
    r"^\s*(?P<index>\d+)\s+\[(?P<line>\d+|-)\]\s+(?P<opname>[A-Z][A-Z0-9_]*)"
    r"\s+(?P<a>-?\d+)(?:\s+(?P<b>-?\d+))?(?:\s+(?P<c>-?\d+))?"
    r"\s*(?:;\s?(?P<constant>.*?))?\s*$"
)
# Anything that starts like an instruction line must parse completely.
_INSTRUCTION_PREFIX_RE = re.compile(r"^\s*\d+\s+\[(?:\d+|-)\]")
_TOKEN_RE = re.compile(r'"(?:[^"\\]|\\.)*"|\S+')
_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "a": "\a", "b": "\b", "f": "\f", "v": "\v"}


@dataclass(frozen=True)
class Instruction:
    """One disassembled instruction."""

    index: int
    line: int
    opname: str
    a: int
    b: Optional[int] = None
    c: Optional[int] = None
    constant: Optional[str] = None

    @property
    def operands(self) -> Tuple[int, ...]:
        return tuple(value for value in (self.a, self.b, self.c) if value is not None)

    def tokens(self) -> List[str]:
        """Return the whitespace separated tokens of the trailing comment."""

        return split_constant(self.constant)

    def describe(self) -> str:
        operands = " ".join(str(value) for value in self.operands)
        text = f"{self.index:>5} [{self.line}] {self.opname:<9} {operands}"
        if self.constant:
            text += f"\t; {self.constant}"
        return text


def parse_instruction(text: str, *, line_number: int | None = None) -> Instruction | None:
    """Return the :class:`Instruction` encoded by ``text``.

    ``None`` is returned for lines that are not instructions at all (block
    headers, section headers, blank separators) so callers can use it to
    detect function-block boundaries.  A line that starts like an
    instruction but cannot be matched raises :class:`MalformedListingError`,
    since it means the disassembler's output format changed.
    """

    match = _INSTRUCTION_RE.match(text)
    if match is None:
        if _INSTRUCTION_PREFIX_RE.match(text):
            raise MalformedListingError(
                "unrecognised instruction layout", line_number=line_number, text=text.rstrip("\n")
            )
        return None

    raw_line = match.group("line")
    b = match.group("b")
    c = match.group("c")
    constant = match.group("constant")
    return Instruction(
        index=int(match.group("index")),
        line=0 if raw_line == "-" else int(raw_line),
        opname=match.group("opname"),
        a=int(match.group("a")),
        b=int(b) if b is not None else None,
        c=int(c) if c is not None else None,
        constant=constant if constant else None,
    )


def is_constant_operand(value: int | None) -> bool:
    """Return ``True`` when ``luac`` printed ``value`` as a constant index."""

    return value is not None and value < 0


def split_constant(text: str | None) -> List[str]:
    """Split a trailing comment into tokens, keeping quoted strings whole."""

    if not text:
        return []
    return _TOKEN_RE.findall(text)


def unquote(token: str | None) -> str | None:
    """Return the contents of a quoted string token or ``None``."""

    if not token or len(token) < 2 or token[0] != '"' or token[-1] != '"':
        return None
    body = token[1:-1]
    if "\\" not in body:
        return body
    out: List[str] = []
    index = 0
    while index < len(body):
        char = body[index]
        if char == "\\" and index + 1 < len(body):
            nxt = body[index + 1]
            if nxt.isdigit():
                digits = nxt
                index += 2
                while index < len(body) and len(digits) < 3 and body[index].isdigit():
                    digits += body[index]
                    index += 1
                out.append(chr(int(digits)))
                continue
            out.append(_ESCAPES.get(nxt, nxt))
            index += 2
            continue
        out.append(char)
        index += 1
    return "".join(out)
