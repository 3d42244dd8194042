"""Split a ``luac -l -l`` listing into per-function blocks.

A block looks like::

    main <demo.lua:0,0> (4 instructions, 16 bytes at 0x8063c60)
    0+ params, 2 slots, 0 upvalues, 0 locals, 2 constants, 0 functions
    	1	[1]	GETGLOBAL	0 -1	; print
    	...
    constants (2) for 0x8063c60:
    	1	"print"
    	2	"hi"
    locals (0) for 0x8063c60:
    upvalues (0) for 0x8063c60:

Blocks are yielded lazily in listing order; the first one is the main
chunk.  The metadata sections trail the instructions, so a block is only
yielded once it has been read completely.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Optional, Tuple

from .exceptions import MalformedListingError
from .instructions import Instruction, parse_instruction
from .scope import KnownLocals, ScopeTable

__all__ = ["FunctionBlock", "read_listing"]

_HEADER_RE = re.compile(r"^(?P<kind>main|function)\s+<(?P<source>.*):(?P<first>\d+),(?P<last>\d+)>")
_SUMMARY_RE = re.compile(r"^\s*\d+\+?\s+params?\b")
_SECTION_RE = re.compile(r"^(?P<section>constants|locals|upvalues)\s+\((?P<count>\d+)\)")
_LOCAL_RE = re.compile(r"^\s*(?P<index>\d+)\s+(?P<name>.+?)(?:\s+(?P<start>\d+)\s+(?P<end>\d+))?\s*$")
_UPVALUE_RE = re.compile(r"^\s*(?P<slot>\d+)\s+(?P<name>\S+)")


@dataclass
class FunctionBlock:
    """Instructions and scope metadata of one compiled function."""

    ordinal: int
    kind: str
    source: str
    line_defined: int
    last_line: int
    instructions: List[Instruction] = field(default_factory=list)
    scope: ScopeTable = field(default_factory=ScopeTable)

    @property
    def is_main(self) -> bool:
        return self.kind == "main"


class _Lines:
    """Forward-only cursor over listing lines with one line of lookahead."""

    def __init__(self, lines: Iterable[str]):
        self._iter = iter(lines)
        self._peeked: Optional[str] = None
        self.number = 0

    def peek(self) -> Optional[str]:
        if self._peeked is None:
            try:
                self._peeked = next(self._iter).rstrip("\r\n")
            except StopIteration:
                return None
        return self._peeked

    def next(self) -> Optional[str]:
        line = self.peek()
        if line is not None:
            self._peeked = None
            self.number += 1
        return line


def read_listing(text: str | Iterable[str], *, known: KnownLocals | None = None) -> Iterator[FunctionBlock]:
    """Yield every :class:`FunctionBlock` of a listing in order.

    ``known`` is shared by all scope tables of the listing so locals promoted
    in one function stay visible to the functions that capture them.
    """

    if isinstance(text, str):
        text = text.splitlines()
    known = known if known is not None else KnownLocals()
    cursor = _Lines(text)
    ordinal = 0
    while True:
        line = cursor.next()
        if line is None:
            return
        if not line.strip():
            continue
        header = _HEADER_RE.match(line)
        if header is None:
            raise MalformedListingError("expected a function header", line_number=cursor.number, text=line)
        yield _read_block(cursor, header, ordinal, known)
        ordinal += 1


def _read_block(cursor: _Lines, header: re.Match, ordinal: int, known: KnownLocals) -> FunctionBlock:
    block = FunctionBlock(
        ordinal=ordinal,
        kind=header.group("kind"),
        source=header.group("source"),
        line_defined=int(header.group("first")),
        last_line=int(header.group("last")),
    )
    summary = cursor.peek()
    if summary is not None and _SUMMARY_RE.match(summary):
        cursor.next()

    while True:
        line = cursor.peek()
        if line is None:
            break
        instruction = parse_instruction(line, line_number=cursor.number + 1)
        if instruction is None:
            break
        cursor.next()
        block.instructions.append(instruction)

    raw_locals: Optional[List[Tuple[str, Optional[int], Optional[int]]]] = None
    raw_upvalues: Optional[List[Tuple[int, str]]] = None
    while True:
        line = cursor.peek()
        if line is None or not line.strip():
            break
        section = _SECTION_RE.match(line)
        if section is None:
            break
        cursor.next()
        rows = [_section_row(cursor, section.group("section")) for _ in range(int(section.group("count")))]
        if section.group("section") == "locals":
            raw_locals = [_parse_local(row, cursor) for row in rows]
        elif section.group("section") == "upvalues":
            raw_upvalues = [_parse_upvalue(row, cursor) for row in rows]

    if raw_locals is None or raw_upvalues is None:
        raise MalformedListingError(
            f"function <{block.source}:{block.line_defined}> lacks locals/upvalues metadata "
            "(the disassembler must be run with -l -l)",
            line_number=cursor.number,
        )
    block.scope = ScopeTable.from_metadata(raw_locals, raw_upvalues, function=ordinal, known=known)
    return block


def _section_row(cursor: _Lines, section: str) -> str:
    line = cursor.next()
    if line is None or not line.strip():
        raise MalformedListingError(f"truncated {section} section", line_number=cursor.number)
    return line


def _parse_local(row: str, cursor: _Lines) -> Tuple[str, Optional[int], Optional[int]]:
    match = _LOCAL_RE.match(row)
    if match is None:
        raise MalformedListingError("unrecognised local descriptor", line_number=cursor.number, text=row)
    start = match.group("start")
    end = match.group("end")
    return (
        match.group("name"),
        int(start) if start is not None else None,
        int(end) if end is not None else None,
    )


def _parse_upvalue(row: str, cursor: _Lines) -> Tuple[int, str]:
    match = _UPVALUE_RE.match(row)
    if match is None:
        raise MalformedListingError("unrecognised upvalue descriptor", line_number=cursor.number, text=row)
    return int(match.group("slot")), match.group("name")
