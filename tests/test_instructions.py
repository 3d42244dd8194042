import pytest

from lglob.exceptions import MalformedListingError
from lglob.instructions import (
    Instruction,
    is_constant_operand,
    parse_instruction,
    split_constant,
    unquote,
)


def test_parse_global_read():
    ins = parse_instruction('\t1\t[1]\tGETGLOBAL\t0 -1\t; print')
    assert ins == Instruction(index=1, line=1, opname="GETGLOBAL", a=0, b=-1, constant="print")
    assert ins.operands == (0, -1)


def test_parse_three_operands_and_quoted_comment():
    ins = parse_instruction('\t3\t[2]\tGETTABUP \t1 0 -2\t; _ENV "print"')
    assert (ins.a, ins.b, ins.c) == (1, 0, -2)
    assert ins.tokens() == ["_ENV", '"print"']


def test_parse_without_comment():
    ins = parse_instruction("\t3\t[1]\tCALL     \t0 2 1")
    assert ins.opname == "CALL"
    assert ins.constant is None


def test_stripped_line_info_maps_to_zero():
    ins = parse_instruction("\t4\t[-]\tRETURN   \t0 1")
    assert ins.line == 0


@pytest.mark.parametrize(
    "text",
    [
        "main <demo.lua:0,0> (4 instructions, 16 bytes at 0x8063c60)",
        "constants (2) for 0x8063c60:",
        "",
    ],
)
def test_non_instruction_lines_return_none(text):
    assert parse_instruction(text) is None


def test_instruction_shaped_garbage_raises():
    with pytest.raises(MalformedListingError) as excinfo:
        parse_instruction("\t1\t[1]\tgetglobal\tzero", line_number=7)
    assert excinfo.value.line_number == 7
    assert "listing line 7" in str(excinfo.value)


def test_constant_operands_are_negative():
    assert is_constant_operand(-1)
    assert not is_constant_operand(0)
    assert not is_constant_operand(None)


def test_split_constant_keeps_quoted_strings_whole():
    assert split_constant('"hello world" 1') == ['"hello world"', "1"]
    assert split_constant(None) == []


def test_unquote_handles_escapes():
    assert unquote('"format"') == "format"
    assert unquote('"a\\"b"') == 'a"b'
    assert unquote('"\\65\\n"') == "A\n"
    assert unquote("print") is None
    assert unquote("-") is None
