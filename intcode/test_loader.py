"""Tests for program text parsing and disassembly."""

from __future__ import annotations

import pytest

from intcode.disasm import disassemble, format_instruction
from intcode.errors import ParseError
from intcode.loader import load_program_file, parse_program


def test_parse_plain_and_trailing_whitespace():
    assert parse_program("1,9,10,3,2,3,11,0,99,30,40,50") == (
        1, 9, 10, 3, 2, 3, 11, 0, 99, 30, 40, 50)
    assert parse_program("  3,-1,+4,99\n") == (3, -1, 4, 99)
    assert parse_program("104,1125899906842624,99\r\n") == (
        104, 1125899906842624, 99)


def test_parse_empty_is_accepted():
    assert parse_program("") == ()
    assert parse_program(" \n") == ()


def test_parse_rejects_bad_tokens():
    bad = ["1,2,x", "1,,2", "1 ,2", "1;2", "1,2,", "0x10", "# comment\n1"]
    failures = []
    for text in bad:
        try:
            parse_program(text)
        except ParseError:
            continue
        failures.append(text)
    assert not failures


def test_parse_error_reports_position():
    with pytest.raises(ParseError) as exc:
        parse_program("1,2,abc")
    assert exc.value.line == 1
    assert exc.value.column == 5


def test_parse_rejects_words_beyond_64_bits():
    with pytest.raises(ParseError):
        parse_program(f"104,{2 ** 63},99")
    assert parse_program(f"104,{-(2 ** 63)},99")[1] == -(2 ** 63)


def test_load_program_file(tmp_path):
    path = tmp_path / "prog.txt"
    path.write_text("1002,4,3,4,33\n")
    assert load_program_file(path) == (1002, 4, 3, 4, 33)


def test_disassemble_sweep():
    lines = disassemble((1002, 4, 3, 4, 33, 109, -2, 21101, 1, 2, 0, 99, 7))
    assert lines == [
        (0, "MUL [4], #3, [4]"),
        (4, "DATA 33"),
        (5, "ARB #-2"),
        (7, "ADD #1, #2, [rb+0]"),
        (11, "HLT"),
        (12, "DATA 7"),
    ]


def test_truncated_instruction_is_data():
    assert disassemble((1101, 1)) == [(0, "DATA 1101"), (1, "DATA 1")]


def test_format_instruction_reports_size():
    image = (21101, 1, 2, -3, 4, 7)
    assert format_instruction(image.__getitem__, 0) == ("ADD #1, #2, [rb-3]", 4)
    assert format_instruction(image.__getitem__, 4) == ("OUT [7]", 2)
