"""
Disassembler: render tape cells as Intcode mnemonics.

Operands are shown as `[addr]` (position), `#imm` (immediate) and
`[rb+off]` (relative). Cells that do not decode are shown as DATA.
"""

from __future__ import annotations

from typing import Callable, Sequence

from .errors import IntcodeError
from .machine import MODE_IMMEDIATE, MODE_RELATIVE, decode


def format_operand(mode: int, raw: int) -> str:
    if mode == MODE_IMMEDIATE:
        return f"#{raw}"
    if mode == MODE_RELATIVE:
        sign = "+" if raw >= 0 else "-"
        return f"[rb{sign}{abs(raw)}]"
    return f"[{raw}]"


def format_instruction(read: Callable[[int], int], address: int) -> tuple[str, int]:
    """Disassemble the instruction at address. Returns (text, cell count)."""
    word = read(address)
    try:
        _, ins, modes = decode(word, address)
    except IntcodeError:
        return f"DATA {word}", 1
    parts = []
    for i, mode in enumerate(modes):
        try:
            raw = read(address + 1 + i)
        except IntcodeError:
            return f"DATA {word}", 1
        parts.append(format_operand(mode, raw))
    text = ins.mnemonic if not parts else f"{ins.mnemonic:<4}" + ", ".join(parts)
    return text, ins.operands + 1


def disassemble(image: Sequence[int], start: int = 0,
                stop: int | None = None) -> list[tuple[int, str]]:
    """Linear sweep over a program image."""
    stop = len(image) if stop is None else min(stop, len(image))

    def read(addr: int) -> int:
        if 0 <= addr < len(image):
            return image[addr]
        raise IndexError(addr)

    lines = []
    addr = start
    while addr < stop:
        try:
            text, size = format_instruction(read, addr)
        except IndexError:
            text, size = f"DATA {image[addr]}", 1
        lines.append((addr, text))
        addr += size
    return lines
