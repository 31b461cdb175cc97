"""
IntcodeHost: high-level interface to one Intcode machine.

Holds a Program Image, (re)loads it into a Machine, moves words and ASCII
text through the machine's FIFOs, and reports run results.
"""

from __future__ import annotations

from typing import Iterable, Sequence

from .disasm import disassemble
from .loader import ProgramImage, load_program_file
from .machine import STATE_NAMES, Machine, MachineConfig, S_HALTED

NEWLINE = 10
ASCII_LIMIT = 128


class IntcodeHost:
    """High-level interface to an Intcode machine.

    Args:
        program: Program Image to run. Loaded immediately.
        config: Optional MachineConfig for the underlying machine.
    """

    def __init__(self, program: Sequence[int],
                 config: MachineConfig | None = None):
        self.program: ProgramImage = tuple(program)
        self.machine = Machine(config)
        self.load()

    @classmethod
    def from_file(cls, path, config: MachineConfig | None = None) -> "IntcodeHost":
        return cls(load_program_file(path), config)

    def load(self):
        """Reset the machine to a fresh copy of the program."""
        self.machine.load(self.program)

    def patch(self, address: int, value: int):
        """Overwrite one tape cell after load (e.g. noun/verb in cells 1, 2)."""
        self.machine.poke(address, value)

    def peek(self, address: int) -> int:
        return self.machine.peek(address)

    # -------------------------------------------------------------------
    # Word IO
    # -------------------------------------------------------------------

    def send(self, values: Iterable[int]):
        """Feed words into the machine's input FIFO."""
        self.machine.inputs.extend(values)

    def recv(self) -> list[int]:
        """Drain the machine's output FIFO."""
        return self.machine.outputs.drain()

    # -------------------------------------------------------------------
    # ASCII IO
    # -------------------------------------------------------------------

    def send_line(self, text: str):
        """Feed one line of text as character codes followed by newline."""
        for ch in text:
            code = ord(ch)
            if code >= ASCII_LIMIT:
                raise ValueError(f"non-ASCII character {ch!r} in input line")
            self.machine.inputs.push(code)
        self.machine.inputs.push(NEWLINE)

    def recv_ascii(self) -> tuple[str, list[int]]:
        """Drain outputs; return (text of ASCII values, other values)."""
        chars = []
        other = []
        for v in self.recv():
            if 0 <= v < ASCII_LIMIT:
                chars.append(chr(v))
            else:
                other.append(v)
        return "".join(chars), other

    # -------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------

    def run(self) -> int:
        return self.machine.run()

    def execute(self, inputs: Iterable[int] = ()) -> dict:
        """
        Load the program, queue inputs and run until suspend or halt.

        Returns dict with halt status, state name, outputs, and stats.
        """
        self.load()
        self.send(inputs)
        state = self.machine.run()
        return {
            "ok": state == S_HALTED,
            "state": STATE_NAMES[state],
            "outputs": self.recv(),
            "stats": self.machine.stats(),
        }

    def disassemble(self) -> list[tuple[int, str]]:
        return disassemble(self.program)
