"""
Intcode machine: decode/execute state machine over an integer tape.

Models a small CPU: a word-addressed tape, instruction pointer, relative
base register, a three-state lifecycle, and input/output FIFOs. Execution
is cooperative: a machine suspends (Active → Ready) when it needs input it
does not have, or after every output when configured to break on output,
and the caller resumes it with another run().
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Sequence

from .chips import FIFO, Register, Tape, WORD_BITS, to_word
from .errors import (
    CycleLimitExceeded, IllegalWriteMode, IntcodeError, InvalidMode,
    InvalidOpcode, MachineHalted,
)

log = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Instruction set
# ---------------------------------------------------------------------------

OP_ADD    = 1
OP_MUL    = 2
OP_INPUT  = 3
OP_OUTPUT = 4
OP_JNZ    = 5
OP_JZ     = 6
OP_LT     = 7
OP_EQ     = 8
OP_ARB    = 9   # adjust relative base
OP_HALT   = 99

# Addressing modes (one decimal digit per operand)
MODE_POSITION  = 0
MODE_IMMEDIATE = 1
MODE_RELATIVE  = 2

# Lifecycle states
S_HALTED = 0
S_READY  = 1
S_ACTIVE = 2

STATE_NAMES = {S_HALTED: "Halted", S_READY: "Ready", S_ACTIVE: "Active"}

# Input policies
INPUT_QUEUE       = "queue"        # empty queue suspends, instruction retried
INPUT_POLL        = "poll"         # empty queue yields -1, then suspends
INPUT_INTERACTIVE = "interactive"  # ask input_provider, suspend on None

# Output policies
OUTPUT_FREE_RUN = "free-run"
OUTPUT_BREAK    = "break"          # suspend after every emitted value

POLL_SENTINEL = -1
TAPE_CAPACITY = 1_000_000
MAX_OPERANDS  = 3


@dataclass(frozen=True)
class Instruction:
    mnemonic: str
    operands: int
    writes: bool   # last operand is a write target


INSTRUCTIONS: dict[int, Instruction] = {
    OP_ADD:    Instruction("ADD", 3, True),
    OP_MUL:    Instruction("MUL", 3, True),
    OP_INPUT:  Instruction("IN",  1, True),
    OP_OUTPUT: Instruction("OUT", 1, False),
    OP_JNZ:    Instruction("JNZ", 2, False),
    OP_JZ:     Instruction("JZ",  2, False),
    OP_LT:     Instruction("LT",  3, True),
    OP_EQ:     Instruction("EQ",  3, True),
    OP_ARB:    Instruction("ARB", 1, False),
    OP_HALT:   Instruction("HLT", 0, False),
}


def decode(word: int, address: int = 0) -> tuple[int, Instruction, list[int]]:
    """Split an instruction word into (opcode, instruction, modes).

    Mode digits are read least-significant first from word // 100; missing
    digits mean position mode.
    """
    opcode = word % 100 if word >= 0 else -1
    ins = INSTRUCTIONS.get(opcode)
    if ins is None:
        raise InvalidOpcode(address, word)
    digits = word // 100
    modes = []
    for _ in range(ins.operands):
        digit = digits % 10
        if digit not in (MODE_POSITION, MODE_IMMEDIATE, MODE_RELATIVE):
            raise InvalidMode(address, word, digit)
        modes.append(digit)
        digits //= 10
    return opcode, ins, modes


@dataclass(frozen=True)
class MachineConfig:
    """Construction-time behaviour of a Machine.

    Args:
        input_mode: INPUT_QUEUE, INPUT_POLL or INPUT_INTERACTIVE.
        output_mode: OUTPUT_FREE_RUN or OUTPUT_BREAK.
        capacity: Tape size in words.
        max_cycles: Optional ceiling on cycles per load; None = unlimited.
        input_provider: Called for each input in INPUT_INTERACTIVE mode.
            Returning None suspends the machine as if the queue were empty.
    """
    input_mode: str = INPUT_QUEUE
    output_mode: str = OUTPUT_FREE_RUN
    capacity: int = TAPE_CAPACITY
    max_cycles: int | None = None
    input_provider: Callable[[], int | None] | None = None

    def __post_init__(self):
        if self.input_mode not in (INPUT_QUEUE, INPUT_POLL, INPUT_INTERACTIVE):
            raise ValueError(f"unknown input mode: {self.input_mode!r}")
        if self.output_mode not in (OUTPUT_FREE_RUN, OUTPUT_BREAK):
            raise ValueError(f"unknown output mode: {self.output_mode!r}")
        if self.input_mode == INPUT_INTERACTIVE and self.input_provider is None:
            raise ValueError("interactive input mode needs an input_provider")


# ---------------------------------------------------------------------------
# Machine
# ---------------------------------------------------------------------------

class Machine:
    """Intcode CPU with a blocking I/O contract."""

    def __init__(self, config: MachineConfig | None = None):
        self.config = config or MachineConfig()

        # --- Chips ---
        self.tape = Tape(self.config.capacity)

        # --- Registers ---
        self.ip = Register(WORD_BITS)                 # instruction pointer
        self.base = Register(WORD_BITS, signed=True)  # relative base
        self.state = Register(2)
        self.state.load(S_HALTED)

        # --- IO ---
        self.inputs = FIFO()
        self.outputs = FIFO()

        # --- Per-cycle latches ---
        self._modes = [MODE_POSITION] * MAX_OPERANDS
        self._operands = [0] * MAX_OPERANDS

        # --- Counters ---
        self.cycles = 0
        self.reads = 0
        self.writes = 0
        self.input_count = 0
        self.output_count = 0
        self.jumps = 0

    # -------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------

    def load(self, program: Sequence[int]):
        """Reset registers, queues, counters and tape, then copy program in."""
        self.tape.load_image(program)
        self.ip.load(0)
        self.base.load(0)
        self.inputs.clear()
        self.outputs.clear()
        self.reset_counters()
        self.state.load(S_READY)

    @property
    def halted(self) -> bool:
        return self.state.value == S_HALTED

    @property
    def ready(self) -> bool:
        return self.state.value == S_READY

    @property
    def waiting_for_input(self) -> bool:
        """Suspended on an input instruction with nothing queued."""
        ip = self.ip.value
        if not self.ready or self.inputs.ready() or ip >= self.tape.capacity:
            return False
        return self.tape.read(ip) % 100 == OP_INPUT

    # -------------------------------------------------------------------
    # Memory helpers
    # -------------------------------------------------------------------

    def peek(self, addr: int) -> int:
        self.reads += 1
        return self.tape.read(addr)

    def poke(self, addr: int, val: int):
        self.writes += 1
        self.tape.write(addr, val)

    def _read_operand(self, slot: int) -> int:
        raw = self._operands[slot]
        mode = self._modes[slot]
        if mode == MODE_IMMEDIATE:
            return raw
        if mode == MODE_RELATIVE:
            return self.peek(self.base.value + raw)
        return self.peek(raw)

    def _target_address(self, slot: int, ip: int, word: int) -> int:
        raw = self._operands[slot]
        mode = self._modes[slot]
        if mode == MODE_RELATIVE:
            return self.base.value + raw
        if mode == MODE_IMMEDIATE:
            raise IllegalWriteMode(ip, word)
        return raw

    def _next_input(self) -> int | None:
        value = self.inputs.pop()
        if value is not None:
            return value
        mode = self.config.input_mode
        if mode == INPUT_INTERACTIVE:
            return self.config.input_provider()
        if mode == INPUT_POLL:
            return POLL_SENTINEL
        return None

    # -------------------------------------------------------------------
    # State machine
    # -------------------------------------------------------------------

    def tick(self) -> bool:
        """One decode/execute cycle. Returns True if still Active."""
        max_cycles = self.config.max_cycles
        if max_cycles is not None and self.cycles >= max_cycles:
            raise CycleLimitExceeded(
                f"cycle limit of {max_cycles} reached at ip={self.ip.value}")
        self.cycles += 1

        ip = self.ip.value
        word = self.tape.read(ip)
        opcode, ins, modes = decode(word, ip)
        n = ins.operands
        for i in range(n):
            self._modes[i] = modes[i]
            self._operands[i] = self.tape.read(ip + 1 + i)

        if log.isEnabledFor(logging.DEBUG):
            log.debug("%6d : %6d   %-3s %s", self.base.value, ip, ins.mnemonic,
                      "".join(f"[{v}]" for v in self._operands[:n]))

        reads = n - 1 if ins.writes else n
        values = [self._read_operand(i) for i in range(reads)]
        target = self._target_address(n - 1, ip, word) if ins.writes else 0
        next_ip = ip + n + 1

        if opcode == OP_ADD:
            self.poke(target, values[0] + values[1])

        elif opcode == OP_MUL:
            self.poke(target, values[0] * values[1])

        elif opcode == OP_LT:
            self.poke(target, 1 if values[0] < values[1] else 0)

        elif opcode == OP_EQ:
            self.poke(target, 1 if values[0] == values[1] else 0)

        elif opcode == OP_INPUT:
            polled = (self.config.input_mode == INPUT_POLL
                      and not self.inputs.ready())
            value = self._next_input()
            if value is None:
                # Suspend without consuming the instruction; resume retries it
                log.debug("waiting for input at ip=%d", ip)
                self.state.load(S_READY)
                return False
            log.debug("INPUT  < %d", value)
            self.poke(target, value)
            self.input_count += 1
            self.ip.load(next_ip)
            if polled:
                self.state.load(S_READY)
                return False
            return True

        elif opcode == OP_OUTPUT:
            log.debug("OUTPUT > %d", values[0])
            self.outputs.push(values[0])
            self.output_count += 1
            self.ip.load(next_ip)
            if self.config.output_mode == OUTPUT_BREAK:
                self.state.load(S_READY)
                return False
            return True

        elif opcode == OP_JNZ:
            if values[0] != 0:
                self.jumps += 1
                next_ip = values[1]

        elif opcode == OP_JZ:
            if values[0] == 0:
                self.jumps += 1
                next_ip = values[1]

        elif opcode == OP_ARB:
            self.base.load(to_word(self.base.value + values[0]))

        elif opcode == OP_HALT:
            log.debug("halting at ip=%d", ip)
            self.state.load(S_HALTED)
            return False

        self.ip.load(next_ip)
        return self.state.value == S_ACTIVE

    def _guarded_tick(self) -> bool:
        try:
            return self.tick()
        except IntcodeError:
            # Faults are fatal: the machine cannot be resumed
            self.state.load(S_HALTED)
            raise

    def step(self) -> int:
        """Execute a single cycle from Ready; returns the resulting state."""
        if self.state.value == S_HALTED:
            raise MachineHalted("cannot step a halted machine")
        self.state.load(S_ACTIVE)
        if self._guarded_tick():
            self.state.load(S_READY)
        return self.state.value

    def run(self) -> int:
        """Run until the machine suspends or halts. Returns the new state."""
        if self.state.value == S_HALTED:
            raise MachineHalted("cannot run a halted machine")
        self.state.load(S_ACTIVE)
        while self._guarded_tick():
            pass
        return self.state.value

    # -------------------------------------------------------------------
    # Counters
    # -------------------------------------------------------------------

    def reset_counters(self):
        self.cycles = 0
        self.reads = 0
        self.writes = 0
        self.input_count = 0
        self.output_count = 0
        self.jumps = 0

    def stats(self) -> dict:
        return {
            "cycles": self.cycles,
            "reads": self.reads,
            "writes": self.writes,
            "inputs": self.input_count,
            "outputs": self.output_count,
            "jumps": self.jumps,
            "ip": self.ip.value,
            "base": self.base.value,
            "state": STATE_NAMES[self.state.value],
        }

    def stats_summary(self) -> str:
        s = self.stats()
        return (
            f"State: {s['state']}  IP: {s['ip']}  Base: {s['base']}\n"
            f"Cycles: {s['cycles']}  Jumps taken: {s['jumps']}\n"
            f"Tape: {s['reads']}R/{s['writes']}W\n"
            f"IO: {s['inputs']} in / {s['outputs']} out"
        )
