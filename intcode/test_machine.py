"""
Verification suite for the Intcode machine core.

Covers decode, addressing modes, the lifecycle state machine, input
suspension, and the fatal fault conditions.
"""

from __future__ import annotations

import sys

import pytest

from intcode.chips import FIFO, Register, Tape, to_word
from intcode.errors import (
    AddressOutOfBounds, CycleLimitExceeded, IllegalWriteMode, InvalidMode,
    InvalidOpcode, MachineHalted,
)
from intcode.host import IntcodeHost
from intcode.machine import (
    INPUT_INTERACTIVE, INPUT_POLL, MODE_IMMEDIATE, MODE_POSITION,
    MODE_RELATIVE, OP_HALT, OP_INPUT, OUTPUT_BREAK, S_HALTED,
    S_READY, Machine, MachineConfig, decode,
)

QUINE = [109, 1, 204, -1, 1001, 100, 1, 100, 1008, 100, 16, 101,
         1006, 101, 0, 99]
RELATIVE_PROBE = [109, 1, 204, -1, 1101, 100, 1, 85, 8, 0, 208, -1, 203, 1, 99]
EQUALS_EIGHT = [3, 9, 8, 9, 10, 9, 4, 9, 99, -1, 8]
COMPARE_EIGHT = [3, 21, 1008, 21, 8, 20, 1005, 20, 22, 107, 8, 21, 20, 1006,
                 20, 31, 1106, 0, 36, 98, 0, 0, 1002, 21, 125, 20, 4, 20,
                 1105, 1, 46, 104, 999, 1105, 1, 46, 1101, 1000, 1, 20, 4,
                 20, 1105, 1, 46, 98, 99]

SMALL = MachineConfig(capacity=4096)


def _run(program, inputs=(), config=SMALL):
    m = Machine(config)
    m.load(program)
    m.inputs.extend(inputs)
    m.run()
    return m


# ---------------------------------------------------------------------------
# Chips
# ---------------------------------------------------------------------------

def test_word_wraps_to_signed_64_bits():
    assert to_word(2 ** 63) == -(2 ** 63)
    assert to_word(-(2 ** 63) - 1) == 2 ** 63 - 1
    assert to_word(-5) == -5


def test_register_signed_and_unsigned():
    r = Register(64)
    r.load(-1)
    assert r.value == 2 ** 64 - 1
    s = Register(64, signed=True)
    s.load(-1)
    assert s.value == -1


def test_fifo_order():
    q = FIFO()
    q.extend([1, 2, 3])
    assert q.pop() == 1
    assert q.drain() == [2, 3]
    assert q.pop() is None


def test_tape_clear_only_resets_written_prefix():
    t = Tape(64)
    t.load_image([1, 2, 3])
    t.write(40, 9)
    t.clear()
    assert t.snapshot(0, 64) == [0] * 64
    with pytest.raises(AddressOutOfBounds):
        t.read(64)
    with pytest.raises(AddressOutOfBounds):
        t.write(-1, 0)


# ---------------------------------------------------------------------------
# Decoder
# ---------------------------------------------------------------------------

def test_decode_modes():
    opcode, ins, modes = decode(1002)
    assert opcode == 2 and ins.operands == 3 and ins.writes
    assert modes == [MODE_POSITION, MODE_IMMEDIATE, MODE_POSITION]

    opcode, ins, modes = decode(21107)
    assert modes == [MODE_IMMEDIATE, MODE_IMMEDIATE, MODE_RELATIVE]

    opcode, ins, modes = decode(99)
    assert opcode == OP_HALT and modes == []

    opcode, ins, modes = decode(203)
    assert opcode == OP_INPUT and modes == [MODE_RELATIVE]


def test_decode_rejects_unknown_opcodes_and_modes():
    for word in (0, 10, 42, 98, -1):
        with pytest.raises(InvalidOpcode):
            decode(word)
    with pytest.raises(InvalidMode):
        decode(301)


# ---------------------------------------------------------------------------
# Execution
# ---------------------------------------------------------------------------

def test_add_multiply_program():
    m = _run([1, 9, 10, 3, 2, 3, 11, 0, 99, 30, 40, 50])
    assert m.halted
    assert m.peek(0) == 3500
    assert m.peek(3) == 70


def test_immediate_mode_multiply():
    m = _run([1002, 4, 3, 4, 33])
    assert m.state.value == S_HALTED
    assert m.peek(4) == 99


def test_small_programs_final_state():
    cases = [
        ([1, 0, 0, 0, 99], [2, 0, 0, 0, 99]),
        ([2, 3, 0, 3, 99], [2, 3, 0, 6, 99]),
        ([2, 4, 4, 5, 99, 0], [2, 4, 4, 5, 99, 9801]),
        ([1, 1, 1, 4, 99, 5, 6, 0, 99], [30, 1, 1, 4, 2, 5, 6, 0, 99]),
        ([1101, 100, -1, 4, 0], [1101, 100, -1, 4, 99]),
    ]
    failures = []
    for program, expected in cases:
        m = _run(program)
        got = m.tape.snapshot(0, len(expected))
        if got != expected:
            failures.append((program, got, expected))
    assert not failures


def test_relative_mode_quine():
    m = _run(QUINE)
    assert m.halted
    assert m.outputs.drain() == QUINE


def test_relative_program_faults_on_negative_write_target():
    # Emits cell 0 through a relative read, then EQ at address 8 targets
    # position -1, which is outside the tape.
    m = Machine(SMALL)
    m.load(RELATIVE_PROBE)
    m.inputs.push(7)
    with pytest.raises(AddressOutOfBounds):
        m.run()
    assert m.outputs.drain() == [RELATIVE_PROBE[0]]
    assert m.peek(85) == 101
    assert m.base.value == 1


def test_large_values():
    m = _run([1102, 34915192, 34915192, 7, 4, 7, 99, 0])
    assert m.outputs.drain() == [1219070632396864]
    m = _run([104, 1125899906842624, 99])
    assert m.outputs.drain() == [1125899906842624]


def test_comparisons_and_jumps():
    failures = []
    for value, expected in [(7, 999), (8, 1000), (9, 1001)]:
        m = _run(COMPARE_EIGHT, inputs=[value])
        out = m.outputs.drain()
        if out != [expected]:
            failures.append((value, out))
    for value, expected in [(8, 1), (5, 0)]:
        m = _run(EQUALS_EIGHT, inputs=[value])
        if m.outputs.drain() != [expected]:
            failures.append((value, expected))
    for value, expected in [(0, 0), (3, 1)]:
        m = _run([3, 3, 1105, -1, 9, 1101, 0, 0, 12, 4, 12, 99, 1], inputs=[value])
        if m.outputs.drain() != [expected]:
            failures.append((value, expected))
    assert not failures


def test_relative_write_target_is_offset_by_base():
    # base = 10, then ADD #2 #3 -> [rb+5] = cell 15
    m = _run([109, 10, 21101, 2, 3, 5, 99])
    assert m.peek(15) == 5
    assert m.peek(5) == 5   # operand cell untouched


def test_addition_overflow_wraps():
    m = _run([1101, 2 ** 63 - 1, 1, 5, 99, 0])
    assert m.peek(5) == -(2 ** 63)


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------

def test_initial_state_is_halted():
    m = Machine(SMALL)
    assert m.halted
    with pytest.raises(MachineHalted):
        m.run()


def test_running_halted_machine_is_an_error():
    m = _run([99])
    with pytest.raises(MachineHalted):
        m.run()
    with pytest.raises(MachineHalted):
        m.step()


def test_input_suspends_without_consuming():
    m = Machine(SMALL)
    m.load(EQUALS_EIGHT)
    assert m.run() == S_READY
    assert m.ip.value == 0
    assert m.waiting_for_input
    assert m.input_count == 0
    assert len(m.outputs) == 0

    # Resuming repeatedly without data changes nothing
    assert m.run() == S_READY
    assert m.ip.value == 0

    m.inputs.push(8)
    assert m.run() == S_HALTED
    resumed = m.outputs.drain()

    fresh = _run(EQUALS_EIGHT, inputs=[8])
    assert resumed == fresh.outputs.drain() == [1]
    assert m.tape.snapshot(0, 16) == fresh.tape.snapshot(0, 16)


def test_break_on_output_suspends_after_each_value():
    m = Machine(MachineConfig(output_mode=OUTPUT_BREAK, capacity=64))
    m.load([104, 1, 104, 2, 99])
    assert m.run() == S_READY
    assert list(m.outputs) == [1]
    assert m.run() == S_READY
    assert list(m.outputs) == [1, 2]
    assert m.run() == S_HALTED


def test_poll_mode_yields_sentinel_then_suspends():
    m = Machine(MachineConfig(input_mode=INPUT_POLL, capacity=64))
    m.load([3, 20, 4, 20, 99])
    assert m.run() == S_READY
    assert m.peek(20) == -1
    assert m.ip.value == 2
    assert m.run() == S_HALTED
    assert m.outputs.drain() == [-1]

    m.load([3, 20, 4, 20, 99])
    m.inputs.push(42)
    assert m.run() == S_HALTED
    assert m.outputs.drain() == [42]


def test_interactive_input_provider():
    supplied = iter([5, None])
    config = MachineConfig(input_mode=INPUT_INTERACTIVE, capacity=64,
                           input_provider=lambda: next(supplied))
    m = Machine(config)
    m.load([3, 20, 3, 21, 99])
    assert m.run() == S_READY
    assert m.peek(20) == 5
    assert m.ip.value == 2


def test_interactive_mode_drains_queue_before_asking():
    asked = []

    def provider():
        asked.append(True)
        return 9

    config = MachineConfig(input_mode=INPUT_INTERACTIVE, capacity=64,
                           input_provider=provider)
    m = Machine(config)
    m.load([3, 20, 3, 21, 99])
    m.inputs.push(4)
    assert m.run() == S_HALTED
    assert (m.peek(20), m.peek(21)) == (4, 9)
    assert len(asked) == 1


def test_load_is_idempotent_reset():
    m = Machine(SMALL)
    m.load(EQUALS_EIGHT)
    fresh = (m.tape.snapshot(0, 64), m.ip.value, m.base.value, m.state.value)

    m.inputs.extend([8, 1, 2])
    m.run()
    m.base.load(17)
    m.poke(30, 123)
    m.load(EQUALS_EIGHT)

    assert (m.tape.snapshot(0, 64), m.ip.value, m.base.value,
            m.state.value) == fresh
    assert len(m.inputs) == 0 and len(m.outputs) == 0
    assert m.cycles == 0


def test_step_executes_one_cycle():
    m = Machine(SMALL)
    m.load([1101, 1, 2, 9, 1101, 3, 4, 10, 99, 0, 0])
    assert m.step() == S_READY
    assert m.ip.value == 4 and m.peek(9) == 3 and m.peek(10) == 0
    m.step()
    m.step()
    assert m.halted


# ---------------------------------------------------------------------------
# Faults
# ---------------------------------------------------------------------------

def test_invalid_opcode_is_fatal():
    with pytest.raises(InvalidOpcode) as exc:
        _run([1101, 20, 22, 4, 0])
    assert exc.value.address == 4
    assert exc.value.word == 42


def test_empty_program_fails_at_execution():
    with pytest.raises(InvalidOpcode):
        _run([])


def test_immediate_write_target_is_illegal():
    with pytest.raises(IllegalWriteMode):
        _run([11101, 1, 1, 5, 99])
    with pytest.raises(IllegalWriteMode):
        _run([103, 5, 99], inputs=[1])


def test_out_of_bounds_addresses():
    with pytest.raises(AddressOutOfBounds):
        _run([1, -1, 0, 0, 99])
    with pytest.raises(AddressOutOfBounds):
        _run([1101, 1, 1, 100, 99], config=MachineConfig(capacity=16))
    with pytest.raises(AddressOutOfBounds):
        _run([1105, 1, -7])


def test_fault_halts_the_machine():
    m = Machine(SMALL)
    m.load([1101, 1, 1, 5, 42])
    with pytest.raises(InvalidOpcode):
        m.run()
    assert m.state.value == S_HALTED
    with pytest.raises(MachineHalted):
        m.run()

    m.load([11101, 1, 1, 5, 99])
    with pytest.raises(IllegalWriteMode):
        m.step()
    assert m.halted


def test_negative_jump_leaves_no_pending_input():
    m = Machine(MachineConfig(capacity=64))
    m.load([1105, 1, -7])
    m.step()
    assert m.ready
    assert m.ip.value >= m.tape.capacity
    assert not m.waiting_for_input
    with pytest.raises(AddressOutOfBounds):
        m.step()
    assert m.halted


def test_rejected_image_leaves_machine_untouched():
    m = Machine(MachineConfig(capacity=8))
    m.load([3, 6, 99])
    m.inputs.push(11)
    with pytest.raises(AddressOutOfBounds):
        m.load(range(9))
    with pytest.raises(ValueError):
        m.load([104, 2 ** 63, 99])
    assert m.tape.snapshot(0, 3) == [3, 6, 99]
    assert list(m.inputs) == [11]
    assert m.run() == S_HALTED
    assert m.peek(6) == 11


def test_cycle_limit():
    with pytest.raises(CycleLimitExceeded):
        _run([1105, 1, 0], config=MachineConfig(capacity=16, max_cycles=100))


def test_host_execute_and_ascii():
    host = IntcodeHost([3, 50, 4, 50, 104, 72, 104, 105, 104, 10,
                        104, 300, 99], SMALL)
    r = host.execute([1])
    assert r["ok"] and r["outputs"] == [1, 72, 105, 10, 300]

    host.load()
    host.send([33])
    host.run()
    text, other = host.recv_ascii()
    assert text == "!Hi\n"
    assert other == [300]


def test_host_send_line_and_patch():
    host = IntcodeHost([3, 20, 3, 21, 3, 22, 99], SMALL)
    host.send_line("ok")
    host.run()
    assert [host.peek(a) for a in (20, 21, 22)] == [ord("o"), ord("k"), 10]

    host.load()
    host.patch(1, 30)
    assert host.peek(1) == 30


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main():
    print("=" * 60)
    print("Intcode Machine: Verification Suite")
    print("=" * 60)
    sys.exit(pytest.main([__file__, "-q"]))


if __name__ == "__main__":
    main()
