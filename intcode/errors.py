"""
Exception hierarchy for the Intcode machine and its orchestrators.

Every fault is fatal for the run that raised it; nothing here is retried.
"""

from __future__ import annotations


class IntcodeError(Exception):
    """Base class for all Intcode faults."""


class ParseError(IntcodeError, ValueError):
    """Program text contains a token that is not a signed 64-bit integer."""

    def __init__(self, message: str, line: int | None = None,
                 column: int | None = None):
        if line is not None:
            message = f"{message} (line {line}, column {column})"
        super().__init__(message)
        self.line = line
        self.column = column


class InvalidOpcode(IntcodeError):
    def __init__(self, address: int, word: int):
        super().__init__(f"invalid opcode {word} at address {address}")
        self.address = address
        self.word = word


class InvalidMode(IntcodeError):
    def __init__(self, address: int, word: int, digit: int):
        super().__init__(
            f"invalid addressing mode {digit} in instruction {word} "
            f"at address {address}")
        self.address = address
        self.word = word
        self.digit = digit


class IllegalWriteMode(IntcodeError):
    """Immediate mode supplied for a write-target operand."""

    def __init__(self, address: int, word: int):
        super().__init__(
            f"immediate mode on write target in instruction {word} "
            f"at address {address}")
        self.address = address
        self.word = word


class AddressOutOfBounds(IntcodeError, IndexError):
    def __init__(self, address: int, capacity: int):
        super().__init__(
            f"address {address} outside tape of {capacity} cells")
        self.address = address
        self.capacity = capacity


class MachineHalted(IntcodeError):
    """run() or step() called on a machine that is not loaded or has halted."""


class CycleLimitExceeded(IntcodeError):
    pass


class OrchestrationError(IntcodeError):
    """A multi-machine protocol could not make progress."""


class FeedbackStalled(OrchestrationError):
    """A feedback-loop machine suspended waiting for input nobody supplied."""
