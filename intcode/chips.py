"""
Chip primitives for the Intcode machine.

Models the storage components: Tape (main memory), Register, FIFO.
"""

from __future__ import annotations

import collections
from typing import Iterable

import numpy as np

from .errors import AddressOutOfBounds

WORD_BITS = 64
WORD_MASK = (1 << WORD_BITS) - 1
WORD_SIGN = 1 << (WORD_BITS - 1)
WORD_MIN = -WORD_SIGN
WORD_MAX = WORD_SIGN - 1


def to_word(val: int) -> int:
    """Wrap an arbitrary Python int to a signed 64-bit word."""
    return ((val + WORD_SIGN) & WORD_MASK) - WORD_SIGN


class Tape:
    """Dense, zero-initialised word memory of fixed capacity.

    Backed by a numpy int64 array. Tracks a high-water mark of written
    cells so that clear() only has to zero the prefix that was touched.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError(f"tape capacity must be positive, got {capacity}")
        self.capacity = capacity
        self.data = np.zeros(capacity, dtype=np.int64)
        self._dirty = 0

    def _check(self, addr: int):
        if addr < 0 or addr >= self.capacity:
            raise AddressOutOfBounds(addr, self.capacity)

    def read(self, addr: int) -> int:
        self._check(addr)
        return int(self.data[addr])

    def write(self, addr: int, val: int):
        self._check(addr)
        self.data[addr] = to_word(val)
        if addr >= self._dirty:
            self._dirty = addr + 1

    def clear(self):
        self.data[:self._dirty] = 0
        self._dirty = 0

    def load_image(self, image: Iterable[int]):
        """Zero the tape, then copy a program image in from address 0."""
        words = list(image)
        if len(words) > self.capacity:
            raise AddressOutOfBounds(len(words) - 1, self.capacity)
        for addr, w in enumerate(words):
            if not WORD_MIN <= w <= WORD_MAX:
                raise ValueError(f"word {w} at address {addr} does not fit in 64 bits")
        self.clear()
        if words:
            self.data[:len(words)] = words
        self._dirty = len(words)

    def snapshot(self, start: int = 0, stop: int | None = None) -> list[int]:
        stop = self._dirty if stop is None else min(stop, self.capacity)
        start = max(0, start)
        return [int(v) for v in self.data[start:stop]]

    def __len__(self) -> int:
        return self.capacity


class Register:
    """N-bit register. Signed registers hold two's-complement values."""

    def __init__(self, width: int, signed: bool = False):
        self.width = width
        self.signed = signed
        self.value = 0
        self._mask = (1 << width) - 1
        self._sign = 1 << (width - 1)

    def load(self, val: int):
        val &= self._mask
        if self.signed and val & self._sign:
            val -= 1 << self.width
        self.value = val


class FIFO:
    """Unbounded word queue. Values leave in the order they were pushed."""

    def __init__(self):
        self.buffer: collections.deque[int] = collections.deque()

    def push(self, word: int):
        self.buffer.append(to_word(word))

    def extend(self, words: Iterable[int]):
        for w in words:
            self.push(w)

    def pop(self) -> int | None:
        return self.buffer.popleft() if self.buffer else None

    def drain(self) -> list[int]:
        out = list(self.buffer)
        self.buffer.clear()
        return out

    def clear(self):
        self.buffer.clear()

    def ready(self) -> bool:
        return len(self.buffer) > 0

    def __len__(self) -> int:
        return len(self.buffer)

    def __iter__(self):
        return iter(self.buffer)
