"""
Search loops that re-run one program many times with different inputs.

Each search reuses its machines; Machine.load fully resets them between
attempts.
"""

from __future__ import annotations

import itertools
import logging
from typing import Iterable, Sequence

from .errors import OrchestrationError
from .machine import Machine
from .orchestrate import AmplifierChain

log = logging.getLogger(__name__)

PIPELINE_PHASES = range(0, 5)
FEEDBACK_PHASES = range(5, 10)
NOUN_CELL = 1
VERB_CELL = 2
RESULT_CELL = 0


def max_thruster_signal(program: Sequence[int],
                        phases: Iterable[int] | None = None,
                        feedback: bool = False,
                        seed: int = 0) -> tuple[int, tuple[int, ...]]:
    """Try every ordering of the phase settings; return (best signal, phases)."""
    if phases is None:
        phases = FEEDBACK_PHASES if feedback else PIPELINE_PHASES
    phases = tuple(phases)
    if not phases:
        raise ValueError("no phase settings to search")
    chain = AmplifierChain(program, len(phases))
    run = chain.feedback if feedback else chain.pipeline

    best: tuple[int, tuple[int, ...]] | None = None
    for order in itertools.permutations(phases):
        signal = run(order, seed)
        if best is None or signal > best[0]:
            best = (signal, order)
    log.info("best %s signal %d with phases %s",
             "feedback" if feedback else "pipeline", best[0], best[1])
    return best


def run_patched(program: Sequence[int], noun: int, verb: int,
                machine: Machine | None = None) -> int:
    """Run with cells 1 and 2 overwritten; return cell 0 after halt."""
    m = machine or Machine()
    m.load(program)
    m.poke(NOUN_CELL, noun)
    m.poke(VERB_CELL, verb)
    m.run()
    if not m.halted:
        raise OrchestrationError(
            f"program suspended at ip={m.ip.value} instead of halting")
    return m.peek(RESULT_CELL)


def find_noun_verb(program: Sequence[int], target: int,
                   limit: int = 100) -> tuple[int, int]:
    """Find (noun, verb) in [0, limit) that makes the program leave target in cell 0."""
    machine = Machine()
    for noun in range(limit):
        for verb in range(limit):
            if run_patched(program, noun, verb, machine) == target:
                log.info("noun=%d verb=%d -> %d", noun, verb, target)
                return noun, verb
    raise OrchestrationError(f"no noun/verb pair below {limit} yields {target}")
