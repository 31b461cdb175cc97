"""Tests for the phase-ordering and noun/verb searches."""

from __future__ import annotations

import pytest

from intcode.errors import OrchestrationError
from intcode.machine import Machine, MachineConfig
from intcode.search import find_noun_verb, max_thruster_signal, run_patched
from intcode.test_orchestrate import FEEDBACK_EXAMPLE, PIPELINE_EXAMPLE

# cell 0 = noun + verb, both immediate
ADD_NOUN_VERB = [1101, 0, 0, 0, 99]


def test_max_thruster_signal_pipeline():
    assert max_thruster_signal(PIPELINE_EXAMPLE) == (43210, (4, 3, 2, 1, 0))


def test_max_thruster_signal_feedback():
    signal, order = max_thruster_signal(FEEDBACK_EXAMPLE, feedback=True)
    assert signal == 139629729
    assert order == (9, 8, 7, 6, 5)


def test_max_thruster_signal_custom_phases():
    assert max_thruster_signal(PIPELINE_EXAMPLE, phases=[1, 2]) == (21, (2, 1))


def test_max_thruster_signal_no_phases():
    with pytest.raises(ValueError):
        max_thruster_signal(PIPELINE_EXAMPLE, phases=[])


def test_run_patched():
    assert run_patched(ADD_NOUN_VERB, 3, 4) == 7
    # position mode: cells 0 and 4 hold 1 and 99
    assert run_patched([1, 0, 0, 0, 99], 4, 4) == 198


def test_run_patched_reuses_machine():
    m = Machine(MachineConfig(capacity=128))
    assert run_patched(ADD_NOUN_VERB, 1, 2, m) == 3
    assert run_patched(ADD_NOUN_VERB, 5, 6, m) == 11


def test_run_patched_requires_halt():
    with pytest.raises(OrchestrationError):
        run_patched([1101, 0, 0, 5, 3, 0, 99], 1, 1)


def test_find_noun_verb():
    assert find_noun_verb(ADD_NOUN_VERB, 150) == (51, 99)
    assert find_noun_verb(ADD_NOUN_VERB, 0) == (0, 0)


def test_find_noun_verb_not_found():
    with pytest.raises(OrchestrationError):
        find_noun_verb(ADD_NOUN_VERB, 10, limit=3)
