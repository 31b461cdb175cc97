"""
Orchestrators: cooperative protocols for running several machines.

  - AmplifierChain.pipeline: single pass, each stage runs to halt.
  - AmplifierChain.feedback: break-on-output ring until the last stage halts.
  - Network: address-routed packet network with a NAT idle monitor.

Everything is single threaded. Machines are serviced in index order and
values only move between queues in between run() calls.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Sequence

from .errors import FeedbackStalled, OrchestrationError
from .machine import (
    INPUT_POLL, INPUT_QUEUE, OUTPUT_BREAK, OUTPUT_FREE_RUN, TAPE_CAPACITY,
    Machine, MachineConfig,
)

log = logging.getLogger(__name__)

NETWORK_SIZE = 50
NAT_ADDRESS = 255
PACKET_WORDS = 3   # destination, x, y


# ---------------------------------------------------------------------------
# Amplifier chains
# ---------------------------------------------------------------------------

class AmplifierChain:
    """A fixed row of machines running the same program.

    Machines are built once and re-loaded for every pipeline()/feedback()
    call, so phase searches don't reallocate tapes.
    """

    def __init__(self, program: Sequence[int], size: int = 5,
                 capacity: int = TAPE_CAPACITY):
        self.program = tuple(program)
        self.pipeline_machines = [
            Machine(MachineConfig(INPUT_QUEUE, OUTPUT_FREE_RUN, capacity))
            for _ in range(size)
        ]
        self.feedback_machines = [
            Machine(MachineConfig(INPUT_QUEUE, OUTPUT_BREAK, capacity))
            for _ in range(size)
        ]

    @property
    def size(self) -> int:
        return len(self.pipeline_machines)

    def _check_phases(self, phases: Sequence[int]):
        if len(phases) != self.size:
            raise ValueError(
                f"expected {self.size} phase settings, got {len(phases)}")

    def pipeline(self, phases: Sequence[int], seed: int = 0) -> int:
        """Run every stage to halt, feeding each output to the next stage."""
        self._check_phases(phases)
        for m, phase in zip(self.pipeline_machines, phases):
            m.load(self.program)
            m.inputs.push(phase)

        signal = seed
        for i, m in enumerate(self.pipeline_machines):
            m.inputs.push(signal)
            m.run()
            if not m.halted:
                raise OrchestrationError(
                    f"pipeline stage {i} suspended at ip={m.ip.value} "
                    f"instead of halting")
            out = m.outputs.pop()
            if out is None:
                raise OrchestrationError(f"pipeline stage {i} produced no output")
            signal = out
        log.debug("pipeline %s -> %d", tuple(phases), signal)
        return signal

    def feedback(self, phases: Sequence[int], seed: int = 0) -> int:
        """Cycle values around the ring until the last stage halts.

        Returns the last value the final stage emitted before halting.
        """
        self._check_phases(phases)
        ring = self.feedback_machines
        for m, phase in zip(ring, phases):
            m.load(self.program)
            m.inputs.push(phase)

        carry: int | None = seed
        result: int | None = None
        rounds = 0
        while not ring[-1].halted:
            rounds += 1
            for i, m in enumerate(ring):
                if carry is not None:
                    m.inputs.push(carry)
                carry = None
                if m.halted:
                    continue
                m.run()
                carry = m.outputs.pop()
                if carry is None and m.waiting_for_input:
                    raise FeedbackStalled(
                        f"stage {i} is waiting for input in round {rounds}")
                if i == len(ring) - 1 and carry is not None:
                    result = carry

        if result is None:
            raise OrchestrationError("last stage halted without any output")
        log.debug("feedback %s -> %d after %d rounds", tuple(phases), result, rounds)
        return result


def run_pipeline(program: Sequence[int], phases: Sequence[int],
                 seed: int = 0) -> int:
    return AmplifierChain(program, len(phases)).pipeline(phases, seed)


def run_feedback_loop(program: Sequence[int], phases: Sequence[int],
                      seed: int = 0) -> int:
    return AmplifierChain(program, len(phases)).feedback(phases, seed)


# ---------------------------------------------------------------------------
# Packet network
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Packet:
    dest: int
    x: int
    y: int


@dataclass
class Nic:
    """One network interface: a machine plus its output framing counter."""
    address: int
    machine: Machine
    framed: int = 0   # words emitted toward the current packet


@dataclass
class NatSink:
    """Holds the latest packet sent to the NAT address."""
    packet: Packet | None = None
    first: Packet | None = None
    last_delivered_y: int | None = None
    received: int = 0
    delivered: int = 0


@dataclass
class NetworkResult:
    first_nat_y: int | None
    repeated_y: int
    steps: int
    nat_deliveries: int = 0
    packets: int = 0


class Network:
    """Broadcast network of polling machines with a NAT idle monitor.

    Each machine receives its address as its first input. Machines poll
    their input (an empty queue reads -1) and emit packets as
    (destination, x, y) triples.
    """

    def __init__(self, program: Sequence[int], size: int = NETWORK_SIZE,
                 nat_address: int = NAT_ADDRESS,
                 capacity: int = TAPE_CAPACITY):
        self.program = tuple(program)
        self.size = size
        self.nat_address = nat_address
        if 0 <= self.nat_address < self.size:
            raise ValueError(
                f"NAT address {self.nat_address} collides with a machine address")
        config = MachineConfig(INPUT_POLL, OUTPUT_BREAK, capacity)
        self.nics = [Nic(addr, Machine(config)) for addr in range(self.size)]
        self.boot()

    def boot(self):
        """Load every machine and hand it its address."""
        for nic in self.nics:
            nic.machine.load(self.program)
            nic.machine.inputs.push(nic.address)
            nic.framed = 0
        self.nat = NatSink()
        self.steps = 0
        self.packets = 0

    def _service(self, nic: Nic) -> list[Packet]:
        """Run one machine until it polls, halts, or completes a packet."""
        m = nic.machine
        while not m.halted:
            before = len(m.outputs)
            m.run()
            emitted = len(m.outputs) - before
            if not emitted:
                break
            nic.framed += emitted
            if nic.framed >= PACKET_WORDS:
                nic.framed -= PACKET_WORDS
                break

        packets = []
        while len(m.outputs) >= PACKET_WORDS:
            dest, x, y = m.outputs.pop(), m.outputs.pop(), m.outputs.pop()
            packets.append(Packet(dest, x, y))
        return packets

    def _route(self, source: int, packet: Packet):
        if packet.dest == self.nat_address:
            log.info("NAT receives from %d: x=%d y=%d", source, packet.x, packet.y)
            self.nat.packet = packet
            self.nat.received += 1
            if self.nat.first is None:
                self.nat.first = packet
            return
        if not 0 <= packet.dest < self.size:
            raise OrchestrationError(
                f"machine {source} sent a packet to unknown address {packet.dest}")
        inputs = self.nics[packet.dest].machine.inputs
        inputs.push(packet.x)
        inputs.push(packet.y)

    def step(self) -> int:
        """Service every machine once in address order. Returns packet count."""
        self.steps += 1
        sent = 0
        for nic in self.nics:
            for packet in self._service(nic):
                self._route(nic.address, packet)
                sent += 1
        self.packets += sent
        return sent

    def _resume_from_idle(self) -> int | None:
        """Deliver the NAT packet to machine 0.

        Returns y when it repeats the previous delivery's y, else None.
        """
        packet = self.nat.packet
        if packet is None:
            log.debug("network idle at step %d with nothing held by NAT", self.steps)
            return None
        log.info("IDLE: resuming machine 0 with x=%d y=%d", packet.x, packet.y)
        inputs = self.nics[0].machine.inputs
        inputs.push(packet.x)
        inputs.push(packet.y)
        self.nat.delivered += 1
        previous = self.nat.last_delivered_y
        self.nat.last_delivered_y = packet.y
        if previous is not None and previous == packet.y:
            return packet.y
        return None

    def run(self, max_steps: int | None = None) -> NetworkResult:
        """Step until two consecutive NAT deliveries carry the same y."""
        while True:
            if max_steps is not None and self.steps >= max_steps:
                raise OrchestrationError(
                    f"network did not settle within {max_steps} steps")
            if self.step() == 0:
                repeated = self._resume_from_idle()
                if repeated is not None:
                    first = self.nat.first
                    return NetworkResult(
                        first_nat_y=first.y if first is not None else None,
                        repeated_y=repeated,
                        steps=self.steps,
                        nat_deliveries=self.nat.delivered,
                        packets=self.packets,
                    )


def run_network(program: Sequence[int], size: int = NETWORK_SIZE,
                max_steps: int | None = None) -> NetworkResult:
    return Network(program, size).run(max_steps)
