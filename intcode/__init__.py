"""
Intcode virtual machine: integer-tape interpreter, program loader, and
multi-machine orchestration (pipeline, feedback loop, NAT network).
"""

from .errors import IntcodeError
from .host import IntcodeHost
from .loader import load_program_file, parse_program
from .machine import Machine, MachineConfig
from .orchestrate import AmplifierChain, Network, run_feedback_loop, run_pipeline

__all__ = [
    "AmplifierChain", "IntcodeError", "IntcodeHost", "Machine",
    "MachineConfig", "Network", "load_program_file", "parse_program",
    "run_feedback_loop", "run_pipeline",
]
