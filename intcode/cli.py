"""
Command-line front end.

Usage:
    python -m intcode program.txt -i 1               # run, print outputs
    python -m intcode program.txt --interactive      # prompt for each input
    python -m intcode program.txt --ascii            # ASCII console session
    python -m intcode program.txt --amplify [--feedback]
    python -m intcode program.txt --network 50
    python -m intcode program.txt --noun-verb 19690720
    python -m intcode program.txt --disasm
    python -m intcode program.txt --debug            # TUI debugger
"""

from __future__ import annotations

import argparse
import logging
import sys

from .errors import IntcodeError
from .host import IntcodeHost
from .loader import load_program_file
from .machine import INPUT_INTERACTIVE, MachineConfig
from .orchestrate import NETWORK_SIZE, run_network
from .search import find_noun_verb, max_thruster_signal


def read_stdin_word() -> int | None:
    """Prompt for one integer on stdin. Returns None at end of input."""
    while True:
        print("INPUT  < ", end="", flush=True)
        line = sys.stdin.readline()
        if not line:
            return None
        try:
            return int(line.strip())
        except ValueError:
            print(f"not an integer: {line.strip()!r}", file=sys.stderr)


def ascii_session(host: IntcodeHost):
    """Print text output; read a stdin line whenever the machine waits."""
    while True:
        host.run()
        text, other = host.recv_ascii()
        sys.stdout.write(text)
        for v in other:
            print(v)
        sys.stdout.flush()
        if host.machine.halted:
            return
        line = sys.stdin.readline()
        if not line:
            return
        host.send_line(line.rstrip("\n"))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Intcode virtual machine",
        prog="python -m intcode",
    )
    parser.add_argument("program", nargs="?", help="Path to Intcode program file")
    parser.add_argument("-i", "--input", type=int, action="append", default=[],
                        metavar="VALUE", help="Queue an input value (repeatable)")
    parser.add_argument("--interactive", action="store_true",
                        help="Read each input from stdin when the program asks")
    parser.add_argument("--ascii", action="store_true",
                        help="ASCII console: text out, stdin lines in")
    parser.add_argument("--amplify", action="store_true",
                        help="Search amplifier phase orderings for the best signal")
    parser.add_argument("--feedback", action="store_true",
                        help="With --amplify, use the feedback loop (phases 5-9)")
    parser.add_argument("--network", type=int, nargs="?", const=NETWORK_SIZE,
                        metavar="SIZE", help="Run a NAT-monitored packet network")
    parser.add_argument("--noun-verb", type=int, metavar="TARGET",
                        help="Find noun/verb (cells 1, 2) yielding TARGET in cell 0")
    parser.add_argument("--disasm", action="store_true",
                        help="Print a disassembly of the program and exit")
    parser.add_argument("--debug", action="store_true",
                        help="Open the TUI debugger")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="Trace every instruction to stderr")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.program:
        parser.print_usage()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        stream=sys.stderr,
    )

    try:
        program = load_program_file(args.program)

        if args.disasm:
            for addr, text in IntcodeHost(program).disassemble():
                print(f"{addr:6d}  {text}")
            return 0

        if args.debug:
            from .debugger import IntcodeDebugger
            host = IntcodeHost(program)
            host.send(args.input)
            IntcodeDebugger(host).run()
            return 0

        if args.amplify:
            signal, phases = max_thruster_signal(program, feedback=args.feedback)
            print(f"phases: {list(phases)}")
            print(f"output: {signal}")
            return 0

        if args.network is not None:
            result = run_network(program, args.network)
            print(f"first NAT y: {result.first_nat_y}")
            print(f"first repeat y: {result.repeated_y}")
            return 0

        if args.noun_verb is not None:
            noun, verb = find_noun_verb(program, args.noun_verb)
            print(f"noun: {noun}  verb: {verb}  answer: {100 * noun + verb}")
            return 0

        if args.interactive:
            config = MachineConfig(input_mode=INPUT_INTERACTIVE,
                                   input_provider=read_stdin_word)
        else:
            config = None
        host = IntcodeHost(program, config)

        if args.ascii:
            host.send(args.input)
            ascii_session(host)
            return 0

        result = host.execute(args.input)
        for v in result["outputs"]:
            print(f"OUTPUT > {v}")
        if args.verbose:
            print(host.machine.stats_summary(), file=sys.stderr)
        if not result["ok"]:
            print("machine suspended waiting for input", file=sys.stderr)
            return 1
        return 0

    except (IntcodeError, OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
