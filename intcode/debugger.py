"""
Textual TUI debugger for the Intcode machine.

Cycle-stepping debugger that loads a program, runs it on one machine,
and displays registers, disassembly, tape and queues at every step.

Usage:
    python -m intcode.debugger program.txt
    python -m intcode.debugger program.txt -i 5 -i 7
    python -m intcode.debugger --run program.txt
"""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import ScrollableContainer
from textual.widgets import Footer, Input, RichLog, Static

from .disasm import format_instruction
from .errors import IntcodeError
from .host import IntcodeHost
from .machine import Machine

DISASM_BEFORE = 4
DISASM_LINES = 18
TAPE_ROWS = 12
TAPE_COLS = 8


def _esc(text: str) -> str:
    """Escape Rich markup characters in text."""
    return text.replace("[", "\\[")


# ---------------------------------------------------------------------------
# Rendering helpers (plain text, no app required)
# ---------------------------------------------------------------------------

def render_disassembly(m: Machine, breakpoints: set[int] | frozenset = frozenset(),
                       lines: int = DISASM_LINES) -> list[str]:
    """Linear sweep starting a few cells before ip."""
    ip = m.ip.value
    addr = max(0, ip - DISASM_BEFORE)
    out = []
    while len(out) < lines and addr < m.tape.capacity:
        try:
            text, size = format_instruction(m.tape.read, addr)
        except IntcodeError:
            break
        # Resync on ip if the sweep stepped over it
        if addr < ip < addr + size:
            text, size = f"DATA {m.tape.read(addr)}", 1
        prefix = "●" if addr in breakpoints else " "
        marker = "▸" if addr == ip else " "
        out.append(f"{prefix}{marker} {addr:6d}│ {text}")
        addr += size
    return out


def render_tape(m: Machine, start: int, rows: int = TAPE_ROWS,
                cols: int = TAPE_COLS) -> list[str]:
    start = max(0, start - start % cols)
    out = []
    for r in range(rows):
        row_addr = start + r * cols
        if row_addr >= m.tape.capacity:
            break
        cells = m.tape.snapshot(row_addr, row_addr + cols)
        out.append(f"{row_addr:6d}: " + " ".join(f"{v:>8d}" for v in cells))
    return out


def render_state(m: Machine) -> str:
    s = m.stats()
    waiting = "  (waiting for input)" if m.waiting_for_input else ""
    return (
        f"State: {s['state']}{waiting}    Cycle: {s['cycles']}\n"
        f"IP: {s['ip']}   Base: {s['base']}\n"
        f"Tape: {s['reads']}R/{s['writes']}W   Jumps: {s['jumps']}\n"
        f"IO: {s['inputs']} in / {s['outputs']} out"
    )


def render_queues(m: Machine, limit: int = 16) -> str:
    def fmt(values: list[int]) -> str:
        if not values:
            return "(empty)"
        shown = " ".join(str(v) for v in values[:limit])
        return shown + (" ..." if len(values) > limit else "")

    return (f"IN:  {fmt(list(m.inputs))}\n"
            f"OUT: {fmt(list(m.outputs))}")


# ---------------------------------------------------------------------------
# CSS
# ---------------------------------------------------------------------------

DEBUGGER_CSS = """
Screen {
    layout: grid;
    grid-size: 2 4;
    grid-columns: 1fr 1fr;
    grid-rows: 1fr 1fr auto auto;
}

.panel {
    border: solid $accent;
    border-title-align: left;
    overflow-y: auto;
    height: 100%;
}

#disasm-panel { row-span: 2; }

#input-box {
    column-span: 2;
}

Footer {
    column-span: 2;
}
"""


# ---------------------------------------------------------------------------
# Panel widgets
# ---------------------------------------------------------------------------

class DisasmPanel(ScrollableContainer):
    BORDER_TITLE = "Disassembly"

    def compose(self) -> ComposeResult:
        yield Static("", id="disasm-content")


class StatePanel(ScrollableContainer):
    """Machine state: registers, counters."""
    BORDER_TITLE = "Machine State"

    def compose(self) -> ComposeResult:
        yield Static("", id="state-content")


class TapePanel(ScrollableContainer):
    BORDER_TITLE = "Tape"

    def compose(self) -> ComposeResult:
        yield Static("", id="tape-content")


class IOPanel(ScrollableContainer):
    BORDER_TITLE = "IO"

    def compose(self) -> ComposeResult:
        yield Static("", id="io-content")
        yield RichLog(id="output-log", markup=False, wrap=True)


# ---------------------------------------------------------------------------
# Main debugger app
# ---------------------------------------------------------------------------

class IntcodeDebugger(App):
    """Textual TUI debugger for the Intcode machine."""

    CSS = DEBUGGER_CSS
    TITLE = "Intcode Debugger"

    BINDINGS = [
        Binding("s", "step_1", "Step"),
        Binding("n", "step_10", "x10"),
        Binding("f", "step_100", "x100"),
        Binding("r", "run_to_stop", "Run"),
        Binding("b", "toggle_breakpoint", "Break"),
        Binding("l", "reload", "Reload"),
        Binding("q", "quit", "Quit"),
    ]

    def __init__(self, host: IntcodeHost, auto_run: bool = False):
        super().__init__()
        self.host = host
        self.machine = host.machine
        self.auto_run = auto_run
        self.breakpoints: set[int] = set()
        self.output_log: list[int] = []
        self._logged = 0

    def compose(self) -> ComposeResult:
        yield DisasmPanel(id="disasm-panel", classes="panel")
        yield StatePanel(id="state-panel", classes="panel")
        yield TapePanel(id="tape-panel", classes="panel")
        yield IOPanel(id="io-panel", classes="panel")
        yield Input(placeholder="input value(s), comma separated", id="input-box")
        yield Footer()

    def on_mount(self) -> None:
        self.refresh_panels()
        if self.auto_run:
            self.action_run_to_stop()

    # -------------------------------------------------------------------
    # Panel refresh
    # -------------------------------------------------------------------

    def refresh_panels(self) -> None:
        m = self.machine
        self.query_one("#disasm-content", Static).update(
            _esc("\n".join(render_disassembly(m, self.breakpoints))))
        self.query_one("#state-content", Static).update(_esc(render_state(m)))
        self.query_one("#tape-content", Static).update(
            _esc("\n".join(render_tape(m, m.ip.value))))
        self.query_one("#io-content", Static).update(_esc(render_queues(m)))
        log = self.query_one("#output-log", RichLog)
        while self._logged < len(self.output_log):
            log.write(f"OUTPUT > {self.output_log[self._logged]}")
            self._logged += 1

    def _collect_output(self) -> None:
        self.output_log.extend(self.machine.outputs.drain())

    # -------------------------------------------------------------------
    # Actions
    # -------------------------------------------------------------------

    def _report_error(self, err: Exception) -> None:
        self.query_one("#output-log", RichLog).write(f"[ERROR] {err}")
        self.refresh_panels()

    def _do_steps(self, count: int) -> None:
        m = self.machine
        try:
            for _ in range(count):
                if m.halted or m.waiting_for_input:
                    break
                m.step()
        except IntcodeError as e:
            self._report_error(e)
            return
        self._collect_output()
        self.refresh_panels()

    def action_step_1(self) -> None:
        self._do_steps(1)

    def action_step_10(self) -> None:
        self._do_steps(10)

    def action_step_100(self) -> None:
        self._do_steps(100)

    def action_toggle_breakpoint(self) -> None:
        ip = self.machine.ip.value
        if ip in self.breakpoints:
            self.breakpoints.discard(ip)
        else:
            self.breakpoints.add(ip)
        self.refresh_panels()

    def action_reload(self) -> None:
        self.host.load()
        self.output_log.clear()
        self._logged = 0
        self.query_one("#output-log", RichLog).clear()
        self.refresh_panels()

    @work(thread=True, exclusive=True)
    def action_run_to_stop(self) -> None:
        """Run in a background thread until breakpoint, suspension or halt."""
        m = self.machine
        try:
            cycle = 0
            while not m.halted and not m.waiting_for_input:
                m.step()
                cycle += 1
                if m.ip.value in self.breakpoints:
                    break
                if cycle % 500 == 0:
                    self.call_from_thread(self._collect_output)
                    self.call_from_thread(self.refresh_panels)
        except IntcodeError as e:
            self.call_from_thread(self._report_error, e)
            return
        self.call_from_thread(self._collect_output)
        self.call_from_thread(self.refresh_panels)

    def on_input_submitted(self, event: Input.Submitted) -> None:
        text = event.value.strip()
        event.input.value = ""
        if not text:
            return
        try:
            values = [int(tok) for tok in text.split(",")]
        except ValueError:
            self._report_error(ValueError(f"not a list of integers: {text!r}"))
            return
        self.host.send(values)
        self.refresh_panels()


# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

def main():
    parser = argparse.ArgumentParser(
        description="Intcode TUI debugger",
        prog="python -m intcode.debugger",
    )
    parser.add_argument("file", help="Path to Intcode program file")
    parser.add_argument("-i", "--input", type=int, action="append", default=[],
                        help="Queue an input value (repeatable)")
    parser.add_argument("--run", action="store_true",
                        help="Run until the first stop immediately")
    args = parser.parse_args()

    path = Path(args.file)
    if not path.exists():
        print(f"Error: File not found: {path}", file=sys.stderr)
        sys.exit(1)
    try:
        host = IntcodeHost.from_file(path)
    except IntcodeError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    host.send(args.input)

    app = IntcodeDebugger(host, auto_run=args.run)
    app.run()


if __name__ == "__main__":
    main()
