from __future__ import annotations

import argparse
import cmd
import logging
import sys
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Deque, List, Optional, Set, Tuple

from .brackets import JumpTable, resolve_brackets
from .errors import StepLimitExceeded, UnmatchedBracket
from .interpreter import ExecutionState, ScrewtapeInterpreter

_BLANK_WHITESPACE = str.maketrans("\t\r\n", "   ")


@dataclass
class StepDebugger:
    """Single-steps a Screwtape program with breakpoints on program positions.

    A breakpoint at ``pc`` stops execution whenever the instruction pointer
    lands on ``pc``. Because loops jump back to their opening bracket, a
    breakpoint on a ``[`` fires on loop entry and again on every repetition.
    """

    program: str
    max_steps: Optional[int] = None
    tape_window: int = 8
    trace_limit: int = 200
    cell_min: Optional[int] = None
    cell_max: Optional[int] = None
    debug: bool = False

    def __post_init__(self) -> None:
        self.jump_table: JumpTable = resolve_brackets(self.program)
        self.breakpoints: Set[int] = set()
        self.rewind()

    def rewind(self) -> None:
        self.interpreter = ScrewtapeInterpreter(
            cell_min=self.cell_min,
            cell_max=self.cell_max,
            debug=self.debug,
        )
        self._states = self.interpreter.step(
            self.program,
            max_steps=self.max_steps,
            tape_window=self.tape_window,
        )
        self.state: ExecutionState = self.interpreter.snapshot(
            0, None, 0, len(self.program), self.tape_window
        )
        self.trace: Deque[ExecutionState] = deque([self.state], maxlen=self.trace_limit)
        self.halted = not self.program
        self.stopped_at: Optional[int] = None

    def advance(self, count: int = 1) -> List[ExecutionState]:
        """Execute up to ``count`` instructions, stopping early on a breakpoint."""
        taken: List[ExecutionState] = []
        self.stopped_at = None
        while len(taken) < count and not self.halted:
            try:
                state = next(self._states)
            except StepLimitExceeded:
                self.halted = True
                raise
            self.state = state
            self.trace.append(state)
            taken.append(state)
            if state.pc >= len(self.program):
                self.halted = True
            elif state.pc in self.breakpoints:
                self.stopped_at = state.pc
                break
        return taken

    def resume(self, limit: Optional[int] = None) -> List[ExecutionState]:
        """Run until a breakpoint, the end of the program, or ``limit`` steps."""
        taken: List[ExecutionState] = []
        while not self.halted and (limit is None or len(taken) < limit):
            taken.extend(self.advance(1))
            if self.stopped_at is not None:
                break
        return taken

    def break_at(self, pc: int) -> None:
        if not 0 <= pc < len(self.program):
            raise ValueError(f"pc {pc} is outside the program (length {len(self.program)})")
        self.breakpoints.add(pc)

    def break_on_partner(self, index: int) -> int:
        """Set a breakpoint on the bracket matching the one at ``index``.

        For a ``]`` this is where each repetition of the loop resumes; for a
        ``[`` it is the loop's exit test.
        """
        if index in self.jump_table.forward:
            target = self.jump_table.forward[index]
        elif index in self.jump_table.backward:
            target = self.jump_table.backward[index]
        else:
            raise ValueError(f"no bracket at pc {index}")
        self.breakpoints.add(target)
        return target

    def clear(self, pc: Optional[int] = None) -> bool:
        if pc is None:
            self.breakpoints.clear()
            return True
        if pc not in self.breakpoints:
            return False
        self.breakpoints.discard(pc)
        return True

    def loop_pairs(self) -> List[Tuple[int, int]]:
        return sorted(self.jump_table.forward.items())


def render_tape(state: ExecutionState) -> str:
    """Cells labelled by absolute position; the cursor cell is wrapped in <>."""
    cells: List[str] = []
    for offset, value in enumerate(state.tape):
        position = state.tape_start + offset
        label = f"{position:+d}:{value}"
        cells.append(f"<{label}>" if position == state.pointer else label)
    return " ".join(cells)


def render_program(program: str, pc: int, jump_table: JumpTable, radius: int = 24) -> str:
    """Two lines: the source around ``pc`` and a marker row beneath it.

    ``^`` marks the instruction pointer and ``~`` the partner of the bracket
    under it. ``$`` marks the end of the program.
    """
    if not program:
        return "(empty program)"
    start = max(0, pc - radius)
    end = min(len(program), pc + radius + 1)
    source = program[start:end].translate(_BLANK_WHITESPACE)
    if end == len(program):
        source += "$"
    markers = [" "] * len(source)
    partner = jump_table.forward.get(pc, jump_table.backward.get(pc))
    if partner is not None and start <= partner < end:
        markers[partner - start] = "~"
    if pc - start < len(markers):
        markers[pc - start] = "^"
    return source + "\n" + "".join(markers).rstrip()


def render_state(state: ExecutionState, program: str, jump_table: JumpTable) -> str:
    last = "-" if state.command is None else repr(state.command)
    lines = [
        f"step {state.step}  pc {state.pc}/{state.code_length}  last {last}",
        f"tape  {render_tape(state)}",
    ]
    if state.output:
        lines.append(f"out   {state.output!r}")
    lines.append(render_program(program, state.pc, jump_table))
    return "\n".join(lines)


class DebuggerShell(cmd.Cmd):
    """Interactive front end for StepDebugger."""

    prompt = "(screwtape) "

    def __init__(self, debugger: StepDebugger, stdin=None, stdout=None) -> None:
        super().__init__(stdin=stdin, stdout=stdout)
        self.debugger = debugger
        if stdin is not None:
            self.use_rawinput = False

    def _say(self, text: str) -> None:
        self.stdout.write(text + "\n")

    def _int_arg(self, arg: str, default: Optional[int] = None) -> Optional[int]:
        arg = arg.strip()
        if not arg:
            if default is None:
                self._say("*** a number is required")
            return default
        try:
            return int(arg)
        except ValueError:
            self._say(f"*** not a number: {arg!r}")
            return None

    def _show(self) -> None:
        debugger = self.debugger
        self._say(render_state(debugger.state, debugger.program, debugger.jump_table))
        if debugger.stopped_at is not None:
            self._say(f"stopped at breakpoint {debugger.stopped_at}")
        elif debugger.halted:
            self._say("halted")

    def _run(self, action) -> None:
        try:
            action()
        except StepLimitExceeded as exc:
            self._say(f"*** {exc}")
        self._show()

    def preloop(self) -> None:
        self._show()

    def emptyline(self) -> bool:
        return False

    def do_step(self, arg: str) -> None:
        """step [N]: execute N instructions (default 1)."""
        count = self._int_arg(arg, default=1)
        if count is not None:
            self._run(lambda: self.debugger.advance(max(1, count)))

    def do_continue(self, arg: str) -> None:
        """continue [N]: run to the next breakpoint, the end, or N steps."""
        limit = None
        if arg.strip():
            limit = self._int_arg(arg)
            if limit is None:
                return
        self._run(lambda: self.debugger.resume(limit))

    def do_break(self, arg: str) -> None:
        """break PC: stop whenever the instruction pointer reaches PC."""
        pc = self._int_arg(arg)
        if pc is None:
            return
        try:
            self.debugger.break_at(pc)
        except ValueError as exc:
            self._say(f"*** {exc}")
            return
        self._say(f"breakpoint at {pc}")

    def do_partner(self, arg: str) -> None:
        """partner PC: break on the bracket that matches the one at PC."""
        pc = self._int_arg(arg)
        if pc is None:
            return
        try:
            target = self.debugger.break_on_partner(pc)
        except ValueError as exc:
            self._say(f"*** {exc}")
            return
        self._say(f"breakpoint at {target} (partner of {pc})")

    def do_clear(self, arg: str) -> None:
        """clear [PC]: remove one breakpoint, or all of them."""
        if not arg.strip():
            self.debugger.clear()
            self._say("all breakpoints cleared")
            return
        pc = self._int_arg(arg)
        if pc is not None and not self.debugger.clear(pc):
            self._say(f"*** no breakpoint at {pc}")

    def do_info(self, arg: str) -> None:
        """info: list loop pairs and breakpoints."""
        pairs = ", ".join(f"{o}-{c}" for o, c in self.debugger.loop_pairs()) or "none"
        points = ", ".join(map(str, sorted(self.debugger.breakpoints))) or "none"
        self._say(f"loops: {pairs}")
        self._say(f"breakpoints: {points}")

    def do_trace(self, arg: str) -> None:
        """trace [N]: show the last N recorded states (default 5)."""
        count = self._int_arg(arg, default=5)
        if count is None:
            return
        for state in list(self.debugger.trace)[-count:]:
            self._say(render_state(state, self.debugger.program, self.debugger.jump_table))

    def do_rewind(self, arg: str) -> None:
        """rewind: start the program again with a fresh tape; breakpoints stay."""
        self.debugger.rewind()
        self._show()

    def do_quit(self, arg: str) -> bool:
        """quit: leave the debugger."""
        return True

    def do_EOF(self, arg: str) -> bool:
        self._say("")
        return True


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Step through a Screwtape program")
    parser.add_argument("source", help="Path to a Screwtape program")
    parser.add_argument(
        "--max-steps",
        type=int,
        default=5_000_000,
        help="Abort after this many instructions (default: 5,000,000)",
    )
    parser.add_argument(
        "--tape-window",
        type=int,
        default=8,
        help="Cells shown on each side of the cursor (default: 8)",
    )
    parser.add_argument(
        "--wrap",
        action="store_true",
        help="Use 8-bit cells that wrap around at 0 and 255",
    )
    parser.add_argument("--verbose", action="store_true", help="Log every instruction")
    args = parser.parse_args(argv)

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(name)s: %(message)s")

    try:
        program = Path(args.source).read_text(encoding="utf-8")
    except OSError as exc:
        print(f"Cannot read {args.source}: {exc}", file=sys.stderr)
        return 1

    bounds = (0, 255) if args.wrap else (None, None)
    try:
        debugger = StepDebugger(
            program,
            max_steps=args.max_steps,
            tape_window=args.tape_window,
            cell_min=bounds[0],
            cell_max=bounds[1],
            debug=args.verbose,
        )
    except UnmatchedBracket as exc:
        print(f"Invalid program: {exc}", file=sys.stderr)
        return 1

    DebuggerShell(debugger).cmdloop()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
