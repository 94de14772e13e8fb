from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Optional

from .brackets import JumpTable, bracket_map, resolve_brackets
from .errors import StepLimitExceeded
from .tape import Tape

logger = logging.getLogger(__name__)

# chr() accepts code points in [0, 0x110000).
CODE_POINT_LIMIT = 0x110000


@dataclass
class ExecutionState:
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: str
    code_length: int


def cell_to_char(value: int) -> str:
    return chr(value % CODE_POINT_LIMIT)


@dataclass
class ScrewtapeInterpreter:
    """Runs Screwtape programs against a tape that persists between calls.

    Cells are unbounded integers unless ``cell_min`` and ``cell_max`` are
    given, in which case arithmetic wraps into that range.
    """

    cell_min: Optional[int] = None
    cell_max: Optional[int] = None
    debug: bool = False

    tape: Tape = field(init=False, repr=False)
    output_buffer: List[str] = field(init=False, repr=False)
    steps_taken: int = field(init=False, repr=False, default=0)

    def __post_init__(self) -> None:
        self.reset()

    def reset(self) -> None:
        self.tape = Tape(cell_min=self.cell_min, cell_max=self.cell_max)
        self.output_buffer = []
        self.steps_taken = 0

    @property
    def pointer(self) -> int:
        return self.tape.position

    def execute(self, program: str, max_steps: Optional[int] = None) -> str:
        jump_table = resolve_brackets(program)
        self.output_buffer = []
        self.steps_taken = 0
        pc = 0
        code_length = len(program)
        while pc < code_length:
            pc = self._advance(program, pc, jump_table, max_steps)
        return "".join(self.output_buffer)

    run = execute

    def step(
        self,
        program: str,
        max_steps: Optional[int] = None,
        tape_window: int = 10,
    ) -> Iterator[ExecutionState]:
        # Resolve before returning the generator so bracket errors surface
        # from this call, ahead of any instruction.
        jump_table = resolve_brackets(program)
        self.output_buffer = []
        self.steps_taken = 0
        return self._steps(program, jump_table, max_steps, tape_window)

    def _steps(
        self,
        program: str,
        jump_table: JumpTable,
        max_steps: Optional[int],
        tape_window: int,
    ) -> Iterator[ExecutionState]:
        pc = 0
        code_length = len(program)

        while pc < code_length:
            command = program[pc]
            pc = self._advance(program, pc, jump_table, max_steps)
            yield self.snapshot(pc, command, self.steps_taken, code_length, tape_window)

        yield self.snapshot(pc, None, self.steps_taken, code_length, tape_window)

    def _advance(
        self,
        program: str,
        pc: int,
        jump_table: JumpTable,
        max_steps: Optional[int],
    ) -> int:
        if max_steps is not None and self.steps_taken >= max_steps:
            raise StepLimitExceeded(
                "Screwtape program exceeded allowed step count of {}".format(max_steps)
            )
        command = program[pc]
        new_pc = self._execute_instruction(command, pc, jump_table)
        self.steps_taken += 1
        if self.debug:
            logger.debug(
                "step=%d command=%r pc=%d pointer=%d value=%d",
                self.steps_taken,
                command,
                new_pc,
                self.tape.position,
                self.tape.current_value(),
            )
        return new_pc

    def _execute_instruction(self, command: str, pc: int, jump_table: JumpTable) -> int:
        new_pc = pc + 1
        if command == ">":
            self.tape.move_right()
        elif command == "<":
            self.tape.move_left()
        elif command == "+":
            self.tape.increment()
        elif command == "-":
            self.tape.decrement()
        elif command == ".":
            self.output_buffer.append(cell_to_char(self.tape.current_value()))
        elif command == "]":
            # Loops are tested at the bottom; "[" itself does nothing.
            if self.tape.current_value() != 0:
                new_pc = jump_table.backward[pc]
        return new_pc

    def snapshot(
        self,
        pc: int,
        command: Optional[str],
        step: int,
        code_length: int,
        tape_window: int,
    ) -> ExecutionState:
        start = max(self.tape.leftmost, self.tape.position - tape_window)
        end = self.tape.position + tape_window + 1
        return ExecutionState(
            step=step,
            pc=pc,
            command=command,
            pointer=self.tape.position,
            tape_start=start,
            tape=self.tape.window(start, end),
            output="".join(self.output_buffer),
            code_length=code_length,
        )

    def tape_data(self) -> List[int]:
        return self.tape.to_list()

    def pointer_value(self) -> int:
        return self.tape.current_value()

    def set_tape(self, values: Optional[Iterable[int]]) -> None:
        self.tape.replace_all(values)

    def move_pointer_to_head(self) -> None:
        self.tape.move_to_head()

    def move_pointer_to_tail(self) -> None:
        self.tape.move_to_tail()

    def output(self) -> str:
        """Character for the value under the cursor."""
        return cell_to_char(self.tape.current_value())

    @staticmethod
    def bracket_map(program: str) -> Dict[int, int]:
        return bracket_map(program)


__all__ = [
    "ExecutionState",
    "ScrewtapeInterpreter",
    "StepLimitExceeded",
    "cell_to_char",
]
