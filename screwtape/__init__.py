from .brackets import JumpTable, bracket_map, resolve_brackets
from .errors import InvalidTapeInput, ScrewtapeError, StepLimitExceeded, UnmatchedBracket
from .interpreter import ExecutionState, ScrewtapeInterpreter
from .debugger import StepDebugger
from .tape import Tape


def execute(program: str) -> str:
    """Run ``program`` on a fresh interpreter and return its output."""
    return ScrewtapeInterpreter().execute(program)


__all__ = [
    "ExecutionState",
    "InvalidTapeInput",
    "JumpTable",
    "ScrewtapeError",
    "ScrewtapeInterpreter",
    "StepDebugger",
    "StepLimitExceeded",
    "Tape",
    "UnmatchedBracket",
    "bracket_map",
    "execute",
    "resolve_brackets",
]
