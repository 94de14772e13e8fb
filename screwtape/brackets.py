from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping

from .errors import UnmatchedBracket


@dataclass(frozen=True)
class JumpTable:
    """Matching bracket positions of one program, in both directions."""

    forward: Mapping[int, int] = field(default_factory=dict)
    backward: Mapping[int, int] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "forward", MappingProxyType(dict(self.forward)))
        object.__setattr__(self, "backward", MappingProxyType(dict(self.backward)))

    def __len__(self) -> int:
        return len(self.forward)

    def jump(self, index: int) -> int:
        if index in self.backward:
            return self.backward[index]
        return self.forward[index]

    def as_dict(self) -> Dict[int, int]:
        combined = dict(self.forward)
        combined.update(self.backward)
        return combined


def resolve_brackets(program: str) -> JumpTable:
    """Pair every ``[`` with its ``]`` in a single left-to-right pass.

    The whole program is resolved before anything runs, so a forward jump
    never depends on a loop body having executed. Raises ``UnmatchedBracket``
    on a ``]`` with no pending ``[`` or on ``[`` left open at the end (the
    innermost one is reported).
    """
    forward: Dict[int, int] = {}
    backward: Dict[int, int] = {}
    stack: List[int] = []
    for index, char in enumerate(program):
        if char == "[":
            stack.append(index)
        elif char == "]":
            if not stack:
                raise UnmatchedBracket(index, "close")
            start = stack.pop()
            forward[start] = index
            backward[index] = start
    if stack:
        raise UnmatchedBracket(stack.pop(), "open")
    return JumpTable(forward=forward, backward=backward)


def bracket_map(program: str) -> Dict[int, int]:
    """Map each ``]`` index to the index of its matching ``[``.

    >>> bracket_map("[+++][---]<<[+]")
    {4: 0, 9: 5, 14: 12}
    """
    return dict(resolve_brackets(program).backward)


__all__ = ["JumpTable", "bracket_map", "resolve_brackets"]
