from __future__ import annotations

from typing import Iterable, List, Optional

from .errors import InvalidTapeInput


class Tape:
    """Integer tape that grows one cell at a time in either direction.

    Cells live in two arenas: ``_right`` holds positions ``0, 1, 2, ...`` and
    ``_left`` holds positions ``-1, -2, ...``. The cursor is an absolute
    position, so growth on either side is a plain ``append``.
    """

    def __init__(
        self,
        values: Optional[Iterable[int]] = None,
        *,
        cell_min: Optional[int] = None,
        cell_max: Optional[int] = None,
    ) -> None:
        if (cell_min is None) != (cell_max is None):
            raise ValueError("cell_min and cell_max must be set together")
        if cell_min is not None and cell_max is not None and cell_min >= cell_max:
            raise ValueError("cell_min must be smaller than cell_max")
        self.cell_min = cell_min
        self.cell_max = cell_max
        self._left: List[int] = []
        self._right: List[int] = [0]
        self.position = 0
        if values is not None:
            self.replace_all(values)

    @property
    def leftmost(self) -> int:
        return -len(self._left)

    @property
    def rightmost(self) -> int:
        return len(self._right) - 1

    def __len__(self) -> int:
        return len(self._left) + len(self._right)

    def __repr__(self) -> str:
        return f"Tape({self.to_list()!r}, position={self.position})"

    def _get(self, position: int) -> int:
        if position >= 0:
            return self._right[position]
        return self._left[-position - 1]

    def _set(self, position: int, value: int) -> None:
        if position >= 0:
            self._right[position] = value
        else:
            self._left[-position - 1] = value

    def _wrap(self, value: int) -> int:
        if self.cell_min is None or self.cell_max is None:
            return value
        span = self.cell_max - self.cell_min + 1
        return (value - self.cell_min) % span + self.cell_min

    def move_right(self) -> None:
        if self.position == self.rightmost:
            self._right.append(0)
        self.position += 1

    def move_left(self) -> None:
        if self.position == self.leftmost:
            self._left.append(0)
        self.position -= 1

    def increment(self) -> None:
        self._set(self.position, self._wrap(self._get(self.position) + 1))

    def decrement(self) -> None:
        self._set(self.position, self._wrap(self._get(self.position) - 1))

    def current_value(self) -> int:
        return self._get(self.position)

    def replace_all(self, values: Optional[Iterable[int]]) -> None:
        """Rebuild the tape from ``values`` with the cursor on the first one."""
        if values is None:
            raise InvalidTapeInput("Tape values cannot be None.")
        cells = list(values)
        for index, value in enumerate(cells):
            if isinstance(value, bool) or not isinstance(value, int):
                raise InvalidTapeInput(
                    f"Tape value at index {index} must be an int, got {value!r}."
                )
        if not cells:
            raise InvalidTapeInput("Tape values cannot be empty.")
        self._left = []
        self._right = [self._wrap(value) for value in cells]
        self.position = 0

    def to_list(self) -> List[int]:
        return self._left[::-1] + self._right

    def window(self, start: int, end: int) -> List[int]:
        start = max(start, self.leftmost)
        end = min(end, self.rightmost + 1)
        return [self._get(position) for position in range(start, end)]

    def move_to_head(self) -> None:
        self.position = self.leftmost

    def move_to_tail(self) -> None:
        self.position = self.rightmost


__all__ = ["Tape"]
