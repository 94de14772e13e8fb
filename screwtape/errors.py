from __future__ import annotations


class ScrewtapeError(Exception):
    """Base class for every error raised by the interpreter."""


class UnmatchedBracket(ScrewtapeError, ValueError):
    """Raised when a program contains a ``[`` or ``]`` without a partner."""

    def __init__(self, index: int, kind: str) -> None:
        self.index = index
        self.kind = kind
        bracket = "[" if kind == "open" else "]"
        super().__init__(f"Unmatched '{bracket}' at position {index}")


class InvalidTapeInput(ScrewtapeError, ValueError):
    """Raised when a tape is built from an empty or missing sequence."""


class StepLimitExceeded(ScrewtapeError, RuntimeError):
    """Raised when execution exceeds the configured step budget."""


__all__ = [
    "InvalidTapeInput",
    "ScrewtapeError",
    "StepLimitExceeded",
    "UnmatchedBracket",
]
