from __future__ import annotations

import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass

from screwtape.debugger import StepDebugger

logger = logging.getLogger(__name__)


@dataclass
class DebuggerEntry:
    debugger_id: str
    debugger: StepDebugger
    total_steps: int
    total_steps_capped: bool


class DebuggerRegistry:
    """Holds live debuggers, evicting the least recently used past ``capacity``."""

    def __init__(self, capacity: int = 64) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        self.capacity = capacity
        self._entries: OrderedDict[str, DebuggerEntry] = OrderedDict()
        self._lock = threading.Lock()

    def open(
        self,
        debugger: StepDebugger,
        *,
        total_steps: int,
        total_steps_capped: bool,
    ) -> DebuggerEntry:
        entry = DebuggerEntry(
            debugger_id=uuid.uuid4().hex,
            debugger=debugger,
            total_steps=total_steps,
            total_steps_capped=total_steps_capped,
        )
        with self._lock:
            self._entries[entry.debugger_id] = entry
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.info("evicted idle debugger %s", evicted)
        return entry

    def lookup(self, debugger_id: str) -> DebuggerEntry:
        with self._lock:
            if debugger_id not in self._entries:
                raise KeyError(debugger_id)
            self._entries.move_to_end(debugger_id)
            return self._entries[debugger_id]

    def close(self, debugger_id: str) -> bool:
        with self._lock:
            return self._entries.pop(debugger_id, None) is not None

    def __contains__(self, debugger_id: object) -> bool:
        with self._lock:
            return debugger_id in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


__all__ = ["DebuggerEntry", "DebuggerRegistry"]
