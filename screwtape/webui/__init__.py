from .app import create_app
from .registry import DebuggerEntry, DebuggerRegistry

__all__ = [
    "create_app",
    "DebuggerEntry",
    "DebuggerRegistry",
]
