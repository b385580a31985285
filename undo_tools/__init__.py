"""
Undo Tools - recovery log for destructive file operations.

Tracks file mutations before they happen so they can be reversed later,
grouped into sessions and persisted across restarts.
"""

__version__ = "1.0.0"

from .core.config import UndoSettings
from .core.types import EventType, OperationType, UndoEvent, UndoOperation, UndoSession
from .undo.manager import UndoManager

__all__ = [
    "__version__",
    "EventType",
    "OperationType",
    "UndoEvent",
    "UndoManager",
    "UndoOperation",
    "UndoSession",
    "UndoSettings",
]
