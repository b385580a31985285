"""
Undo module for reversible file operations.

This module records destructive file operations before they happen, keeps
backups of the content they would destroy, and reverses them on request,
with checksum verification, session grouping and retention of old history.
"""

from .backup import BackupStore
from .events import EventNotifier
from .executor import UndoExecutor
from .history import HistoryStore
from .manager import UndoManager
from .operations import TrackedFileOperations
from .retention import RetentionSweeper

__all__ = [
    "BackupStore",
    "EventNotifier",
    "UndoExecutor",
    "HistoryStore",
    "UndoManager",
    "TrackedFileOperations",
    "RetentionSweeper",
]
