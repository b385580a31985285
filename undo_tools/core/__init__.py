"""Core types, configuration and errors for the undo system."""

from .config import UndoSettings
from .exceptions import (
    AlreadyUndoneError,
    ConflictError,
    HistoryNotSavedError,
    IntegrityError,
    InvalidOperationError,
    MissingBackupError,
    NotFoundError,
    OperationNotFoundError,
    SessionNotFoundError,
    UndoError,
    UndoIOError,
)
from .types import (
    EventType,
    OperationType,
    UndoEvent,
    UndoHistory,
    UndoOperation,
    UndoSession,
)

__all__ = [
    "UndoSettings",
    "AlreadyUndoneError",
    "ConflictError",
    "HistoryNotSavedError",
    "IntegrityError",
    "InvalidOperationError",
    "MissingBackupError",
    "NotFoundError",
    "OperationNotFoundError",
    "SessionNotFoundError",
    "UndoError",
    "UndoIOError",
    "EventType",
    "OperationType",
    "UndoEvent",
    "UndoHistory",
    "UndoOperation",
    "UndoSession",
]
