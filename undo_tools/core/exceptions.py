"""
Exceptions raised by the undo engine.

Every failure path surfaces one of these to the caller; nothing in the
engine retries or exits the process.
"""


class UndoError(Exception):
    """Base class for undo engine errors."""

    pass


class UndoIOError(UndoError, OSError):
    """Raised when a file cannot be read, written or stat'd."""

    pass


class HistoryNotSavedError(UndoIOError):
    """Raised when an undo took effect on disk but the history could not be saved."""

    pass


class MissingBackupError(UndoError):
    """Raised when a restore needs a backup that was never made or is gone."""

    pass


class ConflictError(UndoError):
    """Raised when a move/rename cannot be reversed because of the paths on disk."""

    pass


class NotFoundError(UndoError, KeyError):
    """Raised when an operation or session id is unknown."""

    def __str__(self) -> str:
        # KeyError quotes its argument; keep plain messages
        return str(self.args[0]) if self.args else ""


class OperationNotFoundError(NotFoundError):
    """Raised when an operation id is unknown."""

    pass


class SessionNotFoundError(NotFoundError):
    """Raised when a session id is unknown."""

    pass


class AlreadyUndoneError(UndoError):
    """Raised when undoing an operation or session a second time."""

    pass


class IntegrityError(UndoError):
    """Raised when a backup no longer matches its recorded checksum."""

    pass


class InvalidOperationError(UndoError, ValueError):
    """Raised when a track request is malformed (e.g. a move without a target)."""

    pass
