"""
Reversal of tracked operations.

Maps each operation type to the filesystem action that undoes it.
"""

import logging
import os
import shutil
from pathlib import Path

from ..core.exceptions import (
    ConflictError,
    InvalidOperationError,
    MissingBackupError,
    UndoIOError,
)
from ..core.types import OperationType, UndoOperation
from .backup import BackupStore

logger = logging.getLogger(__name__)


class UndoExecutor:
    """
    Applies the reversal for a single operation record.

    | Tracked type  | Reversal                                  |
    |---------------|-------------------------------------------|
    | create        | delete original_path                      |
    | delete/update | restore backup to original_path           |
    | move/rename   | rename new_path back to original_path     |
    | copy          | delete new_path                           |

    The executor does not look at or change the undone flag; callers check
    and set it under the owning session's lock.
    """

    def __init__(self, backup_store: BackupStore):
        """
        Initialize undo executor.

        Args:
            backup_store: Store holding pre-operation backups
        """
        self.backup_store = backup_store

    def undo(self, operation: UndoOperation) -> None:
        """
        Reverse one operation on disk.

        Args:
            operation: Operation record to reverse

        Raises:
            UndoIOError: If a file to delete is already gone
            MissingBackupError: If a restore has no backup
            ConflictError: If a move/rename cannot be put back
            IntegrityError: If the backup fails checksum verification
        """
        handlers = {
            OperationType.CREATE: self._undo_create,
            OperationType.DELETE: self._undo_restore,
            OperationType.UPDATE: self._undo_restore,
            OperationType.MOVE: self._undo_move,
            OperationType.RENAME: self._undo_move,
            OperationType.COPY: self._undo_copy,
        }

        handler = handlers.get(operation.type)
        if handler is None:
            raise InvalidOperationError(f"Unknown operation type: {operation.type}")

        handler(operation)
        logger.info(f"Undid {operation.type.value} operation {operation.id}")

    def _remove_file(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError as e:
            raise UndoIOError(f"Cannot remove {path}: file no longer exists") from e
        except OSError as e:
            raise UndoIOError(f"Cannot remove {path}: {e}") from e

    def _undo_create(self, operation: UndoOperation) -> None:
        self._remove_file(operation.original_path)
        logger.debug(f"Deleted created file: {operation.original_path}")

    def _undo_copy(self, operation: UndoOperation) -> None:
        if operation.new_path is None:
            raise InvalidOperationError(
                f"Copy operation {operation.id} has no destination path"
            )
        self._remove_file(operation.new_path)
        logger.debug(f"Deleted copied file: {operation.new_path}")

    def _undo_restore(self, operation: UndoOperation) -> None:
        if operation.backup_path is None:
            raise MissingBackupError(
                f"No backup available for {operation.type.value} of "
                f"{operation.original_path}"
            )

        self.backup_store.restore_backup(
            operation.backup_path,
            operation.original_path,
            permissions=operation.permissions,
            mod_time=operation.mod_time,
            checksum=operation.checksum,
        )

    def _undo_move(self, operation: UndoOperation) -> None:
        new_path = operation.new_path
        if new_path is None or not os.path.lexists(new_path):
            raise ConflictError(
                f"Cannot undo {operation.type.value}: {new_path} no longer exists"
            )

        if os.path.lexists(operation.original_path):
            raise ConflictError(
                f"Cannot undo {operation.type.value}: "
                f"{operation.original_path} is already occupied"
            )

        try:
            operation.original_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(new_path), str(operation.original_path))
        except OSError as e:
            raise UndoIOError(
                f"Cannot move {new_path} back to {operation.original_path}: {e}"
            ) from e

        logger.debug(f"Moved back: {new_path} → {operation.original_path}")
