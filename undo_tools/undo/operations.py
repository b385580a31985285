"""
File operations that are tracked before they run.

Each helper records the operation with the undo manager first and then
performs the mutation, so every change it makes can be undone.
"""

import logging
import shutil
from pathlib import Path
from typing import Union

from ..core.exceptions import InvalidOperationError, UndoIOError
from ..core.types import OperationType
from .manager import PathLike, UndoManager

logger = logging.getLogger(__name__)


class TrackedFileOperations:
    """Performs file mutations through an UndoManager."""

    def __init__(self, manager: UndoManager):
        """
        Initialize tracked file operations.

        Args:
            manager: Undo manager that records each operation
        """
        self.manager = manager

    def create_file(self, path: PathLike, content: Union[bytes, str] = b"") -> str:
        """
        Create a new file.

        Returns:
            Operation ID

        Raises:
            InvalidOperationError: If the file already exists
        """
        path = Path(path)
        if path.exists():
            raise InvalidOperationError(f"File already exists: {path}")

        operation_id = self.manager.track_operation(OperationType.CREATE, path)
        self._write(path, content)
        logger.info(f"Created {path}")
        return operation_id

    def write_file(self, path: PathLike, content: Union[bytes, str]) -> str:
        """
        Overwrite a file, or create it if it does not exist.

        Returns:
            Operation ID
        """
        path = Path(path)
        op_type = OperationType.UPDATE if path.exists() else OperationType.CREATE

        operation_id = self.manager.track_operation(op_type, path)
        self._write(path, content)
        logger.info(f"Wrote {path}")
        return operation_id

    def delete_file(self, path: PathLike) -> str:
        """
        Delete a file.

        Returns:
            Operation ID
        """
        path = Path(path)
        operation_id = self.manager.track_operation(OperationType.DELETE, path)

        try:
            path.unlink()
        except OSError as e:
            raise UndoIOError(f"Cannot delete {path}: {e}") from e

        logger.info(f"Deleted {path}")
        return operation_id

    def copy_file(self, source: PathLike, destination: PathLike) -> str:
        """
        Copy a file to a new location.

        Returns:
            Operation ID
        """
        source, destination = Path(source), Path(destination)
        self._check_destination(destination)

        operation_id = self.manager.track_operation(
            OperationType.COPY, source, destination
        )

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(source, destination)
        except OSError as e:
            raise UndoIOError(f"Cannot copy {source} → {destination}: {e}") from e

        logger.info(f"Copied {source} → {destination}")
        return operation_id

    def move_file(self, source: PathLike, destination: PathLike) -> str:
        """
        Move a file to a new location.

        Returns:
            Operation ID
        """
        return self._relocate(OperationType.MOVE, Path(source), Path(destination))

    def rename_file(self, path: PathLike, new_name: str) -> str:
        """
        Rename a file within its directory.

        Returns:
            Operation ID
        """
        path = Path(path)
        if Path(new_name).name != new_name:
            raise InvalidOperationError(f"Not a plain file name: {new_name}")

        return self._relocate(OperationType.RENAME, path, path.with_name(new_name))

    def _relocate(
        self, op_type: OperationType, source: Path, destination: Path
    ) -> str:
        self._check_destination(destination)
        operation_id = self.manager.track_operation(op_type, source, destination)

        try:
            destination.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(destination))
        except OSError as e:
            raise UndoIOError(f"Cannot {op_type.value} {source} → {destination}: {e}") from e

        logger.info(f"{op_type.value.capitalize()}d {source} → {destination}")
        return operation_id

    def _check_destination(self, destination: Path) -> None:
        # Undo would delete whatever sits at the destination
        if destination.exists():
            raise InvalidOperationError(f"Destination already exists: {destination}")

    def _write(self, path: Path, content: Union[bytes, str]) -> None:
        data = content.encode("utf-8") if isinstance(content, str) else content
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as e:
            raise UndoIOError(f"Cannot write {path}: {e}") from e
