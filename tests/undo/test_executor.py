"""Tests for the undo executor reversal table."""

from pathlib import Path

import pytest

from undo_tools.core.exceptions import (
    ConflictError,
    InvalidOperationError,
    MissingBackupError,
    UndoIOError,
)
from undo_tools.core.types import OperationType, UndoOperation
from undo_tools.undo.backup import BackupStore
from undo_tools.undo.executor import UndoExecutor


@pytest.fixture
def executor(tmp_path: Path) -> UndoExecutor:
    """Create an executor with a temporary backup store."""
    return UndoExecutor(BackupStore(tmp_path / "backups"))


def make_operation(op_type: OperationType, original: Path, **kwargs) -> UndoOperation:
    """Build an operation record for the executor."""
    return UndoOperation(id="op_test", type=op_type, original_path=original, **kwargs)


class TestUndoCreateAndCopy:
    """Reversals that delete a path."""

    def test_undo_create_deletes_file(self, executor: UndoExecutor, workspace: Path) -> None:
        """Test create is undone by deleting the file."""
        path = workspace / "new.txt"
        path.write_text("new")

        executor.undo(make_operation(OperationType.CREATE, path))

        assert not path.exists()

    def test_undo_create_missing_file(self, executor: UndoExecutor, workspace: Path) -> None:
        """Test create undo fails if the file is already gone."""
        with pytest.raises(UndoIOError):
            executor.undo(make_operation(OperationType.CREATE, workspace / "gone.txt"))

    def test_undo_copy_deletes_destination(
        self, executor: UndoExecutor, sample_file: Path, workspace: Path
    ) -> None:
        """Test copy is undone by deleting the copy only."""
        copy = workspace / "copy.txt"
        copy.write_bytes(sample_file.read_bytes())

        executor.undo(make_operation(OperationType.COPY, sample_file, new_path=copy))

        assert not copy.exists()
        assert sample_file.read_bytes() == b"hello"

    def test_undo_copy_missing_destination(
        self, executor: UndoExecutor, sample_file: Path, workspace: Path
    ) -> None:
        """Test copy undo fails if the copy is already gone."""
        with pytest.raises(UndoIOError):
            executor.undo(
                make_operation(
                    OperationType.COPY, sample_file, new_path=workspace / "none.txt"
                )
            )

    def test_undo_copy_without_destination(
        self, executor: UndoExecutor, sample_file: Path
    ) -> None:
        """Test copy record without a destination is rejected."""
        with pytest.raises(InvalidOperationError):
            executor.undo(make_operation(OperationType.COPY, sample_file))


class TestUndoRestore:
    """Reversals that restore from backup."""

    @pytest.mark.parametrize("op_type", [OperationType.DELETE, OperationType.UPDATE])
    def test_restore_from_backup(
        self, executor: UndoExecutor, sample_file: Path, op_type: OperationType
    ) -> None:
        """Test delete/update are undone by restoring the backup."""
        backup = executor.backup_store.create_backup(sample_file)
        sample_file.unlink()

        executor.undo(
            make_operation(op_type, sample_file, backup_path=backup, permissions=0o640)
        )

        assert sample_file.read_bytes() == b"hello"

    @pytest.mark.parametrize("op_type", [OperationType.DELETE, OperationType.UPDATE])
    def test_restore_without_backup(
        self, executor: UndoExecutor, sample_file: Path, op_type: OperationType
    ) -> None:
        """Test delete/update without backup raise MissingBackupError."""
        with pytest.raises(MissingBackupError):
            executor.undo(make_operation(op_type, sample_file))


class TestUndoMove:
    """Reversals that move a file back."""

    @pytest.mark.parametrize("op_type", [OperationType.MOVE, OperationType.RENAME])
    def test_move_back(
        self, executor: UndoExecutor, sample_file: Path, workspace: Path, op_type: OperationType
    ) -> None:
        """Test move/rename are undone by moving new_path back."""
        moved = workspace / "sub" / "moved.txt"
        moved.parent.mkdir()
        sample_file.rename(moved)

        executor.undo(make_operation(op_type, sample_file, new_path=moved))

        assert sample_file.read_bytes() == b"hello"
        assert not moved.exists()

    def test_move_back_recreates_parent(
        self, executor: UndoExecutor, workspace: Path
    ) -> None:
        """Test the original directory is recreated if it was removed."""
        original = workspace / "old_dir" / "file.txt"
        moved = workspace / "file.txt"
        moved.write_text("data")

        executor.undo(make_operation(OperationType.MOVE, original, new_path=moved))

        assert original.read_text() == "data"

    def test_move_back_missing_new_path(
        self, executor: UndoExecutor, sample_file: Path, workspace: Path
    ) -> None:
        """Test ConflictError when the moved file is gone."""
        sample_file.unlink()

        with pytest.raises(ConflictError):
            executor.undo(
                make_operation(
                    OperationType.MOVE, sample_file, new_path=workspace / "moved.txt"
                )
            )

    def test_move_back_occupied_original(
        self, executor: UndoExecutor, sample_file: Path, workspace: Path
    ) -> None:
        """Test ConflictError when something now sits at the original path."""
        moved = workspace / "moved.txt"
        moved.write_text("moved copy")

        with pytest.raises(ConflictError):
            executor.undo(make_operation(OperationType.RENAME, sample_file, new_path=moved))

        assert sample_file.read_bytes() == b"hello"
        assert moved.read_text() == "moved copy"
