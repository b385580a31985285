"""
Backup store for pre-operation file content.

Copies a file's bytes, mode bits and modification time into a flat private
directory before a destructive operation, and writes them back on undo.
"""

import logging
import os
import shutil
import time
import uuid
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from ..core.exceptions import IntegrityError, MissingBackupError, UndoIOError
from ..shared.file_utils import safe_filename, verify_checksum

logger = logging.getLogger(__name__)


class BackupStore:
    """
    Flat directory of uniquely named backup copies.

    Backups are plain copies: no compression, no encryption and no
    deduplication. Each call to create_backup produces a new file.

    Example:
        >>> store = BackupStore(Path(".ena_undo_backups"))
        >>> backup = store.create_backup(Path("notes.txt"))
        >>> store.restore_backup(backup, Path("notes.txt"))
    """

    def __init__(self, backup_dir: Path, verify_checksums: bool = True):
        """
        Initialize the backup store.

        Args:
            backup_dir: Directory holding backup copies (created on demand)
            verify_checksums: Check a backup against its recorded checksum
                before restoring it
        """
        self.backup_dir = Path(backup_dir)
        self.verify_checksums = verify_checksums

    def _ensure_backup_dir(self) -> None:
        try:
            self.backup_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise UndoIOError(
                f"Cannot create backup directory {self.backup_dir}: {e}"
            ) from e

    def _backup_name(self, file_path: Path) -> str:
        # time_ns alone can repeat on coarse clocks
        return (
            f"backup_{time.time_ns()}_{uuid.uuid4().hex[:8]}_"
            f"{safe_filename(file_path.name)}"
        )

    def create_backup(self, file_path: Path) -> Path:
        """
        Copy a file into the backup directory.

        Args:
            file_path: File to back up

        Returns:
            Path to the backup copy

        Raises:
            UndoIOError: If the file cannot be read or the copy cannot be written
        """
        file_path = Path(file_path)
        self._ensure_backup_dir()

        backup_path = self.backup_dir / self._backup_name(file_path)

        try:
            # copy2 carries mode bits and timestamps along with the content
            shutil.copy2(file_path, backup_path)
        except OSError as e:
            backup_path.unlink(missing_ok=True)
            raise UndoIOError(f"Cannot back up {file_path}: {e}") from e

        logger.debug(f"Backed up {file_path} → {backup_path}")
        return backup_path

    def restore_backup(
        self,
        backup_path: Optional[Path],
        target_path: Path,
        permissions: Optional[int] = None,
        mod_time: Optional[datetime] = None,
        checksum: Optional[str] = None,
    ) -> None:
        """
        Write a backup copy back to its original location.

        The content is staged next to the target and moved into place, so an
        existing target is only replaced once the copy is complete.

        Args:
            backup_path: Backup copy to restore
            target_path: Where to write the content
            permissions: Mode bits to apply (defaults to the backup's)
            mod_time: Modification time to apply (defaults to the backup's)
            checksum: Expected SHA-256 of the backup content

        Raises:
            MissingBackupError: If there is no backup or it was deleted
            IntegrityError: If the backup does not match checksum
            UndoIOError: If the restore cannot be written
        """
        if backup_path is None:
            raise MissingBackupError(f"No backup recorded for {target_path}")

        backup_path = Path(backup_path)
        target_path = Path(target_path)

        if not backup_path.is_file():
            raise MissingBackupError(f"Backup file not found: {backup_path}")

        if checksum and self.verify_checksums:
            if not verify_checksum(backup_path, checksum):
                raise IntegrityError(
                    f"Backup {backup_path} does not match recorded checksum {checksum}"
                )

        staging_path = target_path.with_name(f".{target_path.name}.undo-restore")

        try:
            target_path.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(backup_path, staging_path)

            if permissions is not None:
                os.chmod(staging_path, permissions)
            if mod_time is not None:
                timestamp = mod_time.timestamp()
                os.utime(staging_path, (timestamp, timestamp))

            os.replace(staging_path, target_path)
        except OSError as e:
            staging_path.unlink(missing_ok=True)
            raise UndoIOError(
                f"Cannot restore {target_path} from {backup_path}: {e}"
            ) from e

        logger.info(f"Restored {target_path} from {backup_path}")

    def remove_backup(self, backup_path: Path) -> bool:
        """
        Delete a backup copy.

        Args:
            backup_path: Backup file to delete

        Returns:
            True if the file is gone afterwards
        """
        try:
            Path(backup_path).unlink(missing_ok=True)
            return True
        except OSError as e:
            logger.warning(f"Failed to remove backup {backup_path}: {e}")
            return False

    def list_backups(self) -> List[Path]:
        """
        List backup files, oldest first.

        Returns:
            Paths of all backup copies in the store
        """
        if not self.backup_dir.is_dir():
            return []
        return sorted(
            path
            for path in self.backup_dir.iterdir()
            if path.is_file() and path.name.startswith("backup_")
        )

    def get_store_size(self) -> int:
        """
        Get the total size of all backups in bytes.

        Returns:
            Sum of backup file sizes
        """
        return sum(path.stat().st_size for path in self.list_backups())
