"""
Undo manager.

Tracks file operations before they happen, groups them into sessions,
persists the history and reverses operations on request.

Locking:
    A registry lock guards the session map, the operation index and the
    current-session pointer, and is only held for lookups and bookkeeping.
    Each session has its own lock, held while that session's operations are
    appended to, undone or copied, so file I/O in one session never waits
    on another session. Session locks are never acquired while the registry
    lock is held, except briefly to append a newly captured operation or to
    drop an empty session whose creation could not be saved.
"""

import logging
import os
import stat
import threading
import uuid
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..core.config import UndoSettings
from ..core.exceptions import (
    AlreadyUndoneError,
    HistoryNotSavedError,
    InvalidOperationError,
    OperationNotFoundError,
    SessionNotFoundError,
    UndoError,
    UndoIOError,
)
from ..core.types import (
    BACKUP_OPERATIONS,
    SNAPSHOT_OPERATIONS,
    TARGET_OPERATIONS,
    EventType,
    OperationType,
    UndoEvent,
    UndoOperation,
    UndoSession,
)
from ..shared.file_utils import compute_checksum
from .backup import BackupStore
from .events import EventCallback, EventNotifier
from .executor import UndoExecutor
from .history import HistoryStore
from .retention import RetentionSweeper

logger = logging.getLogger(__name__)

PathLike = Union[str, os.PathLike]

AUTO_SESSION_NAME = "Auto Session"
AUTO_SESSION_DESCRIPTION = "Automatically created session"


class UndoManager:
    """
    Records reversible file operations and undoes them.

    Callers track an operation before performing the mutation themselves,
    then later undo a single operation or a whole session.

    Example:
        >>> with UndoManager(UndoSettings()) as manager:
        ...     manager.start_session("Cleanup", "Remove old logs")
        ...     op_id = manager.track_operation("delete", "old.log")
        ...     os.remove("old.log")
        ...     manager.undo_operation(op_id)
    """

    def __init__(
        self,
        settings: Optional[UndoSettings] = None,
        notifier: Optional[EventNotifier] = None,
    ):
        """
        Initialize undo manager and load any persisted history.

        Args:
            settings: Undo settings (defaults to environment configuration)
            notifier: Event notifier (defaults to a pooled notifier)
        """
        self.settings = settings or UndoSettings()
        self.backup_store = BackupStore(
            self.settings.backup_dir,
            verify_checksums=self.settings.verify_checksums,
        )
        self.executor = UndoExecutor(self.backup_store)
        self.history_store = HistoryStore(self.settings.history_file)
        self.notifier = notifier or EventNotifier(
            max_workers=self.settings.event_workers,
            timeout=self.settings.event_timeout_seconds,
        )
        self.sweeper = RetentionSweeper(
            self,
            max_age=self.settings.max_session_age,
            interval_seconds=self.settings.cleanup_interval_seconds,
        )

        self._sessions: Dict[str, UndoSession] = {}
        self._session_locks: Dict[str, threading.RLock] = {}
        self._operation_index: Dict[str, str] = {}
        self._current_session_id: Optional[str] = None
        self._registry_lock = threading.Lock()
        self._persist_lock = threading.Lock()

        self._load_history()

    # Lifecycle

    def start(self) -> "UndoManager":
        """Start the background retention sweeper."""
        self.sweeper.start()
        return self

    def close(self) -> None:
        """Stop background work and release the event pool."""
        self.sweeper.stop()
        self.notifier.close()

    def __enter__(self) -> "UndoManager":
        return self.start()

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    # Sessions

    def start_session(self, name: str, description: str = "") -> UndoSession:
        """
        Start a new session and make it current.

        Args:
            name: Session name
            description: Session description

        Returns:
            Copy of the new session
        """
        with self._registry_lock:
            previous_session_id = self._current_session_id
            session = self._create_session(name, description)

        try:
            self._save_history()
        except UndoError:
            self._drop_session(session.id, previous_session_id)
            raise

        self._emit_session_created(session)

        return session.model_copy(deep=True)

    def end_session(self) -> None:
        """Stop adding operations to the current session."""
        with self._registry_lock:
            if self._current_session_id is None:
                return
            logger.info(f"Ended undo session {self._current_session_id}")
            self._current_session_id = None

        self._save_history()

    @property
    def current_session(self) -> Optional[UndoSession]:
        """Copy of the current session, or None."""
        with self._registry_lock:
            session_id = self._current_session_id
        if session_id is None:
            return None
        try:
            return self.get_session(session_id)
        except SessionNotFoundError:
            return None

    def _create_session(self, name: str, description: str) -> UndoSession:
        # Caller holds the registry lock
        session = UndoSession(
            id=f"session_{uuid.uuid4().hex[:12]}",
            name=name,
            description=description,
        )
        self._sessions[session.id] = session
        self._session_locks[session.id] = threading.RLock()
        self._current_session_id = session.id
        logger.info(f"Started undo session {session.id}: {name}")
        return session

    def _emit_session_created(self, session: UndoSession) -> None:
        self.notifier.publish(
            UndoEvent(
                type=EventType.SESSION_CREATED,
                session_id=session.id,
                message=f"Started undo session: {session.name}",
            )
        )

    # Tracking

    def track_operation(
        self,
        op_type: Union[OperationType, str],
        original_path: PathLike,
        new_path: Optional[PathLike] = None,
    ) -> str:
        """
        Record an operation before the caller performs it.

        Reads the current state of original_path: backs it up for
        delete/update/move, checksums it, and keeps its content inline for
        create/update when it is small enough. A create may be tracked
        before the file exists.

        Args:
            op_type: Operation type
            original_path: Path the operation acts on
            new_path: Destination for move/copy/rename

        Returns:
            ID of the tracked operation

        Raises:
            InvalidOperationError: If the request is malformed
            UndoIOError: If the file cannot be read or backed up
        """
        try:
            op_type = OperationType(op_type)
        except ValueError as e:
            raise InvalidOperationError(f"Unknown operation type: {op_type}") from e

        original = Path(original_path)
        target = Path(new_path) if new_path else None

        if op_type in TARGET_OPERATIONS and target is None:
            raise InvalidOperationError(
                f"{op_type.value} operation on {original} needs a new path"
            )

        operation = self._capture_operation(op_type, original, target)
        session, created, previous_session_id = self._append_operation(operation)

        try:
            self._save_history()
        except UndoError:
            kept = self._discard_operation(
                operation, session.id if created else None, previous_session_id
            )
            if created and kept:
                # Another caller tracked into it, so the session stays
                self._emit_session_created(session)
            raise

        if created:
            self._emit_session_created(session)

        self.notifier.publish(
            UndoEvent(
                type=EventType.OPERATION_TRACKED,
                session_id=session.id,
                operation=operation.model_copy(deep=True),
                message=f"Tracked {op_type.value} operation: {original}",
            )
        )

        logger.info(f"Tracked {op_type.value} operation {operation.id}: {original}")
        return operation.id

    def _capture_operation(
        self,
        op_type: OperationType,
        original: Path,
        target: Optional[Path],
    ) -> UndoOperation:
        """Build the operation record, backing up the file if needed."""
        operation_id = f"op_{uuid.uuid4().hex[:12]}"

        if not os.path.lexists(original):
            if op_type == OperationType.CREATE:
                # Tracked ahead of creation: nothing to capture yet
                return UndoOperation(
                    id=operation_id,
                    type=op_type,
                    original_path=original,
                    new_path=target,
                )
            raise UndoIOError(f"Cannot track {op_type.value}: {original} does not exist")

        try:
            file_stat = original.stat()
        except OSError as e:
            raise UndoIOError(f"Error getting file info for {original}: {e}") from e

        if not stat.S_ISREG(file_stat.st_mode):
            raise InvalidOperationError(
                f"Only regular files can be tracked: {original}"
            )

        backup_path = None
        if op_type in BACKUP_OPERATIONS:
            backup_path = self.backup_store.create_backup(original)

        metadata: Dict[str, Any] = {}
        try:
            # Checksum the backup when there is one: that is what gets restored
            checksum = compute_checksum(backup_path or original)
            if checksum is None:
                raise UndoIOError(f"Cannot compute checksum for {original}")

            content = None
            if op_type in SNAPSHOT_OPERATIONS:
                if file_stat.st_size <= self.settings.max_snapshot_bytes:
                    content = self._read_content(original)
                else:
                    metadata["snapshot_skipped"] = True
        except UndoError:
            if backup_path is not None:
                self.backup_store.remove_backup(backup_path)
            raise

        return UndoOperation(
            id=operation_id,
            type=op_type,
            original_path=original,
            backup_path=backup_path,
            new_path=target,
            content_snapshot=content,
            size=file_stat.st_size,
            permissions=stat.S_IMODE(file_stat.st_mode),
            mod_time=datetime.fromtimestamp(file_stat.st_mtime, tz=timezone.utc),
            checksum=checksum,
            metadata=metadata,
        )

    def _read_content(self, path: Path) -> bytes:
        try:
            return path.read_bytes()
        except OSError as e:
            raise UndoIOError(f"Error reading content for {path}: {e}") from e

    def _append_operation(
        self, operation: UndoOperation
    ) -> Tuple[UndoSession, bool, Optional[str]]:
        """
        Append to the current session, starting one if needed.

        Returns:
            The session, whether it was created here, and the session that
            was current before
        """
        created = False
        with self._registry_lock:
            previous_session_id = self._current_session_id
            session = None
            if self._current_session_id is not None:
                session = self._sessions.get(self._current_session_id)
            if session is None:
                session = self._create_session(
                    AUTO_SESSION_NAME, AUTO_SESSION_DESCRIPTION
                )
                created = True

            with self._session_locks[session.id]:
                session.operations.append(operation)
            self._operation_index[operation.id] = session.id

        return session, created, previous_session_id

    def _discard_operation(
        self,
        operation: UndoOperation,
        created_session_id: Optional[str] = None,
        previous_session_id: Optional[str] = None,
    ) -> bool:
        """
        Remove a half-tracked operation and its backup.

        A session started for this operation is removed too, unless other
        operations were appended to it meanwhile.

        Returns:
            True if the session started for this operation was kept
        """
        with self._registry_lock:
            session_id = self._operation_index.pop(operation.id, None)
            session = self._sessions.get(session_id) if session_id else None
            lock = self._session_locks.get(session_id) if session_id else None

        if session is not None and lock is not None:
            with lock:
                session.operations = [
                    op for op in session.operations if op.id != operation.id
                ]

        if operation.backup_path is not None:
            self.backup_store.remove_backup(operation.backup_path)

        if created_session_id is None:
            return False
        if self._drop_session(created_session_id, previous_session_id):
            return False
        with self._registry_lock:
            return created_session_id in self._sessions

    def _drop_session(
        self, session_id: str, previous_session_id: Optional[str]
    ) -> bool:
        """
        Forget an empty session whose creation could not be saved.

        Returns:
            True if the session was removed
        """
        with self._registry_lock:
            session = self._sessions.get(session_id)
            if session is None:
                return False
            with self._session_locks[session_id]:
                if session.operations:
                    return False
            del self._sessions[session_id]
            del self._session_locks[session_id]
            if self._current_session_id == session_id:
                if previous_session_id in self._sessions:
                    self._current_session_id = previous_session_id
                else:
                    self._current_session_id = None

        logger.debug(f"Dropped unsaved undo session {session_id}")
        return True

    # Undo

    def undo_operation(self, operation_id: str) -> None:
        """
        Undo a single operation.

        Args:
            operation_id: Operation ID

        Raises:
            OperationNotFoundError: If the operation is unknown
            AlreadyUndoneError: If it was undone before
            UndoError: If the reversal fails (see UndoExecutor.undo)
            HistoryNotSavedError: If the operation was undone but the
                history could not be saved
        """
        session, lock = self._locate_operation(operation_id)
        error: Optional[UndoError] = None

        with lock:
            operation = session.get_operation(operation_id)
            if operation is None:
                raise OperationNotFoundError(f"Operation {operation_id} not found")

            if operation.undone:
                raise AlreadyUndoneError(
                    f"Operation {operation_id} has already been undone"
                )

            try:
                self.executor.undo(operation)
            except UndoError as e:
                error = e
            else:
                operation.mark_undone()

            snapshot = operation.model_copy(deep=True)

        if error is not None:
            self._emit_error(session.id, error, snapshot)
            raise error

        save_error = self._save_after_undo(f"operation {operation_id}")

        self.notifier.publish(
            UndoEvent(
                type=EventType.OPERATION_UNDONE,
                session_id=session.id,
                operation=snapshot,
                message=f"Undone {snapshot.type.value} operation: {snapshot.original_path}",
            )
        )

        if save_error is not None:
            raise save_error

    def undo_session(self, session_id: str) -> None:
        """
        Undo every operation in a session, newest first.

        Stops at the first failure. Operations already reversed stay undone
        and the session is left partially undone; inspect get_session() to
        see which operations succeeded.

        Args:
            session_id: Session ID

        Raises:
            SessionNotFoundError: If the session is unknown
            AlreadyUndoneError: If the session was undone before
            UndoError: The first reversal failure
            HistoryNotSavedError: If the session was undone but the history
                could not be saved
        """
        session, lock = self._locate_session(session_id)
        error: Optional[UndoError] = None
        failed_operation: Optional[UndoOperation] = None

        with lock:
            if session.undone:
                raise AlreadyUndoneError(f"Session {session_id} has already been undone")

            for operation in reversed(session.operations):
                if operation.undone:
                    continue
                try:
                    self.executor.undo(operation)
                except UndoError as e:
                    error = e
                    failed_operation = operation.model_copy(deep=True)
                    break
                operation.mark_undone()
            else:
                session.mark_undone()

            name = session.name

        # Persist partial progress too
        save_error = self._save_after_undo(f"session {session_id}")

        if error is not None:
            logger.error(f"Undo of session {session_id} stopped: {error}")
            self._emit_error(session_id, error, failed_operation)
            raise error

        logger.info(f"Undid session {session_id}: {name}")
        self.notifier.publish(
            UndoEvent(
                type=EventType.SESSION_UNDONE,
                session_id=session_id,
                message=f"Undone session: {name}",
            )
        )

        if save_error is not None:
            raise save_error

    def _save_after_undo(self, subject: str) -> Optional[HistoryNotSavedError]:
        """
        Save once reversals have been applied on disk.

        Returns:
            The error to raise after events are published, or None
        """
        try:
            self._save_history()
        except UndoIOError as e:
            logger.error(f"Undo of {subject} applied but history not saved: {e}")
            save_error = HistoryNotSavedError(
                f"Undo of {subject} was applied but the history could not be "
                f"saved: {e}"
            )
            save_error.__cause__ = e
            return save_error
        return None

    def _emit_error(
        self,
        session_id: str,
        error: Exception,
        operation: Optional[UndoOperation] = None,
    ) -> None:
        self.notifier.publish(
            UndoEvent(
                type=EventType.ERROR,
                session_id=session_id,
                operation=operation.model_copy(deep=True) if operation else None,
                message=str(error),
                data={"error_type": type(error).__name__},
            )
        )

    # Queries

    def _locate_session(self, session_id: str) -> Tuple[UndoSession, threading.RLock]:
        with self._registry_lock:
            session = self._sessions.get(session_id)
            if session is None:
                raise SessionNotFoundError(f"Session {session_id} not found")
            return session, self._session_locks[session_id]

    def _locate_operation(
        self, operation_id: str
    ) -> Tuple[UndoSession, threading.RLock]:
        with self._registry_lock:
            session_id = self._operation_index.get(operation_id)
            session = self._sessions.get(session_id) if session_id else None
            if session is None:
                raise OperationNotFoundError(f"Operation {operation_id} not found")
            return session, self._session_locks[session_id]

    def _snapshot_sessions(self) -> List[UndoSession]:
        """Copy every session, each under its own lock."""
        with self._registry_lock:
            entries = [
                (session, self._session_locks[session_id])
                for session_id, session in self._sessions.items()
            ]

        copies = []
        for session, lock in entries:
            with lock:
                copies.append(session.model_copy(deep=True))
        return copies

    def get_history(self) -> List[UndoSession]:
        """
        Get all sessions, newest first.

        Returns:
            Copies of the sessions
        """
        sessions = self._snapshot_sessions()
        sessions.sort(key=lambda s: s.created_at, reverse=True)
        return sessions

    def get_session(self, session_id: str) -> UndoSession:
        """
        Get a session by ID.

        Raises:
            SessionNotFoundError: If the session is unknown
        """
        session, lock = self._locate_session(session_id)
        with lock:
            return session.model_copy(deep=True)

    def get_operation(self, operation_id: str) -> UndoOperation:
        """
        Get an operation by ID.

        Raises:
            OperationNotFoundError: If the operation is unknown
        """
        session, lock = self._locate_operation(operation_id)
        with lock:
            operation = session.get_operation(operation_id)
            if operation is None:
                raise OperationNotFoundError(f"Operation {operation_id} not found")
            return operation.model_copy(deep=True)

    def find_latest_operation(self, path: PathLike) -> Optional[UndoOperation]:
        """
        Find the most recent operation that can still be undone for a path.

        Matches either the original or the new path of an operation.

        Args:
            path: File path

        Returns:
            Newest matching operation that is not undone, or None
        """
        wanted = {Path(path), Path(os.path.abspath(path))}
        latest: Optional[UndoOperation] = None

        for session in self._snapshot_sessions():
            for operation in session.operations:
                if operation.undone:
                    continue
                paths = {operation.original_path, operation.new_path}
                if not wanted & paths:
                    continue
                if latest is None or operation.timestamp > latest.timestamp:
                    latest = operation

        return latest

    # Retention

    def clear_history(self, older_than: timedelta) -> int:
        """
        Purge sessions created before now - older_than, with their backups.

        Purging ignores whether a session was undone. Backup deletion is
        best-effort: files that cannot be removed are skipped.

        Args:
            older_than: Age threshold (timedelta(0) purges everything)

        Returns:
            Number of sessions purged
        """
        cutoff = datetime.now() - older_than

        with self._registry_lock:
            expired = [
                (session, self._session_locks.pop(session_id))
                for session_id, session in list(self._sessions.items())
                if session.created_at < cutoff
            ]
            for session, _ in expired:
                del self._sessions[session.id]
                if self._current_session_id == session.id:
                    self._current_session_id = None
            expired_ids = {session.id for session, _ in expired}
            self._operation_index = {
                op_id: session_id
                for op_id, session_id in self._operation_index.items()
                if session_id not in expired_ids
            }

        removed_backups = 0
        for session, lock in expired:
            with lock:
                for operation in session.operations:
                    if operation.backup_path is None:
                        continue
                    if self.backup_store.remove_backup(operation.backup_path):
                        removed_backups += 1

        self._save_history()

        if expired:
            logger.info(
                f"Cleared {len(expired)} undo session(s) older than {older_than}, "
                f"removed {removed_backups} backup(s)"
            )
        return len(expired)

    # Events

    def add_event_callback(
        self, event_type: Union[EventType, str], callback: EventCallback
    ) -> None:
        """
        Register a listener for an undo event type.

        Args:
            event_type: session_created, operation_tracked, operation_undone,
                session_undone or error
            callback: Called with the UndoEvent
        """
        self.notifier.subscribe(event_type, callback)

    # Persistence

    def _load_history(self) -> None:
        history = self.history_store.load()

        with self._registry_lock:
            for session in history.sessions:
                self._sessions[session.id] = session
                self._session_locks[session.id] = threading.RLock()
                for operation in session.operations:
                    self._operation_index[operation.id] = session.id

            if history.current_session_id in self._sessions:
                self._current_session_id = history.current_session_id

        if history.sessions:
            logger.info(f"Loaded {len(history.sessions)} undo session(s)")

    def _save_history(self) -> None:
        # Snapshot inside the persist lock so saves land in order
        with self._persist_lock:
            sessions = self._snapshot_sessions()
            sessions.sort(key=lambda s: s.created_at)
            with self._registry_lock:
                current_session_id = self._current_session_id
            self.history_store.save(sessions, current_session_id)
