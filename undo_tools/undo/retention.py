"""
Background retention sweep for old undo sessions.

Periodically purges sessions older than the configured maximum age together
with their backup files. Purging ignores whether a session was undone.
"""

import logging
import threading
from datetime import timedelta
from threading import Thread
from typing import TYPE_CHECKING, Optional

from ..core.exceptions import UndoError

if TYPE_CHECKING:
    from .manager import UndoManager

logger = logging.getLogger(__name__)


class RetentionSweeper:
    """
    Background service that runs UndoManager.clear_history on an interval.
    """

    def __init__(
        self,
        manager: "UndoManager",
        max_age: timedelta,
        interval_seconds: float = 3600.0,
    ):
        """
        Initialize retention sweeper.

        Args:
            manager: Undo manager to sweep
            max_age: Sessions created longer ago than this are purged
            interval_seconds: Seconds between sweeps
        """
        self.manager = manager
        self.max_age = max_age
        self.interval_seconds = interval_seconds
        self._stop_event = threading.Event()
        self._thread: Optional[Thread] = None

    def run_once(self) -> int:
        """
        Run a single sweep.

        Returns:
            Number of sessions purged (0 if the sweep failed)
        """
        try:
            purged = self.manager.clear_history(self.max_age)
        except UndoError as e:
            logger.error(f"Undo retention sweep failed: {e}")
            return 0

        if purged:
            logger.info(f"Retention sweep purged {purged} undo session(s)")
        return purged

    def _run(self) -> None:
        # wait() returns True once stop() is called
        while not self._stop_event.wait(self.interval_seconds):
            self.run_once()

    def start(self) -> None:
        """Start the background sweep thread."""
        if self.is_running():
            logger.warning("Retention sweeper already running")
            return

        self._stop_event.clear()
        self._thread = Thread(
            target=self._run, name="undo-retention", daemon=True
        )
        self._thread.start()
        logger.debug(
            f"Retention sweeper started (every {self.interval_seconds}s, "
            f"max age {self.max_age})"
        )

    def stop(self, timeout: Optional[float] = None) -> None:
        """Stop the background sweep thread."""
        if self._thread is None:
            return

        self._stop_event.set()
        self._thread.join(timeout)
        self._thread = None
        logger.debug("Retention sweeper stopped")

    def is_running(self) -> bool:
        """Check if the sweep thread is alive."""
        return self._thread is not None and self._thread.is_alive()
