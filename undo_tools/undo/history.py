"""
Persistence for the undo history document.

The whole history is one JSON document holding every session with its
operations, so it can be reloaded after a restart.
"""

import json
import logging
import os
import threading
from datetime import datetime
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from ..core.exceptions import UndoIOError
from ..core.types import HISTORY_VERSION, UndoHistory, UndoSession

logger = logging.getLogger(__name__)


class HistoryStore:
    """Reads and writes the undo history JSON document."""

    def __init__(self, history_file: Path):
        """
        Initialize history store.

        Args:
            history_file: Path of the JSON history document
        """
        self.history_file = Path(history_file)
        self._save_lock = threading.Lock()

    def load(self) -> UndoHistory:
        """
        Load the history document.

        A missing file yields an empty history. An unreadable or invalid
        file is logged and also yields an empty history.

        Returns:
            Loaded history
        """
        if not self.history_file.exists():
            return UndoHistory()

        try:
            with open(self.history_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            history = UndoHistory.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(
                f"Failed to load undo history from {self.history_file}: {e}, "
                f"starting fresh"
            )
            return UndoHistory()

        if history.version != HISTORY_VERSION:
            logger.warning(
                f"Undo history version {history.version} differs from "
                f"{HISTORY_VERSION}, loading anyway"
            )

        logger.debug(
            f"Loaded {len(history.sessions)} undo sessions from {self.history_file}"
        )
        return history

    def save(
        self,
        sessions: List[UndoSession],
        current_session_id: Optional[str] = None,
    ) -> None:
        """
        Save the history document.

        The document is written to a temporary file and moved over the old
        one, so readers never see a half-written history.

        Args:
            sessions: Sessions to persist
            current_session_id: ID of the session that is still collecting
                operations, if any

        Raises:
            UndoIOError: If the document cannot be written
        """
        history = UndoHistory(
            sessions=sessions,
            version=HISTORY_VERSION,
            updated=datetime.now(),
            current_session_id=current_session_id,
        )
        payload = history.model_dump(mode="json")

        temp_path = self.history_file.with_name(f"{self.history_file.name}.tmp")

        with self._save_lock:
            try:
                self.history_file.parent.mkdir(parents=True, exist_ok=True)
                with open(temp_path, "w", encoding="utf-8") as f:
                    json.dump(payload, f, indent=2, default=str)
                os.replace(temp_path, self.history_file)
            except OSError as e:
                temp_path.unlink(missing_ok=True)
                raise UndoIOError(
                    f"Cannot write undo history {self.history_file}: {e}"
                ) from e

        logger.debug(f"Saved {len(sessions)} undo sessions to {self.history_file}")
