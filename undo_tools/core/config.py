"""Undo engine configuration."""

from datetime import timedelta
from pathlib import Path

from pydantic import ConfigDict
from pydantic_settings import BaseSettings


class UndoSettings(BaseSettings):
    """Undo engine settings loaded from environment variables (UNDO_*)."""

    # Storage locations
    history_file: Path = Path("undo_history.json")
    backup_dir: Path = Path(".ena_undo_backups")

    # Retention
    max_session_age_hours: float = 24.0
    cleanup_interval_seconds: float = 3600.0

    # Content snapshots kept inline for create/update (0 disables them)
    max_snapshot_bytes: int = 1024 * 1024

    # Verify backup checksum before writing it back
    verify_checksums: bool = True

    # Event dispatch
    event_workers: int = 4
    event_timeout_seconds: float = 5.0

    @property
    def max_session_age(self) -> timedelta:
        """Maximum session age as a timedelta."""
        return timedelta(hours=self.max_session_age_hours)

    model_config = ConfigDict(
        env_prefix="UNDO_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )
