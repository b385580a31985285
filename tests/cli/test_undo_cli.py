"""
Tests for the undo CLI.
"""

import re
from pathlib import Path
from typing import List

import pytest
from click.testing import CliRunner, Result

from undo_tools.cli.undo_cli import cli
from undo_tools.core.config import UndoSettings
from undo_tools.undo.manager import UndoManager


class TestUndoCLI:
    """Tests for undo-tools commands."""

    @pytest.fixture
    def runner(self) -> CliRunner:
        return CliRunner()

    @pytest.fixture
    def invoke(self, runner: CliRunner, undo_settings: UndoSettings):
        """Run the CLI against the temporary history and backup store."""

        def _invoke(args: List[str]) -> Result:
            base = [
                "--history-file",
                str(undo_settings.history_file),
                "--backup-dir",
                str(undo_settings.backup_dir),
            ]
            return runner.invoke(cli, base + args)

        return _invoke

    def _reload(self, undo_settings: UndoSettings) -> UndoManager:
        return UndoManager(undo_settings)

    def test_help(self, runner: CliRunner) -> None:
        """Test help lists the commands."""
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        for command in ("history", "undo-operation", "undo-session", "clear-history"):
            assert command in result.output

    def test_empty_history(self, invoke) -> None:
        """Test history with nothing tracked."""
        result = invoke(["history"])

        assert result.exit_code == 0
        assert "No undo history available" in result.output

    def test_track_and_undo_operation(self, invoke, sample_file: Path) -> None:
        """Test tracking a delete, deleting, then undoing from the CLI."""
        result = invoke(["track", "delete", str(sample_file)])
        assert result.exit_code == 0
        assert "Tracked delete" in result.output

        match = re.search(r"op_[0-9a-f]{12}", result.output)
        assert match is not None
        op_id = match.group(0)

        sample_file.unlink()

        result = invoke(["undo-operation", op_id])
        assert result.exit_code == 0
        assert "Undone operation" in result.output
        assert sample_file.read_bytes() == b"hello"

        result = invoke(["undo-operation", op_id])
        assert result.exit_code == 1
        assert "already been undone" in result.output

    def test_undo_operation_dry_run(
        self, invoke, undo_settings: UndoSettings, sample_file: Path
    ) -> None:
        """Test dry run leaves the file and record untouched."""
        manager = self._reload(undo_settings)
        op_id = manager.track_operation("update", sample_file)
        manager.close()
        sample_file.write_bytes(b"changed")

        result = invoke(["undo-operation", op_id, "--dry-run"])

        assert result.exit_code == 0
        assert "Dry run" in result.output
        assert sample_file.read_bytes() == b"changed"

    def test_undo_unknown_operation(self, invoke) -> None:
        """Test unknown operation IDs fail."""
        result = invoke(["undo-operation", "op_missing"])

        assert result.exit_code == 1
        assert "Error undoing operation" in result.output

    def test_track_requires_new_path(self, invoke, sample_file: Path) -> None:
        """Test move without destination fails."""
        result = invoke(["track", "move", str(sample_file)])

        assert result.exit_code == 1
        assert "Error tracking operation" in result.output

    def test_track_rejects_unknown_type(self, invoke, sample_file: Path) -> None:
        """Test click validates the operation type."""
        result = invoke(["track", "shred", str(sample_file)])

        assert result.exit_code == 2

    def test_session_commands(
        self, invoke, undo_settings: UndoSettings, workspace: Path
    ) -> None:
        """Test start-session, history and undo-session together."""
        result = invoke(["start-session", "Cleanup", "remove", "drafts"])
        assert result.exit_code == 0
        assert "Started undo session: Cleanup" in result.output

        session_id = re.search(r"session_[0-9a-f]{12}", result.output).group(0)

        draft = workspace / "draft.txt"
        assert invoke(["track", "create", str(draft)]).exit_code == 0
        draft.write_text("draft")

        result = invoke(["history"])
        assert result.exit_code == 0
        assert "Undo History" in result.output
        assert "Backup store: 0 B" in result.output
        assert "Cleanup" in result.output

        result = invoke(["history", "--session", session_id])
        assert result.exit_code == 0
        assert "remove drafts" in result.output
        assert "create" in result.output

        result = invoke(["undo-session", session_id])
        assert result.exit_code == 0
        assert "Undone session" in result.output
        assert not draft.exists()

        manager = self._reload(undo_settings)
        assert manager.get_session(session_id).undone is True
        manager.close()

    def test_undo_session_dry_run(
        self, invoke, undo_settings: UndoSettings, workspace: Path
    ) -> None:
        """Test session dry run lists pending operations."""
        manager = self._reload(undo_settings)
        session = manager.start_session("Batch")
        manager.track_operation("create", workspace / "one.txt")
        manager.close()

        result = invoke(["undo-session", session.id, "--dry-run"])

        assert result.exit_code == 0
        assert "would undo 1 operation(s)" in result.output

    def test_undo_session_failure_hint(
        self, invoke, undo_settings: UndoSettings, workspace: Path
    ) -> None:
        """Test a failed session undo points at the session details."""
        manager = self._reload(undo_settings)
        session = manager.start_session("Broken")
        manager.track_operation("create", workspace / "never-created.txt")
        manager.close()

        result = invoke(["undo-session", session.id])

        assert result.exit_code == 1
        assert "Error undoing session" in result.output
        assert "history --session" in result.output

    def test_unknown_session(self, invoke) -> None:
        """Test unknown session IDs fail."""
        result = invoke(["history", "--session", "session_missing"])

        assert result.exit_code == 1
        assert "Error getting session" in result.output

    def test_end_session(self, invoke, undo_settings: UndoSettings) -> None:
        """Test end-session clears the current session."""
        invoke(["start-session", "Work"])

        result = invoke(["end-session"])

        assert result.exit_code == 0
        assert "Ended current undo session" in result.output
        manager = self._reload(undo_settings)
        assert manager.current_session is None
        manager.close()

    def test_clear_history_all(self, invoke, undo_settings: UndoSettings) -> None:
        """Test --all removes every session."""
        invoke(["start-session", "One"])
        invoke(["start-session", "Two"])

        result = invoke(["clear-history", "--all"])

        assert result.exit_code == 0
        assert "Cleared all undo history (2 session(s))" in result.output
        assert "No undo history available" in invoke(["history"]).output

    def test_clear_history_keeps_recent(self, invoke) -> None:
        """Test the default age keeps sessions from today."""
        invoke(["start-session", "Recent"])

        result = invoke(["clear-history", "7d"])

        assert result.exit_code == 0
        assert "Cleared 0 session(s) older than 7d" in result.output
        assert "Recent" in invoke(["history"]).output

    def test_clear_history_invalid_duration(self, invoke) -> None:
        """Test malformed durations fail."""
        result = invoke(["clear-history", "soon"])

        assert result.exit_code == 1
        assert "Invalid duration" in result.output

    def test_restore_file(
        self, invoke, undo_settings: UndoSettings, sample_file: Path
    ) -> None:
        """Test restore-file undoes the latest operation on a path."""
        manager = self._reload(undo_settings)
        manager.track_operation("update", sample_file)
        manager.close()
        sample_file.write_bytes(b"overwritten")

        result = invoke(["restore-file", str(sample_file)])

        assert result.exit_code == 0
        assert "Restored file" in result.output
        assert sample_file.read_bytes() == b"hello"

    def test_restore_file_without_history(self, invoke, workspace: Path) -> None:
        """Test restore-file fails for untracked paths."""
        result = invoke(["restore-file", str(workspace / "unknown.txt")])

        assert result.exit_code == 1
        assert "No undo history found" in result.output

    def test_history_shows_backup_store_size(
        self, invoke, undo_settings: UndoSettings, sample_file: Path
    ) -> None:
        """Test history reports the space used by backups."""
        manager = self._reload(undo_settings)
        manager.track_operation("update", sample_file)
        manager.close()

        result = invoke(["history"])

        assert result.exit_code == 0
        assert "Backup store: 5.00 B" in result.output
