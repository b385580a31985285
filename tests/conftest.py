"""
Pytest configuration and fixtures for undo_tools tests.

Every fixture keeps history files and backups inside tmp_path so tests
never touch the working directory.
"""

import os
from pathlib import Path
from typing import Generator

import pytest

from undo_tools.core.config import UndoSettings
from undo_tools.undo.events import EventNotifier
from undo_tools.undo.manager import UndoManager


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch, tmp_path: Path) -> None:
    """Keep UNDO_* variables and stray .env files out of the tests."""
    for key in list(os.environ):
        if key.startswith("UNDO_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def undo_settings(tmp_path: Path) -> UndoSettings:
    """Settings pointing at a temporary history file and backup directory."""
    return UndoSettings(
        history_file=tmp_path / "state" / "undo_history.json",
        backup_dir=tmp_path / "state" / "backups",
    )


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    """Directory holding the files the tests mutate."""
    directory = tmp_path / "workspace"
    directory.mkdir()
    return directory


@pytest.fixture
def manager(undo_settings: UndoSettings) -> Generator[UndoManager, None, None]:
    """Undo manager with inline event delivery."""
    undo_manager = UndoManager(undo_settings, notifier=EventNotifier(synchronous=True))
    yield undo_manager
    undo_manager.close()


@pytest.fixture
def sample_file(workspace: Path) -> Path:
    """A small file with known content, mode and modification time."""
    path = workspace / "a.txt"
    path.write_bytes(b"hello")
    path.chmod(0o640)
    os.utime(path, (1_600_000_000, 1_600_000_000))
    return path
