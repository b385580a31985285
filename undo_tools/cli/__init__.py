"""Command-line interface for Undo Tools."""

from .undo_cli import cli

__all__ = ["cli"]
