"""
CLI for the undo history.

Lists tracked sessions and operations, undoes them, and manages sessions
and retention from the command line.
"""

import sys
from pathlib import Path
from typing import NoReturn, Optional, Tuple

import click
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .. import __version__
from ..core.config import UndoSettings
from ..core.exceptions import UndoError
from ..core.types import OperationType, UndoSession
from ..shared.file_utils import (
    format_bytes,
    format_duration,
    parse_duration,
    setup_logging,
)
from ..undo.manager import UndoManager

console = Console()

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _fail(message: str) -> NoReturn:
    console.print(f"[red]✗ {message}[/red]")
    sys.exit(1)


@click.group()
@click.option(
    "--history-file",
    type=click.Path(dir_okay=False),
    default=None,
    help="Undo history JSON file (default: undo_history.json)",
)
@click.option(
    "--backup-dir",
    type=click.Path(file_okay=False),
    default=None,
    help="Directory for backup copies (default: .ena_undo_backups)",
)
@click.option(
    "-v",
    "--verbose",
    is_flag=True,
    default=False,
    help="Verbose output",
)
@click.version_option(__version__)
@click.pass_context
def cli(
    ctx: click.Context,
    history_file: Optional[str],
    backup_dir: Optional[str],
    verbose: bool,
) -> None:
    """
    Manage the undo history of tracked file operations.

    \b
    Examples:
        undo-tools history
        undo-tools history --session session_1a2b3c4d5e6f
        undo-tools undo-operation op_1a2b3c4d5e6f --dry-run
        undo-tools undo-session session_1a2b3c4d5e6f
        undo-tools clear-history 7d
    """
    setup_logging(verbose=verbose, quiet=not verbose)

    overrides = {}
    if history_file:
        overrides["history_file"] = Path(history_file)
    if backup_dir:
        overrides["backup_dir"] = Path(backup_dir)

    manager = UndoManager(UndoSettings(**overrides))
    ctx.obj = manager
    ctx.call_on_close(manager.close)


@cli.command()
@click.option("--limit", type=int, default=0, help="Limit number of sessions to show")
@click.option("--session", "session_id", type=str, help="Show specific session details")
@click.pass_obj
def history(manager: UndoManager, limit: int, session_id: Optional[str]) -> None:
    """Show undo history and the operations that can be undone."""
    if session_id:
        try:
            session = manager.get_session(session_id)
        except UndoError as e:
            _fail(f"Error getting session: {e}")
        _display_session(session)
        return

    sessions = manager.get_history()
    if not sessions:
        console.print("[yellow]No undo history available[/yellow]")
        return

    if limit > 0:
        sessions = sessions[:limit]

    console.print("[bold cyan]Undo History[/bold cyan]")
    console.print(
        f"Backup store: {format_bytes(manager.backup_store.get_store_size())} "
        f"in {manager.backup_store.backup_dir}\n"
    )
    for index, session in enumerate(sessions, start=1):
        stats = session.get_statistics()
        console.print(f"{index}. [bold]{session.name}[/bold] ({session.id})")
        console.print(f"   Created: {session.created_at.strftime(DATE_FORMAT)}")
        console.print(
            f"   Operations: {stats['total']} | Undone: {'yes' if session.undone else 'no'}"
        )
        if session.description:
            console.print(f"   Description: {session.description}")
        console.print()


@cli.command("undo-operation")
@click.argument("operation_id")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Preview what would be undone without undoing it",
)
@click.pass_obj
def undo_operation(manager: UndoManager, operation_id: str, dry_run: bool) -> None:
    """Undo a single operation by OPERATION_ID."""
    try:
        operation = manager.get_operation(operation_id)
        if dry_run:
            console.print(
                f"[yellow]Dry run: would undo {operation.type.value} of "
                f"{operation.original_path} ({operation_id})[/yellow]"
            )
            return
        manager.undo_operation(operation_id)
    except UndoError as e:
        _fail(f"Error undoing operation: {e}")

    console.print(f"[green]✓ Undone operation: {operation_id}[/green]")


@cli.command("undo-session")
@click.argument("session_id")
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Preview what would be undone without undoing it",
)
@click.pass_obj
def undo_session(manager: UndoManager, session_id: str, dry_run: bool) -> None:
    """Undo all operations in SESSION_ID, newest first."""
    try:
        session = manager.get_session(session_id)
        if dry_run:
            pending = [op for op in reversed(session.operations) if not op.undone]
            console.print(
                f"[yellow]Dry run: would undo {len(pending)} operation(s) "
                f"in session {session_id}[/yellow]"
            )
            for op in pending:
                console.print(f"  {op.type.value} {op.original_path}")
            return
        manager.undo_session(session_id)
    except UndoError as e:
        console.print(
            f"[dim]Run 'history --session {session_id}' to see which "
            f"operations were undone.[/dim]"
        )
        _fail(f"Error undoing session: {e}")

    console.print(f"[green]✓ Undone session: {session_id}[/green]")


@cli.command("start-session")
@click.argument("name")
@click.argument("description", nargs=-1)
@click.pass_obj
def start_session(manager: UndoManager, name: str, description: Tuple[str, ...]) -> None:
    """Start a new session NAME; later operations are grouped under it."""
    text = " ".join(description)
    session = manager.start_session(name, text)

    console.print(f"[green]Started undo session: {session.name}[/green]")
    console.print(f"Session ID: {session.id}")
    if text:
        console.print(f"Description: {text}")


@cli.command("end-session")
@click.pass_obj
def end_session(manager: UndoManager) -> None:
    """End the current undo session."""
    manager.end_session()
    console.print("[green]Ended current undo session[/green]")


@cli.command("clear-history")
@click.argument("older_than", required=False)
@click.option("--all", "clear_all", is_flag=True, default=False, help="Clear all undo history")
@click.pass_obj
def clear_history(manager: UndoManager, older_than: Optional[str], clear_all: bool) -> None:
    """
    Clear undo history older than OLDER_THAN (default 24h).

    Removes the sessions and their backup files permanently.

    \b
    Examples:
        undo-tools clear-history 24h
        undo-tools clear-history 7d
        undo-tools clear-history --all
    """
    try:
        duration = parse_duration("0s" if clear_all else older_than or "24h")
    except ValueError as e:
        _fail(f"Invalid duration: {e}")

    try:
        purged = manager.clear_history(duration)
    except UndoError as e:
        _fail(f"Error clearing history: {e}")

    if clear_all:
        console.print(f"[green]✓ Cleared all undo history ({purged} session(s))[/green]")
    else:
        console.print(
            f"[green]✓ Cleared {purged} session(s) older than "
            f"{format_duration(duration)}[/green]"
        )


@cli.command("restore-file")
@click.argument("file_path", type=click.Path())
@click.option(
    "--dry-run",
    is_flag=True,
    default=False,
    help="Preview what would be restored without restoring it",
)
@click.pass_obj
def restore_file(manager: UndoManager, file_path: str, dry_run: bool) -> None:
    """Undo the most recent operation that touched FILE_PATH."""
    operation = manager.find_latest_operation(file_path)
    if operation is None:
        _fail(f"No undo history found for file: {file_path}")

    if dry_run:
        console.print(
            f"[yellow]Dry run: would restore {file_path} from operation "
            f"{operation.id}[/yellow]"
        )
        return

    try:
        manager.undo_operation(operation.id)
    except UndoError as e:
        _fail(f"Error restoring file: {e}")

    console.print(f"[green]✓ Restored file: {file_path}[/green]")


@cli.command()
@click.argument(
    "op_type",
    type=click.Choice([t.value for t in OperationType], case_sensitive=False),
)
@click.argument("path", type=click.Path())
@click.argument("new_path", type=click.Path(), required=False)
@click.pass_obj
def track(manager: UndoManager, op_type: str, path: str, new_path: Optional[str]) -> None:
    """
    Track an operation on PATH before performing it yourself.

    \b
    Examples:
        undo-tools track delete notes.txt && rm notes.txt
        undo-tools track move a.txt archive/a.txt && mv a.txt archive/a.txt
    """
    try:
        operation_id = manager.track_operation(op_type.lower(), path, new_path)
    except UndoError as e:
        _fail(f"Error tracking operation: {e}")

    console.print(f"[green]✓ Tracked {op_type.lower()} of {path}[/green]")
    console.print(f"Operation ID: {operation_id}")


def _display_session(session: UndoSession) -> None:
    """Display session details and its operations."""
    lines = [
        f"Session ID: {session.id}",
        f"Description: {session.description or '-'}",
        f"Created: {session.created_at.strftime(DATE_FORMAT)}",
        f"Total Operations: {len(session.operations)}",
        f"Undone: {'yes' if session.undone else 'no'}",
    ]
    if session.undone_at:
        lines.append(f"Undone At: {session.undone_at.strftime(DATE_FORMAT)}")

    console.print(Panel("\n".join(lines), title=session.name, border_style="cyan"))

    if not session.operations:
        return

    table = Table(title="Operations")
    table.add_column("#", style="dim")
    table.add_column("Type", style="cyan")
    table.add_column("Path")
    table.add_column("Size", justify="right")
    table.add_column("Undone")

    for index, op in enumerate(session.operations, start=1):
        path = str(op.original_path)
        if op.new_path:
            path += f" → {op.new_path}"
        table.add_row(
            str(index),
            op.type.value,
            path,
            format_bytes(op.size),
            "yes" if op.undone else "no",
        )

    console.print(table)

    for op in session.operations:
        console.print(f"[dim]{op.id}  {op.timestamp.strftime(DATE_FORMAT)}[/dim]")
        if op.backup_path:
            console.print(f"[dim]    backup: {op.backup_path}[/dim]")


if __name__ == "__main__":
    cli()
