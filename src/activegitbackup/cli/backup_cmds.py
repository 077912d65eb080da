"""Backup branch commands: create, retire, sync, backup, load, list, auto."""

from __future__ import annotations

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import app

console = Console()

_BRANCH_HELP = "Working branch (default: current branch)"


def _open_session():
    from ..core.session import open_session

    try:
        return open_session()
    except RuntimeError:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)


def _report(outcome) -> None:
    """Print an outcome; exit 1 when it failed."""
    from ..core.errors import ErrorKind

    if outcome.ok:
        console.print(f"[green]{escape(outcome.message)}[/green]")
        return
    color = "yellow" if outcome.kind == ErrorKind.PRECONDITION_FAILED else "red"
    console.print(f"[{color}]{escape(outcome.message)}[/{color}]")
    raise typer.Exit(1)


@app.command()
def create(
    branch: str | None = typer.Option(None, "--branch", "-b", help=_BRANCH_HELP),
    name: str | None = typer.Option(None, "--name", "-n", help="Backup branch name (default: prefix + branch)"),
):
    """Create a backup branch for the working branch."""
    from ..backup.orchestrator import create_backup_branch

    session = _open_session()
    _report(create_backup_branch(session, branch, name))


@app.command()
def retire(
    branch: str | None = typer.Option(None, "--branch", "-b", help=_BRANCH_HELP),
):
    """Unlink the working branch and delete its local backup branch."""
    from ..backup.orchestrator import retire_backup_branch

    session = _open_session()
    _report(retire_backup_branch(session, branch))


@app.command()
def sync(
    branch: str | None = typer.Option(None, "--branch", "-b", help=_BRANCH_HELP),
):
    """Move the local backup branch to the working branch tip (run after committing)."""
    from ..backup.orchestrator import sync_backup_branch

    session = _open_session()
    _report(sync_backup_branch(session, branch))


@app.command()
def backup(
    branch: str | None = typer.Option(None, "--branch", "-b", help=_BRANCH_HELP),
):
    """Push the uncommitted work to the remote backup branch."""
    from ..backup.orchestrator import backup as run_backup

    session = _open_session()
    _report(run_backup(session, branch))


@app.command()
def load(
    branch: str | None = typer.Option(None, "--branch", "-b", help=_BRANCH_HELP),
    backup_branch: str | None = typer.Option(None, "--backup-branch", help="Backup branch to load from"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Load even when the backup is out of sync"),
    unsaved: bool = typer.Option(
        False, "--unsaved/--no-unsaved", help="The editor holds unsaved documents; the load is refused"
    ),
):
    """Restore the latest remote backup as uncommitted changes."""
    from ..backup.orchestrator import load_backup

    session = _open_session()
    working = branch
    if working is None:
        current = session.git.current_branch()
        working = current.value if current.ok else None

    if backup_branch is None and working and not session.store.has(session.branch_info_path, working):
        console.print(f'[yellow]No backup branch is linked to "{escape(working)}".[/yellow]')
        backup_branch = typer.prompt("Backup branch to load from")

    if yes:
        confirm = lambda message: True  # noqa: E731
    else:
        confirm = lambda message: typer.confirm(message, default=False)  # noqa: E731

    _report(
        load_backup(session, working, has_dirty_documents=unsaved, backup_branch=backup_branch, confirm=confirm)
    )


@app.command("list")
def list_branches():
    """List working branches and their backup branches."""
    session = _open_session()
    records = session.store.get_all(session.branch_info_path)
    if not records:
        console.print("No backup branches yet. Run [bold]agb create[/bold] on a working branch.")
        return

    table = Table(title=f"Backup Branches ({len(records)})")
    table.add_column("Working Branch", style="bold")
    table.add_column("Backup Branch")
    table.add_column("Auto Backup")
    for working, record in sorted(records.items()):
        table.add_row(working, record.backup_branch_name, "on" if record.auto_backup else "off")
    console.print(table)


@app.command()
def auto(
    state: str = typer.Argument(..., help="on or off"),
):
    """Turn auto backup on or off for every backup branch."""
    from ..backup.orchestrator import update_auto_backup

    value = state.strip().lower()
    if value not in ("on", "off"):
        raise typer.BadParameter("state must be 'on' or 'off'")
    session = _open_session()
    _report(update_auto_backup(session, value == "on"))
