"""Project management commands: enable, disable, status, config, doctor."""

from __future__ import annotations

import json
import stat
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from . import app

console = Console()


def _hooks_dir(repo_path: str) -> Path:
    from ..core.project import git_dir

    return git_dir(repo_path) / "hooks"


def _install_git_hooks(repo_path: str) -> list[str]:
    """Install the post-commit hook. Returns list of installed hook names."""
    from ..hooks.handler import GIT_HOOK_MARKER, post_commit_script

    hooks_dir = _hooks_dir(repo_path)
    hooks_dir.mkdir(parents=True, exist_ok=True)

    hook_path = hooks_dir / "post-commit"
    if hook_path.exists():
        content = hook_path.read_text(encoding="utf-8")
        if GIT_HOOK_MARKER in content:
            return []
        # keep a foreign hook; chain ours after it, but before a final exit
        ours = post_commit_script().split("\n", 1)[1]
        body = content.rstrip("\n")
        head, sep, last = body.rpartition("\n")
        if sep and last.strip().split(" ")[0] == "exit":
            chained = head + "\n\n" + ours + last + "\n"
        else:
            chained = body + "\n\n" + ours
        hook_path.write_text(chained, encoding="utf-8")
    else:
        hook_path.write_text(post_commit_script(), encoding="utf-8")
    hook_path.chmod(hook_path.stat().st_mode | stat.S_IEXEC)
    return ["post-commit"]


def _remove_git_hooks(repo_path: str) -> list[str]:
    """Remove ActiveGitBackup git hooks. Returns list of removed hook names."""
    from ..hooks.handler import GIT_HOOK_MARKER, post_commit_script

    hook_path = _hooks_dir(repo_path) / "post-commit"
    if not hook_path.exists():
        return []
    content = hook_path.read_text(encoding="utf-8")
    if GIT_HOOK_MARKER not in content:
        return []

    if content == post_commit_script():
        hook_path.unlink()
    else:
        ours = post_commit_script().split("\n", 1)[1]
        hook_path.write_text(content.replace("\n\n" + ours, "\n").replace(ours, ""), encoding="utf-8")
    return ["post-commit"]


def _require_repo() -> str:
    from ..core.project import find_git_root

    repo_path = find_git_root()
    if not repo_path:
        console.print("[red]Not in a git repository.[/red]")
        raise typer.Exit(1)
    return repo_path


@app.command()
def enable(
    git_hooks: bool = typer.Option(True, "--git-hooks/--no-git-hooks", help="Install the post-commit hook"),
):
    """Enable Active Git Backup in this repository."""
    from ..core.config import save_config

    repo_path = _require_repo()
    save_config(repo_path, "backup.enabled", "true")
    console.print(f"[green]Active Git Backup enabled[/green] in {repo_path}")

    if git_hooks:
        installed = _install_git_hooks(repo_path)
        if installed:
            console.print(f"[green]Git hooks installed:[/green] {', '.join(installed)}")


@app.command()
def disable():
    """Disable Active Git Backup in this repository and remove its git hooks."""
    from ..core.config import save_config

    repo_path = _require_repo()
    save_config(repo_path, "backup.enabled", "false")
    console.print("[yellow]Active Git Backup disabled[/yellow]")

    removed = _remove_git_hooks(repo_path)
    if removed:
        console.print(f"[yellow]Git hooks removed:[/yellow] {', '.join(removed)}")


def _format_divergence(counts: tuple[int, int] | None, expected: tuple[int, int]) -> str:
    if counts is None:
        return "-"
    text = f"{counts[0]} / {counts[1]}"
    if tuple(counts) == expected:
        return f"[green]{text} (in sync)[/green]"
    return f"[yellow]{text} (expected {expected[0]} / {expected[1]})[/yellow]"


@app.command()
def status(
    branch: str | None = typer.Option(None, "--branch", "-b", help="Working branch (default: current branch)"),
):
    """Show the backup state of the working branch."""
    from ..backup.orchestrator import backup_status
    from .backup_cmds import _open_session

    session = _open_session()
    st = backup_status(session, branch)

    table = Table(title="Active Git Backup Status")
    table.add_column("Property", style="bold")
    table.add_column("Value")
    table.add_row("Repo", st["repo_path"])
    table.add_row("Enabled", "yes" if st["enabled"] else "[yellow]no[/yellow]")
    table.add_row("Remote", st["remote"])
    table.add_row("Branch", escape(st["branch"] or "(detached HEAD)"))

    record = st["record"]
    if record is None:
        table.add_row("Backup Branch", "None")
        console.print(table)
        console.print("Run [bold]agb create[/bold] to link a backup branch.")
        return

    table.add_row("Backup Branch", escape(record["backupBranchName"]))
    table.add_row("Auto Backup", "on" if record["autoBackup"] else "off")
    table.add_row("Local Backup Exists", "yes" if st["backup_branch_exists"] else "[red]no[/red]")
    table.add_row("Working / Local Backup", _format_divergence(st["local_divergence"], (0, 0)))
    table.add_row("Working / Remote Backup", _format_divergence(st["remote_divergence"], (0, 1)))
    console.print(table)


@app.command()
def config(
    key: str | None = typer.Argument(None, help="Config key (dotted notation, e.g. backup.remote)"),
    value: str | None = typer.Argument(None, help="Value to set"),
):
    """Get or set configuration."""
    from ..core.config import get_config_value, load_config, save_config
    from ..core.project import find_git_root

    repo_path = find_git_root()

    if key is None:
        cfg = load_config(repo_path)
        console.print_json(data=cfg)
        return

    if value is None:
        cfg = load_config(repo_path)
        val = get_config_value(cfg, key)
        if val is None:
            console.print(f"[yellow]Key not found:[/yellow] {key}")
        else:
            console.print(f"{key} = {val}")
        return

    session = None
    if repo_path:
        from ..core.session import open_session

        session = open_session(repo_path)

    save_config(repo_path, key, value)
    console.print(f"[green]Set[/green] {key} = {value}")

    if session is not None:
        from ..backup.orchestrator import reconcile_auto_backup

        changes = session.reload()

        def confirm(new_value: bool) -> bool:
            state = "on" if new_value else "off"
            return typer.confirm(f"Turn auto backup {state} for every existing backup branch too?", default=False)

        outcome = reconcile_auto_backup(session, changes, confirm)
        if outcome is not None:
            color = "green" if outcome.ok else "red"
            console.print(f"[{color}]{escape(outcome.message)}[/{color}]")


@app.command()
def doctor():
    """Diagnose Active Git Backup issues."""
    from ..core.git_utils import _run_git
    from ..core.lock import is_lock_stale, lock_path
    from ..core.session import open_session
    from ..hooks.handler import GIT_HOOK_MARKER

    issues: list[str] = []
    warnings: list[str] = []

    repo_path = _require_repo()
    session = open_session(repo_path)
    cfg = session.config

    if not cfg.enabled:
        warnings.append("Active Git Backup is disabled. Run 'agb enable'.")

    remotes = _run_git(["remote"], cwd=repo_path).stdout.split()
    if cfg.remote not in remotes:
        issues.append(f"Remote '{cfg.remote}' does not exist. Add it or set backup.remote.")

    info_file = Path(repo_path) / session.branch_info_path
    if info_file.exists():
        try:
            data = json.loads(info_file.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                issues.append(f"{session.branch_info_path} is not a JSON object.")
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
            issues.append(f"{session.branch_info_path} is unreadable: {e}")

    lock_file = lock_path(repo_path)
    if is_lock_stale(lock_file):
        warnings.append(f"Stale lock file {lock_file}; it will be broken on the next operation.")

    local = session.git.list_local_branches()
    if local.ok:
        for working, record in session.store.get_all(session.branch_info_path).items():
            if record.backup_branch_name not in local.value:
                warnings.append(
                    f"Backup branch '{record.backup_branch_name}' for '{working}' is missing. "
                    f"Run 'agb sync --branch {working}'."
                )

    if cfg.sync_on_commit:
        hook_path = _hooks_dir(repo_path) / "post-commit"
        if not hook_path.exists() or GIT_HOOK_MARKER not in hook_path.read_text(encoding="utf-8"):
            warnings.append("Post-commit hook not installed. Run 'agb enable'.")

    if issues:
        for issue in issues:
            console.print(f"[red]ERROR:[/red] {escape(issue)}")
    if warnings:
        for warning in warnings:
            console.print(f"[yellow]WARN:[/yellow] {escape(warning)}")
    if not issues and not warnings:
        console.print("[green]All checks passed.[/green]")
    if issues:
        raise typer.Exit(1)
