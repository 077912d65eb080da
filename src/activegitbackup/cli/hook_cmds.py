"""Hook entry points called by editors and git."""

from __future__ import annotations

import typer

from . import app

hook_app = typer.Typer(help="Hook handlers (called by editor save events and git hooks)")
app.add_typer(hook_app, name="hook")


@hook_app.command("save")
def hook_save(
    inline: bool = typer.Option(False, "--inline", help="Back up in this process instead of a detached one"),
):
    """Back up the current branch if auto backup is on for it."""
    from ..hooks.handler import handle_hook

    raise typer.Exit(handle_hook("save", inline=inline))


@hook_app.command("post-commit")
def hook_post_commit():
    """Move the local backup branch to the new commit."""
    from ..hooks.handler import handle_hook

    raise typer.Exit(handle_hook("post-commit"))
