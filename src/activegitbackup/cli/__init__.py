"""CLI interface using Typer."""

import logging
import sys

import typer

app = typer.Typer(name="agb", help="Active Git Backup: keep uncommitted work backed up on a remote branch")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every git call to stderr"),
):
    """Active Git Backup."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


# Import subcommand modules to register them
from . import backup_cmds  # noqa: F401, E402
from . import project_cmds  # noqa: F401, E402
from . import hook_cmds  # noqa: F401, E402
from . import mcp_cmds  # noqa: F401, E402
