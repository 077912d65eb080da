"""MCP server for Active Git Backup: backup branch tools for editors and agents."""

from __future__ import annotations

import json
from typing import Any

try:
    from mcp.server.fastmcp import FastMCP
except ImportError:
    FastMCP = None

if FastMCP:
    mcp = FastMCP("activegitbackup")
else:
    mcp = None


def _open_session(repo_path: str | None = None):
    """Open a session for *repo_path* or the repo enclosing the working directory."""
    from ..core.project import find_git_root
    from ..core.session import open_session

    repo_path = repo_path or find_git_root()
    if not repo_path:
        return None
    return open_session(repo_path)


def _not_in_repo() -> str:
    return json.dumps({"ok": False, "message": "Not in a git repository", "kind": "precondition_failed"})


def _dump(outcome) -> str:
    return json.dumps(outcome.to_dict())


if mcp:

    @mcp.tool()
    async def agb_create(branch: str | None = None, backup_branch: str | None = None, repo_path: str | None = None) -> str:
        """Create a backup branch for a working branch.

        Args:
            branch: Working branch (default: current branch)
            backup_branch: Backup branch name (default: configured prefix + branch)
            repo_path: Repository root (default: repo of the server's working directory)
        """
        from ..backup.orchestrator import create_backup_branch

        session = _open_session(repo_path)
        if session is None:
            return _not_in_repo()
        return _dump(create_backup_branch(session, branch, backup_branch))

    @mcp.tool()
    async def agb_retire(branch: str | None = None, repo_path: str | None = None) -> str:
        """Unlink a working branch and delete its local backup branch. The remote backup is kept."""
        from ..backup.orchestrator import retire_backup_branch

        session = _open_session(repo_path)
        if session is None:
            return _not_in_repo()
        return _dump(retire_backup_branch(session, branch))

    @mcp.tool()
    async def agb_sync(branch: str | None = None, repo_path: str | None = None) -> str:
        """Move the local backup branch to the working branch tip. Call after every commit."""
        from ..backup.orchestrator import sync_backup_branch

        session = _open_session(repo_path)
        if session is None:
            return _not_in_repo()
        return _dump(sync_backup_branch(session, branch))

    @mcp.tool()
    async def agb_backup(branch: str | None = None, repo_path: str | None = None) -> str:
        """Push the uncommitted work of a working branch to its remote backup branch."""
        from ..backup.orchestrator import backup

        session = _open_session(repo_path)
        if session is None:
            return _not_in_repo()
        return _dump(backup(session, branch))

    @mcp.tool()
    async def agb_load(
        branch: str | None = None,
        backup_branch: str | None = None,
        has_unsaved_changes: bool = False,
        force: bool = False,
        repo_path: str | None = None,
    ) -> str:
        """Restore the latest remote backup as uncommitted changes on the working branch.

        Args:
            branch: Working branch (default: current branch)
            backup_branch: Backup branch to load from when none is linked
            has_unsaved_changes: The editor holds unsaved documents; the load is refused
            force: Load even when the backup is out of sync with the working branch
            repo_path: Repository root (default: repo of the server's working directory)
        """
        from ..backup.orchestrator import load_backup

        session = _open_session(repo_path)
        if session is None:
            return _not_in_repo()
        outcome = load_backup(
            session,
            branch,
            has_dirty_documents=has_unsaved_changes,
            backup_branch=backup_branch,
            confirm=lambda message: force,
        )
        return _dump(outcome)

    @mcp.tool()
    async def agb_status(branch: str | None = None, repo_path: str | None = None) -> str:
        """Show the backup record and divergence counts for a working branch."""
        from ..backup.orchestrator import backup_status

        session = _open_session(repo_path)
        if session is None:
            return json.dumps({"error": "Not in a git repository"})
        status: dict[str, Any] = backup_status(session, branch)
        return json.dumps(status)


def run_server():
    """Run the MCP server (stdio transport)."""
    if mcp is None:
        raise ImportError("mcp is not installed")
    mcp.run()
