"""Auto-backup: background snapshot on save, local backup resync after commit."""

from __future__ import annotations

import logging
import subprocess
import sys

from ..core.errors import BackupError

logger = logging.getLogger(__name__)


def trigger_background_backup(repo_path: str) -> bool:
    """Spawn a detached subprocess to run a backup. Returns True if spawned."""
    try:
        subprocess.Popen(
            [sys.executable, "-m", "activegitbackup.backup.auto_backup", "backup", repo_path],
            start_new_session=True,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        return True
    except OSError:
        logger.debug("Failed to spawn background backup", exc_info=True)
        return False


def run_auto_backup(repo_path: str | None = None, *, background: bool = True, session=None) -> bool:
    """Back up the current branch if it is linked with auto backup on.

    Returns True when a backup was started (background) or succeeded (inline).
    """
    from ..core.session import open_session
    from .orchestrator import backup, should_auto_backup

    if session is None:
        session = open_session(repo_path)
    if not should_auto_backup(session):
        logger.debug("Auto backup not enabled for the current branch in %s", session.repo_path)
        return False
    if background:
        return trigger_background_backup(session.repo_path)

    outcome = backup(session)
    if not outcome.ok:
        logger.debug("Auto backup failed: %s", outcome.message)
    return outcome.ok


def run_post_commit_sync(repo_path: str | None = None, *, session=None) -> bool:
    """Move the local backup branch to the new working tip after a commit."""
    from ..core.session import open_session
    from .orchestrator import sync_backup_branch

    if session is None:
        session = open_session(repo_path)
    if not (session.config.enabled and session.config.sync_on_commit):
        return False

    current = session.git.current_branch()
    if not current.ok or not session.store.has(session.branch_info_path, current.value):
        return False

    outcome = sync_backup_branch(session, current.value)
    if not outcome.ok:
        logger.debug("Post-commit resync skipped: %s", outcome.message)
    return outcome.ok


def run_backup(repo_path: str) -> None:
    """Entry point for the background subprocess."""
    from ..core.session import open_session
    from .orchestrator import backup

    try:
        outcome = backup(open_session(repo_path))
        if not outcome.ok:
            logger.debug("Background backup failed: %s", outcome.message)
    except (BackupError, RuntimeError, OSError):
        logger.debug("Background backup failed for %s", repo_path, exc_info=True)


if __name__ == "__main__":
    if len(sys.argv) >= 3 and sys.argv[1] == "backup":
        run_backup(sys.argv[2])
