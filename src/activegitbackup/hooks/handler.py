"""Hook dispatch for editor save events and the git post-commit hook."""

from __future__ import annotations

import sys

GIT_HOOK_MARKER = "ActiveGitBackup"


def handle_hook(hook_type: str | None, *, repo_path: str | None = None, inline: bool = False) -> int:
    """Dispatch *hook_type* to its handler.

    Always returns exit code 0; hooks never fail the editor or git.
    """
    handlers = {
        "save": _handle_save,
        "post-commit": _handle_post_commit,
    }

    handler = handlers.get(hook_type or "")
    if handler is None:
        return 0

    try:
        return handler(repo_path, inline)
    except Exception as e:
        print(f"ActiveGitBackup hook error ({hook_type}): {e}", file=sys.stderr)
        return 0


def _handle_save(repo_path: str | None, inline: bool) -> int:
    from ..backup.auto_backup import run_auto_backup

    run_auto_backup(repo_path, background=not inline)
    return 0


def _handle_post_commit(repo_path: str | None, inline: bool) -> int:
    from ..backup.auto_backup import run_post_commit_sync

    run_post_commit_sync(repo_path)
    return 0


def post_commit_script() -> str:
    """Shell body installed as ``.git/hooks/post-commit``."""
    return f"#!/bin/sh\n# {GIT_HOOK_MARKER} post-commit hook\nagb hook post-commit || true\n"
