"""Repository discovery helpers."""

from __future__ import annotations

import subprocess
from pathlib import Path

STATE_DIR_NAME = "activegitbackup"


def find_git_root(path: str | Path = ".") -> str | None:
    """Find git repo root from given path."""
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--show-toplevel"],
            cwd=str(path),
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return result.stdout.strip()
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def git_dir(repo_path: str | Path) -> Path:
    """Return the git directory of *repo_path* (``.git`` for a plain checkout)."""
    dot_git = Path(repo_path) / ".git"
    if dot_git.is_dir():
        return dot_git
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--absolute-git-dir"],
            cwd=str(repo_path),
            capture_output=True,
            text=True,
            timeout=5,
        )
        if result.returncode == 0:
            return Path(result.stdout.strip())
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return dot_git


def private_state_dir(repo_path: str | Path) -> Path:
    """Directory for state that must never be staged by ``git add .``."""
    return git_dir(repo_path) / STATE_DIR_NAME
