"""Backup session: the explicit context passed to every orchestrator call."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from ..backup.branch_info import BranchInfoStore
from .config import BackupConfig, diff_config, load_backup_config
from .git_utils import SubprocessGit
from .project import find_git_root, private_state_dir
from .vcs import GitPort


@dataclass
class BackupSession:
    repo_path: str
    config: BackupConfig
    git: GitPort
    store: BranchInfoStore

    @property
    def branch_info_path(self) -> str:
        """Branch-info file location, relative to the repository root."""
        if self.config.persist_branch_info:
            return self.config.branch_info_path
        private = private_state_dir(self.repo_path) / "branchinfo.json"
        try:
            return str(private.relative_to(self.repo_path))
        except ValueError:
            return str(private)

    def reload(self, config: BackupConfig | None = None) -> dict[str, tuple[Any, Any]]:
        """Swap in a freshly loaded config and return what changed."""
        new = config if config is not None else load_backup_config(self.repo_path)
        changes = diff_config(self.config, new)
        self.config = new
        return changes


def open_session(
    repo_path: str | Path | None = None,
    *,
    config: BackupConfig | None = None,
    git: GitPort | None = None,
) -> BackupSession:
    """Build a session for *repo_path* (default: the enclosing git repo)."""
    if repo_path is None:
        repo_path = find_git_root()
    if repo_path is None:
        raise RuntimeError("Not inside a git repository. Run 'git init' first.")

    repo_path = str(Path(repo_path).resolve())
    if config is None:
        config = load_backup_config(repo_path)
    if git is None:
        git = SubprocessGit(repo_path, timeout=config.timeout_seconds, network_timeout=config.network_timeout_seconds)
    return BackupSession(repo_path=repo_path, config=config, git=git, store=BranchInfoStore(repo_path))
