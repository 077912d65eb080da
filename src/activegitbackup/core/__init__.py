"""Core plumbing for Active Git Backup: config, git access, locking."""

from .config import BackupConfig, diff_config, load_backup_config, load_config, save_config, get_config_value
from .errors import BackupError, ErrorKind, GitCommandError, LockBusy, StorageError, VcsProtocolError
from .git_utils import SubprocessGit, get_current_branch
from .lock import repo_lock
from .project import find_git_root, git_dir
from .vcs import GitPort, GitResult

__all__ = [
    "BackupConfig",
    "diff_config",
    "load_backup_config",
    "load_config",
    "save_config",
    "get_config_value",
    "BackupError",
    "ErrorKind",
    "GitCommandError",
    "LockBusy",
    "StorageError",
    "VcsProtocolError",
    "SubprocessGit",
    "get_current_branch",
    "repo_lock",
    "find_git_root",
    "git_dir",
    "GitPort",
    "GitResult",
]
