"""Per-repository serialization of backup operations.

Two layers guard a repository: a non-blocking ``threading.Lock`` for callers
inside one process, and an exclusive lock file in the git directory for
separate processes (CLI invocations, editor hooks, background workers).
The lock file holds the owner's PID; a file whose PID is gone is stale and
is broken on the next attempt.
"""

from __future__ import annotations

import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import LockBusy
from .project import git_dir

logger = logging.getLogger(__name__)

_LOCK_FILE_NAME = "activegitbackup.lock"

_process_locks: dict[str, threading.Lock] = {}
_process_locks_guard = threading.Lock()


def lock_path(repo_path: str | Path) -> Path:
    return git_dir(repo_path) / _LOCK_FILE_NAME


def read_lock_pid(path: Path) -> int | None:
    """Return the PID recorded in *path*, or None if absent or unreadable."""
    try:
        return int(path.read_text(encoding="utf-8").strip())
    except (ValueError, OSError):
        return None


def is_pid_alive(pid: int) -> bool:
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    except OSError:
        return False
    return True


def is_lock_stale(path: Path) -> bool:
    """True when *path* exists but its owner is no longer running."""
    if not path.exists():
        return False
    pid = read_lock_pid(path)
    return pid is None or not is_pid_alive(pid)


def _try_create(path: Path) -> bool:
    try:
        fd = os.open(path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError:
        return False
    with os.fdopen(fd, "w", encoding="utf-8") as f:
        f.write(f"{os.getpid()}\n")
    return True


def acquire_lock_file(path: Path) -> bool:
    """Create the lock file exclusively, breaking it once if stale."""
    path.parent.mkdir(parents=True, exist_ok=True)
    if _try_create(path):
        return True
    if is_lock_stale(path):
        logger.debug("Breaking stale lock %s (pid=%s)", path, read_lock_pid(path))
        try:
            path.unlink()
        except FileNotFoundError:
            pass
        return _try_create(path)
    return False


def release_lock_file(path: Path) -> None:
    try:
        path.unlink()
    except FileNotFoundError:
        pass


@contextmanager
def repo_lock(repo_path: str | Path) -> Iterator[None]:
    """Hold the repository lock for the duration of the block.

    Raises:
        LockBusy: another operation on the same repository is in flight.
    """
    key = str(Path(repo_path).resolve())
    with _process_locks_guard:
        thread_lock = _process_locks.setdefault(key, threading.Lock())

    if not thread_lock.acquire(blocking=False):
        raise LockBusy(f"Another backup operation is already running in {key}")
    try:
        path = lock_path(repo_path)
        if not acquire_lock_file(path):
            raise LockBusy(f"Another backup operation holds {path} (pid={read_lock_pid(path)})")
        try:
            yield
        finally:
            release_lock_file(path)
    finally:
        thread_lock.release()
