"""VCS port: the git primitives the backup state machine is allowed to use."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol

from .errors import ErrorKind


@dataclass(frozen=True)
class GitResult:
    """Tagged result of a single git call.

    ``ok`` is True on success and ``value`` holds the parsed payload, if any.
    On failure ``kind`` names the error class and ``message`` carries git's
    own explanation.
    """

    ok: bool
    value: Any = None
    kind: ErrorKind | None = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None, message: str = "") -> GitResult:
        return cls(ok=True, value=value, message=message)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> GitResult:
        return cls(ok=False, kind=kind, message=message)


class GitPort(Protocol):
    """Abstract git operations used by the orchestrator.

    Every method returns a ``GitResult``; none raises for an ordinary git
    failure. ``count_divergence`` is the one exception: unparseable output
    raises ``VcsProtocolError``.
    """

    def current_branch(self) -> GitResult:
        """Return the checked-out branch name (failure on detached HEAD)."""

    def list_local_branches(self) -> GitResult:
        """Return all local branch names."""

    def list_remote_branches(self, remote: str) -> GitResult:
        """Return remote-tracking branch names under *remote*, without the remote prefix."""

    def rev_parse(self, ref: str) -> GitResult:
        """Return the commit hash *ref* points at."""

    def create_branch(self, name: str, at_ref: str) -> GitResult:
        """Create branch *name* at *at_ref* without checking it out."""

    def delete_local_branch(self, name: str) -> GitResult:
        """Force-delete the local branch *name*."""

    def checkout(self, name: str) -> GitResult:
        """Check out *name*; fails with CHECKOUT_CONFLICT if local changes would be lost."""

    def reset_soft(self, ref: str) -> GitResult:
        """Move HEAD to *ref*, keeping index and working tree."""

    def reset_mixed(self, ref: str | None = None) -> GitResult:
        """Move HEAD to *ref* (default HEAD) and unstage everything."""

    def reset_hard(self, ref: str) -> GitResult:
        """Move HEAD to *ref*, discarding index and working tree changes."""

    def stash(self) -> GitResult:
        """Stash uncommitted changes."""

    def add(self, pathspec: str) -> GitResult:
        """Stage *pathspec*."""

    def commit(self, message: str) -> GitResult:
        """Commit the index; fails with COMMIT_EMPTY when nothing is staged."""

    def push(self, remote: str, branch: str, force: bool = False) -> GitResult:
        """Push *branch* to *remote*; fails with PUSH_REJECTED."""

    def fetch(self, remote: str) -> GitResult:
        """Fetch *remote*."""

    def count_divergence(self, ref_a: str, ref_b: str) -> GitResult:
        """Return ``(ahead_a, ahead_b)`` commit counts for the symmetric difference."""
