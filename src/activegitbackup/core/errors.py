"""Error taxonomy shared by the VCS port, the branch-info store and the orchestrator.

Notes
-----
Git failures travel as tagged ``GitResult`` values carrying an ``ErrorKind``.
Exceptions are reserved for the store, the verifier and the repository lock;
the orchestrator converts all of them into an ``Outcome`` before returning.
"""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    PRECONDITION_FAILED = "precondition_failed"
    NAME_COLLISION = "name_collision"
    CHECKOUT_CONFLICT = "checkout_conflict"
    COMMIT_EMPTY = "commit_empty"
    PUSH_REJECTED = "push_rejected"
    VCS_PROTOCOL_ERROR = "vcs_protocol_error"
    VCS_ERROR = "vcs_error"
    STORAGE_ERROR = "storage_error"
    PARTIAL_FAILURE = "partial_failure"


class BackupError(RuntimeError):
    """Base exception for all active-git-backup failures."""

    kind = ErrorKind.VCS_ERROR


class StorageError(BackupError):
    """Raised when the branch-info file cannot be written."""

    kind = ErrorKind.STORAGE_ERROR


class VcsProtocolError(BackupError):
    """Raised when git output does not have the expected shape."""

    kind = ErrorKind.VCS_PROTOCOL_ERROR


class GitCommandError(BackupError):
    """Raised when a git query needed for a decision fails outright."""

    kind = ErrorKind.VCS_ERROR


class LockBusy(BackupError):
    """Raised when another operation already holds the repository lock."""

    kind = ErrorKind.PRECONDITION_FAILED
