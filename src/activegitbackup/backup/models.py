"""Value types for the backup state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from ..core.errors import ErrorKind


@dataclass(frozen=True)
class BackupRecord:
    """Links a working branch to its backup branch."""

    backup_branch_name: str
    auto_backup: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BackupRecord:
        return cls(
            backup_branch_name=str(data["backupBranchName"]),
            auto_backup=bool(data.get("autoBackup", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"autoBackup": self.auto_backup, "backupBranchName": self.backup_branch_name}


@dataclass(frozen=True)
class DivergenceReport:
    """Commits unique to each side of ``branch_a...branch_b``."""

    branch_a: str
    branch_b: str
    ahead_a: int
    ahead_b: int

    def matches(self, expected_ahead_a: int, expected_ahead_b: int) -> bool:
        return self.ahead_a == expected_ahead_a and self.ahead_b == expected_ahead_b

    def describe(self) -> str:
        return (
            f'"{self.branch_a}" is {self.ahead_a} commit(s) ahead and '
            f'"{self.branch_b}" is {self.ahead_b} commit(s) ahead'
        )


@dataclass
class Outcome:
    """Result of a caller-facing backup operation.

    ``kind`` is set on failure. When a failure happens after an irreversible
    step, ``kind`` is ``PARTIAL_FAILURE`` and ``cause`` holds the original
    error kind. ``step`` names the last step that completed.
    """

    ok: bool
    message: str
    value: Any = None
    kind: ErrorKind | None = None
    cause: ErrorKind | None = None
    reason: str | None = None
    step: str | None = None
    steps: list[str] = field(default_factory=list)

    @classmethod
    def success(cls, message: str, value: Any = None, steps: list[str] | None = None) -> Outcome:
        steps = list(steps or [])
        return cls(ok=True, message=message, value=value, step=steps[-1] if steps else None, steps=steps)

    @classmethod
    def precondition(cls, reason: str, message: str, value: Any = None) -> Outcome:
        return cls(ok=False, message=message, value=value, kind=ErrorKind.PRECONDITION_FAILED, reason=reason)

    def to_dict(self) -> dict[str, Any]:
        return {
            "ok": self.ok,
            "message": self.message,
            "value": self.value,
            "kind": self.kind.value if self.kind else None,
            "cause": self.cause.value if self.cause else None,
            "reason": self.reason,
            "step": self.step,
            "steps": list(self.steps),
        }
