"""Divergence checks between two branch tips using commit counts only."""

from __future__ import annotations

from ..core.errors import GitCommandError
from ..core.vcs import GitPort
from .models import DivergenceReport


def divergence(git: GitPort, branch_a: str, branch_b: str) -> DivergenceReport:
    """Count commits reachable from each branch but not the other.

    Raises:
        VcsProtocolError: the count output could not be parsed.
        GitCommandError: the count command itself failed (e.g. unknown ref).
    """
    result = git.count_divergence(branch_a, branch_b)
    if not result.ok:
        raise GitCommandError(f"Could not compare {branch_a} and {branch_b}: {result.message}")
    ahead_a, ahead_b = result.value
    return DivergenceReport(branch_a=branch_a, branch_b=branch_b, ahead_a=ahead_a, ahead_b=ahead_b)


def is_in_sync(git: GitPort, branch_a: str, branch_b: str, expected_ahead_a: int, expected_ahead_b: int) -> bool:
    return divergence(git, branch_a, branch_b).matches(expected_ahead_a, expected_ahead_b)
