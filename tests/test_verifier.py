"""Tests for divergence checks."""

from __future__ import annotations

import subprocess

import pytest

from activegitbackup.backup.verifier import divergence, is_in_sync
from activegitbackup.core.errors import GitCommandError, VcsProtocolError
from activegitbackup.core.git_utils import SubprocessGit
from activegitbackup.core.vcs import GitResult


def _git(repo, *args):
    subprocess.run(["git", "-C", str(repo), *args], check=True, capture_output=True)


@pytest.fixture
def port(git_repo):
    _git(git_repo, "branch", "shadow")
    _git(git_repo, "checkout", "shadow")
    (git_repo / "snap.txt").write_text("snapshot\n", encoding="utf-8")
    _git(git_repo, "add", "snap.txt")
    _git(git_repo, "commit", "-m", "snapshot")
    _git(git_repo, "checkout", "feature-1")
    return SubprocessGit(str(git_repo))


class TestIsInSync:
    def test_same_branch(self, port):
        assert is_in_sync(port, "feature-1", "feature-1", 0, 0) is True

    def test_one_ahead(self, port):
        assert is_in_sync(port, "feature-1", "shadow", 0, 1) is True

    def test_wrong_expectations(self, port):
        assert is_in_sync(port, "feature-1", "shadow", 1, 1) is False
        assert is_in_sync(port, "feature-1", "shadow", 0, 2) is False

    def test_both_sides_diverged(self, git_repo, port):
        (git_repo / "notes.txt").write_text("changed\n", encoding="utf-8")
        _git(git_repo, "commit", "-am", "work")
        report = divergence(port, "feature-1", "shadow")
        assert (report.ahead_a, report.ahead_b) == (1, 1)
        assert "1 commit(s) ahead" in report.describe()


class TestErrors:
    def test_unknown_ref_raises(self, port):
        with pytest.raises(GitCommandError):
            divergence(port, "feature-1", "no-such-branch")

    def test_unparseable_output_raises(self, port, monkeypatch):
        monkeypatch.setattr(port, "_call", lambda args, kind=None, network=False: GitResult.success("garbage"))
        with pytest.raises(VcsProtocolError):
            is_in_sync(port, "feature-1", "shadow", 0, 1)
