"""Tests for the subprocess git port."""

from __future__ import annotations

import subprocess
from unittest.mock import patch

import pytest

from activegitbackup.core.errors import ErrorKind, VcsProtocolError
from activegitbackup.core.git_utils import SubprocessGit, get_current_branch, parse_divergence


class TestParseDivergence:
    def test_tab_separated(self):
        assert parse_divergence("3\t1") == (3, 1)

    @pytest.mark.parametrize("output", ["", "1", "a\tb", "1 2 3", "-1\t0"])
    def test_rejects_malformed(self, output):
        with pytest.raises(VcsProtocolError):
            parse_divergence(output)


class TestSubprocessGit:
    def test_current_branch(self, git_repo):
        port = SubprocessGit(str(git_repo))
        result = port.current_branch()
        assert result.ok
        assert result.value == "feature-1"
        assert get_current_branch(str(git_repo)) == "feature-1"

    def test_detached_head(self, git_repo):
        subprocess.run(["git", "-C", str(git_repo), "checkout", "--detach"], check=True, capture_output=True)
        assert not SubprocessGit(str(git_repo)).current_branch().ok
        assert get_current_branch(str(git_repo)) is None

    def test_list_branches(self, git_repo, origin):
        port = SubprocessGit(str(git_repo))
        assert "feature-1" in port.list_local_branches().value
        assert port.push("origin", "feature-1").ok
        assert port.list_remote_branches("origin").value == ["feature-1"]
        assert port.list_remote_branches("elsewhere").value == []

    def test_create_and_delete_branch(self, git_repo):
        port = SubprocessGit(str(git_repo))
        assert port.create_branch("shadow", "feature-1").ok
        assert port.rev_parse("shadow").value == port.rev_parse("feature-1").value
        assert port.delete_local_branch("shadow").ok
        assert not port.rev_parse("shadow").ok

    def test_checkout_unknown_branch(self, git_repo):
        result = SubprocessGit(str(git_repo)).checkout("no-such-branch")
        assert result.kind == ErrorKind.CHECKOUT_CONFLICT

    def test_commit_with_nothing_staged(self, git_repo):
        result = SubprocessGit(str(git_repo)).commit("empty")
        assert result.kind == ErrorKind.COMMIT_EMPTY

    def test_push_without_remote(self, git_repo):
        result = SubprocessGit(str(git_repo)).push("origin", "feature-1", force=True)
        assert result.kind == ErrorKind.PUSH_REJECTED

    def test_timeout_is_vcs_error(self, git_repo):
        port = SubprocessGit(str(git_repo))
        with patch(
            "activegitbackup.core.git_utils.subprocess.run",
            side_effect=subprocess.TimeoutExpired(cmd="git", timeout=1),
        ):
            result = port.fetch("origin")
        assert result.kind == ErrorKind.VCS_ERROR
        assert "timed out after 120s" in result.message

    def test_missing_git(self, git_repo):
        with patch("activegitbackup.core.git_utils.subprocess.run", side_effect=FileNotFoundError):
            result = SubprocessGit(str(git_repo)).stash()
        assert result.kind == ErrorKind.VCS_ERROR
        assert "not found" in result.message
