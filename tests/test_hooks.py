"""Tests for hook dispatch."""

from __future__ import annotations

from unittest.mock import patch

from activegitbackup.hooks.handler import GIT_HOOK_MARKER, handle_hook, post_commit_script


class TestHandleHook:
    def test_unknown_type_is_ignored(self):
        assert handle_hook("PreCommit") == 0
        assert handle_hook(None) == 0

    def test_save_spawns_background_backup(self):
        with patch("activegitbackup.backup.auto_backup.run_auto_backup") as mock_run:
            assert handle_hook("save", repo_path="/tmp/repo") == 0
        mock_run.assert_called_once_with("/tmp/repo", background=True)

    def test_save_inline(self):
        with patch("activegitbackup.backup.auto_backup.run_auto_backup") as mock_run:
            handle_hook("save", repo_path="/tmp/repo", inline=True)
        mock_run.assert_called_once_with("/tmp/repo", background=False)

    def test_post_commit(self):
        with patch("activegitbackup.backup.auto_backup.run_post_commit_sync") as mock_sync:
            assert handle_hook("post-commit", repo_path="/tmp/repo") == 0
        mock_sync.assert_called_once_with("/tmp/repo")

    def test_errors_never_fail_the_caller(self, capsys):
        with patch("activegitbackup.backup.auto_backup.run_post_commit_sync", side_effect=RuntimeError("boom")):
            assert handle_hook("post-commit") == 0
        assert "ActiveGitBackup hook error (post-commit): boom" in capsys.readouterr().err


class TestPostCommitScript:
    def test_script_carries_marker(self):
        script = post_commit_script()
        assert script.startswith("#!/bin/sh\n")
        assert GIT_HOOK_MARKER in script
        assert "agb hook post-commit" in script
