"""Shared fixtures: real git repositories and an in-memory git double."""

from __future__ import annotations

import subprocess

import pytest

from activegitbackup.core.errors import ErrorKind
from activegitbackup.core.git_utils import parse_divergence
from activegitbackup.core.vcs import GitResult


def git(repo, *args: str) -> str:
    result = subprocess.run(["git", "-C", str(repo), *args], check=True, capture_output=True, text=True)
    return result.stdout.strip()


@pytest.fixture
def git_repo(tmp_path):
    """Create a real git repo with one commit, checked out on ``feature-1``."""
    repo = tmp_path / "repo"
    repo.mkdir()
    subprocess.run(["git", "init", str(repo)], check=True, capture_output=True)
    git(repo, "config", "user.email", "test@test.com")
    git(repo, "config", "user.name", "Test")
    git(repo, "config", "commit.gpgsign", "false")
    (repo / "notes.txt").write_text("first line\n", encoding="utf-8")
    git(repo, "add", "notes.txt")
    git(repo, "commit", "-m", "init")
    git(repo, "checkout", "-b", "feature-1")
    return repo


@pytest.fixture
def origin(tmp_path, git_repo):
    """Bare repository registered as ``origin`` of *git_repo*."""
    bare = tmp_path / "origin.git"
    subprocess.run(["git", "init", "--bare", str(bare)], check=True, capture_output=True)
    git(git_repo, "remote", "add", "origin", str(bare))
    return bare


@pytest.fixture(autouse=True)
def isolated_global_config(tmp_path, monkeypatch):
    """Isolate global config to temp dir."""
    config_path = tmp_path / "global_agb" / "config.toml"
    monkeypatch.setattr("activegitbackup.core.config._GLOBAL_CONFIG_PATH", config_path)
    return config_path


class FakeGit:
    """In-memory ``GitPort``.

    Branches are commit-id lists (oldest first). ``contents`` maps a commit id
    to the set of files it snapshots; ``worktree`` and ``staged`` hold the
    uncommitted files. ``fail`` injects failures, keyed either by method name
    or by ``"<method>:<first argument>"``; a value is a ``GitResult`` to
    return or a callable to invoke instead of the method.
    """

    def __init__(self, current: str | None = "feature-1"):
        self.branches: dict[str, list[str]] = {"main": ["c0"], "feature-1": ["c0", "c1"]}
        self.remote_branches: dict[str, list[str]] = {}
        self.remote_name = "origin"
        self.current = current
        self.contents: dict[str, set[str]] = {}
        self.worktree: set[str] = set()
        self.staged: set[str] = set()
        self.stashes: list[set[str]] = []
        self.calls: list[tuple] = []
        self.fail: dict[str, object] = {}
        self.divergence_output: str | None = None
        self._counter = 0

    def _injected(self, name: str, args: tuple) -> GitResult | None:
        self.calls.append((name, *args))
        keys = ([f"{name}:{args[0]}"] if args else []) + [name]
        for key in keys:
            if key in self.fail:
                injected = self.fail[key]
                return injected() if callable(injected) else injected
        return None

    def _resolve(self, ref: str) -> list[str] | None:
        if ref == "HEAD":
            return self.branches[self.current]
        if ref == "HEAD~1":
            return self.branches[self.current][:-1]
        if ref.startswith(f"{self.remote_name}/"):
            return self.remote_branches.get(ref[len(self.remote_name) + 1 :])
        return self.branches.get(ref)

    def commit_on(self, branch: str, files: set[str] | None = None) -> str:
        """Test helper: append a commit to *branch* without going through the port."""
        self._counter += 1
        commit_id = f"x{self._counter}"
        self.branches[branch].append(commit_id)
        self.contents[commit_id] = set(files or ())
        return commit_id

    def tip(self, branch: str) -> str:
        return self.branches[branch][-1]

    def current_branch(self):
        injected = self._injected("current_branch", ())
        if injected is not None:
            return injected
        if self.current is None:
            return GitResult.failure(ErrorKind.VCS_ERROR, "HEAD is detached")
        return GitResult.success(self.current)

    def list_local_branches(self):
        return self._injected("list_local_branches", ()) or GitResult.success(sorted(self.branches))

    def list_remote_branches(self, remote):
        injected = self._injected("list_remote_branches", (remote,))
        if injected is not None:
            return injected
        if remote != self.remote_name:
            return GitResult.success([])
        return GitResult.success(sorted(self.remote_branches))

    def rev_parse(self, ref):
        injected = self._injected("rev_parse", (ref,))
        if injected is not None:
            return injected
        history = self._resolve(ref)
        if not history:
            return GitResult.failure(ErrorKind.VCS_ERROR, f"unknown revision {ref}")
        return GitResult.success(history[-1])

    def create_branch(self, name, at_ref):
        injected = self._injected("create_branch", (name, at_ref))
        if injected is not None:
            return injected
        if name in self.branches:
            return GitResult.failure(ErrorKind.VCS_ERROR, f"a branch named '{name}' already exists")
        self.branches[name] = list(self._resolve(at_ref))
        return GitResult.success()

    def delete_local_branch(self, name):
        injected = self._injected("delete_local_branch", (name,))
        if injected is not None:
            return injected
        if name == self.current or name not in self.branches:
            return GitResult.failure(ErrorKind.VCS_ERROR, f"cannot delete branch '{name}'")
        del self.branches[name]
        return GitResult.success()

    def checkout(self, name):
        injected = self._injected("checkout", (name,))
        if injected is not None:
            return injected
        if name not in self.branches:
            return GitResult.failure(ErrorKind.CHECKOUT_CONFLICT, f"pathspec '{name}' did not match")
        self.current = name
        return GitResult.success()

    def reset_soft(self, ref):
        injected = self._injected("reset_soft", (ref,))
        if injected is not None:
            return injected
        popped = self.branches[self.current].pop()
        self.staged |= self.contents.get(popped, set())
        return GitResult.success()

    def reset_mixed(self, ref=None):
        injected = self._injected("reset_mixed", (ref,) if ref else ())
        if injected is not None:
            return injected
        if ref == "HEAD~1":
            popped = self.branches[self.current].pop()
            self.worktree |= self.contents.get(popped, set())
        self.worktree |= self.staged
        self.staged = set()
        return GitResult.success()

    def reset_hard(self, ref):
        injected = self._injected("reset_hard", (ref,))
        if injected is not None:
            return injected
        history = self._resolve(ref)
        if history is None:
            return GitResult.failure(ErrorKind.VCS_ERROR, f"unknown revision {ref}")
        self.branches[self.current] = list(history)
        self.worktree = set()
        self.staged = set()
        return GitResult.success()

    def stash(self):
        injected = self._injected("stash", ())
        if injected is not None:
            return injected
        if self.worktree or self.staged:
            self.stashes.append(self.worktree | self.staged)
            self.worktree = set()
            self.staged = set()
        return GitResult.success()

    def add(self, pathspec):
        injected = self._injected("add", (pathspec,))
        if injected is not None:
            return injected
        if pathspec == ".":
            self.staged |= self.worktree
            self.worktree = set()
        else:
            self.staged.add(pathspec)
            self.worktree.discard(pathspec)
        return GitResult.success()

    def commit(self, message):
        injected = self._injected("commit", (message,))
        if injected is not None:
            return injected
        if not self.staged:
            return GitResult.failure(ErrorKind.COMMIT_EMPTY, "nothing to commit, working tree clean")
        self.commit_on(self.current, self.staged)
        self.staged = set()
        return GitResult.success()

    def push(self, remote, branch, force=False):
        injected = self._injected("push", (remote, branch, force))
        if injected is not None:
            return injected
        self.remote_branches[branch] = list(self.branches[branch])
        return GitResult.success()

    def fetch(self, remote):
        return self._injected("fetch", (remote,)) or GitResult.success()

    def count_divergence(self, ref_a, ref_b):
        injected = self._injected("count_divergence", (ref_a, ref_b))
        if injected is not None:
            return injected
        if self.divergence_output is not None:
            return GitResult.success(parse_divergence(self.divergence_output))
        a = self._resolve(ref_a)
        b = self._resolve(ref_b)
        if a is None or b is None:
            return GitResult.failure(ErrorKind.VCS_ERROR, "unknown revision")
        return GitResult.success((len(set(a) - set(b)), len(set(b) - set(a))))

    def mutations(self) -> list[str]:
        readonly = {"current_branch", "list_local_branches", "list_remote_branches", "rev_parse", "count_divergence"}
        return [call[0] for call in self.calls if call[0] not in readonly]


@pytest.fixture
def fake_git():
    return FakeGit()


@pytest.fixture
def fake_session(tmp_path, fake_git):
    """Session over *fake_git* with the branch-info file under ``tmp_path``."""
    from activegitbackup.backup.branch_info import BranchInfoStore
    from activegitbackup.core.config import BackupConfig
    from activegitbackup.core.session import BackupSession

    root = tmp_path / "work"
    (root / ".git").mkdir(parents=True)
    return BackupSession(repo_path=str(root), config=BackupConfig(), git=fake_git, store=BranchInfoStore(root))
