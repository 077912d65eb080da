"""Git port implementation over the git executable, plus shared git state helpers."""

from __future__ import annotations

import logging
import re
import subprocess

from .errors import ErrorKind, VcsProtocolError
from .vcs import GitResult

logger = logging.getLogger(__name__)

_NOTHING_TO_COMMIT = re.compile(r"nothing (added )?to commit|no changes added to commit")


def _run_git(args: list[str], cwd: str, timeout: int = 30) -> subprocess.CompletedProcess:
    return subprocess.run(
        ["git"] + args,
        cwd=cwd,
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )


def get_current_branch(repo_path: str) -> str | None:
    """Get current branch name via git rev-parse --abbrev-ref HEAD."""
    try:
        result = _run_git(["rev-parse", "--abbrev-ref", "HEAD"], cwd=repo_path, timeout=5)
        if result.returncode == 0:
            branch = result.stdout.strip()
            return branch if branch != "HEAD" else None
    except (subprocess.TimeoutExpired, FileNotFoundError):
        pass
    return None


def parse_divergence(output: str) -> tuple[int, int]:
    """Parse ``git rev-list --left-right --count`` output into ``(left, right)``."""
    parts = output.split()
    if len(parts) != 2 or not all(part.isdigit() for part in parts):
        raise VcsProtocolError(f"Unexpected rev-list count output: {output!r}")
    return int(parts[0]), int(parts[1])


class SubprocessGit:
    """``GitPort`` backed by ``git`` subprocesses run in *repo_path*."""

    def __init__(self, repo_path: str, timeout: int = 30, network_timeout: int = 120):
        self.repo_path = repo_path
        self.timeout = timeout
        self.network_timeout = network_timeout

    def _call(self, args: list[str], kind: ErrorKind = ErrorKind.VCS_ERROR, network: bool = False) -> GitResult:
        timeout = self.network_timeout if network else self.timeout
        command = " ".join(args)
        try:
            proc = _run_git(args, cwd=self.repo_path, timeout=timeout)
        except subprocess.TimeoutExpired:
            logger.warning("git %s timed out after %ss", command, timeout)
            return GitResult.failure(kind, f"git {args[0]} timed out after {timeout}s")
        except FileNotFoundError:
            return GitResult.failure(ErrorKind.VCS_ERROR, "git executable not found")

        output = "\n".join(part for part in (proc.stderr.strip(), proc.stdout.strip()) if part)
        logger.debug("git %s (rc=%s): %s", command, proc.returncode, output)
        if proc.returncode != 0:
            return GitResult.failure(kind, output or f"git {args[0]} exited with {proc.returncode}")
        return GitResult.success(proc.stdout.strip(), message=output)

    def _list_refs(self, prefix: str) -> GitResult:
        result = self._call(["for-each-ref", "--format=%(refname)", prefix])
        if not result.ok:
            return result
        names = [line[len(prefix) :] for line in result.value.splitlines() if line.startswith(prefix)]
        return GitResult.success(names)

    def current_branch(self) -> GitResult:
        result = self._call(["rev-parse", "--abbrev-ref", "HEAD"])
        if result.ok and result.value == "HEAD":
            return GitResult.failure(ErrorKind.VCS_ERROR, "HEAD is detached")
        return result

    def list_local_branches(self) -> GitResult:
        return self._list_refs("refs/heads/")

    def list_remote_branches(self, remote: str) -> GitResult:
        result = self._list_refs(f"refs/remotes/{remote}/")
        if not result.ok:
            return result
        return GitResult.success([name for name in result.value if name != "HEAD"])

    def rev_parse(self, ref: str) -> GitResult:
        return self._call(["rev-parse", "--verify", "--quiet", f"{ref}^{{commit}}"])

    def create_branch(self, name: str, at_ref: str) -> GitResult:
        return self._call(["branch", name, at_ref])

    def delete_local_branch(self, name: str) -> GitResult:
        return self._call(["branch", "-D", name])

    def checkout(self, name: str) -> GitResult:
        return self._call(["checkout", name, "--"], kind=ErrorKind.CHECKOUT_CONFLICT)

    def reset_soft(self, ref: str) -> GitResult:
        return self._call(["reset", "--soft", ref])

    def reset_mixed(self, ref: str | None = None) -> GitResult:
        args = ["reset", "--mixed"]
        if ref:
            args.append(ref)
        return self._call(args)

    def reset_hard(self, ref: str) -> GitResult:
        return self._call(["reset", "--hard", ref])

    def stash(self) -> GitResult:
        return self._call(["stash"])

    def add(self, pathspec: str) -> GitResult:
        return self._call(["add", "--", pathspec])

    def commit(self, message: str) -> GitResult:
        result = self._call(["commit", "-m", message])
        if not result.ok and _NOTHING_TO_COMMIT.search(result.message):
            return GitResult.failure(ErrorKind.COMMIT_EMPTY, result.message)
        return result

    def push(self, remote: str, branch: str, force: bool = False) -> GitResult:
        args = ["push"]
        if force:
            args.append("--force")
        args += [remote, branch]
        return self._call(args, kind=ErrorKind.PUSH_REJECTED, network=True)

    def fetch(self, remote: str) -> GitResult:
        return self._call(["fetch", remote], network=True)

    def count_divergence(self, ref_a: str, ref_b: str) -> GitResult:
        result = self._call(["rev-list", "--left-right", "--count", f"{ref_a}...{ref_b}"])
        if not result.ok:
            return result
        return GitResult.success(parse_divergence(result.value))
