"""Backup branch state machine: create, retire, sync, backup and restore.

A working branch is linked to a backup branch through a ``BackupRecord``.
The local backup branch always points at the same commit as the working
branch; the remote backup branch is one commit ahead of it, holding the
latest snapshot of the uncommitted work.

Every public operation takes the ``BackupSession`` first, runs under the
repository lock, issues its git calls strictly in order and returns an
``Outcome``. Git failures are matched on ``GitResult`` values; exceptions
from the store and the verifier are turned into outcomes here.
"""

from __future__ import annotations

import functools
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable
from uuid import uuid4

from ..core.errors import BackupError, ErrorKind, LockBusy, StorageError
from ..core.lock import repo_lock
from . import verifier
from .models import BackupRecord, Outcome

if TYPE_CHECKING:
    from ..core.session import BackupSession

logger = logging.getLogger(__name__)

BACKUP_COMMIT_MESSAGE = "active-git-backup: backup commit [{id}]"
BRANCH_INFO_COMMIT_MESSAGE = "active-git-backup: create backup branch for [{branch}]"


class _Steps:
    """Ordered log of completed steps for one operation."""

    def __init__(self, irreversible: tuple[str, ...] = ()):
        self.completed: list[str] = []
        self.irreversible = set(irreversible)

    def done(self, step: str) -> None:
        self.completed.append(step)

    @property
    def last(self) -> str | None:
        return self.completed[-1] if self.completed else None

    def fail(self, kind: ErrorKind, message: str) -> Outcome:
        logger.warning("%s (last step: %s)", message, self.last or "none")
        if self.irreversible.intersection(self.completed):
            return Outcome(
                ok=False,
                message=f"{message} (after '{self.last}', which cannot be rolled back)",
                kind=ErrorKind.PARTIAL_FAILURE,
                cause=kind,
                step=self.last,
                steps=list(self.completed),
            )
        return Outcome(ok=False, message=message, kind=kind, step=self.last, steps=list(self.completed))

    def succeed(self, message: str, value: Any = None) -> Outcome:
        logger.info(message)
        return Outcome.success(message, value=value, steps=self.completed)


def _serialized(func):
    @functools.wraps(func)
    def wrapper(session: BackupSession, *args, **kwargs) -> Outcome:
        try:
            with repo_lock(session.repo_path):
                return func(session, *args, **kwargs)
        except LockBusy as e:
            return Outcome.precondition("busy", str(e))

    return wrapper


def _guard(session: BackupSession, working_branch: str | None) -> tuple[str | None, Outcome | None]:
    """Check the enabled toggle and resolve the working branch."""
    if not session.config.enabled:
        return None, Outcome.precondition("disabled", "Active Git Backup is disabled for this repository.")
    if working_branch:
        return working_branch, None
    result = session.git.current_branch()
    if not result.ok:
        return None, Outcome.precondition("no_branch", f"Could not determine the current branch: {result.message}")
    return result.value, None


def _ensure_on(session: BackupSession, branch: str):
    current = session.git.current_branch()
    if current.ok and current.value == branch:
        return current
    return session.git.checkout(branch)


def _abort(session: BackupSession, working: str, outcome: Outcome) -> Outcome:
    """Return to *working* after a mid-sequence failure."""
    back = _ensure_on(session, working)
    if not back.ok:
        outcome.message += f'; could not check out "{working}" again: {back.message}'
    return outcome


@contextmanager
def _branch_info_kept(session: BackupSession, working: str):
    """Put the branch-info file back if switching branches removed or replaced it.

    An untracked info file swept into a snapshot becomes tracked on the backup
    branch, and checking out the working branch again deletes it.
    """
    info_file = Path(session.repo_path) / session.branch_info_path
    try:
        saved = info_file.read_bytes()
    except FileNotFoundError:
        saved = None
    try:
        yield
    finally:
        if saved is not None:
            _put_back(session, working, info_file, saved)


def _put_back(session: BackupSession, working: str, info_file: Path, saved: bytes) -> None:
    try:
        current = info_file.read_bytes()
    except FileNotFoundError:
        current = None
    if current == saved:
        return
    on = session.git.current_branch()
    if not (on.ok and on.value == working):
        logger.warning("Left on another branch; not restoring %s", info_file)
        return
    try:
        info_file.parent.mkdir(parents=True, exist_ok=True)
        info_file.write_bytes(saved)
    except OSError:
        logger.error("Could not restore branch info file %s", info_file, exc_info=True)
        return
    logger.info("Restored branch info file %s", info_file)


def _not_linked(action: str, working: str) -> Outcome:
    return Outcome.precondition("not_linked", f'{action}: "{working}" doesn\'t have a backup branch')


@_serialized
def create_backup_branch(
    session: BackupSession,
    working_branch: str | None = None,
    backup_branch: str | None = None,
) -> Outcome:
    """Link *working_branch* to a new backup branch at its current tip."""
    working, blocked = _guard(session, working_branch)
    if blocked:
        return blocked
    logger.info('Creating backup branch for "%s"', working)

    git = session.git
    config = session.config
    path = session.branch_info_path
    records = session.store.get_all(path)

    if working in records:
        existing = records[working].backup_branch_name
        return Outcome.precondition(
            "already_linked", f'Create Backup Branch failed: "{working}" already has a backup branch "{existing}"'
        )
    backup_names = {record.backup_branch_name for record in records.values()}
    if working in backup_names:
        return Outcome.precondition("is_backup_branch", f'Create Backup Branch failed: "{working}" is itself a backup branch')

    default_name = f"{config.branch_prefix}{working}"
    name = backup_branch or default_name
    local = git.list_local_branches()
    if not local.ok:
        return Outcome(ok=False, kind=ErrorKind.VCS_ERROR, message=f"Could not list local branches: {local.message}")
    remote = git.list_remote_branches(config.remote)
    if not remote.ok:
        return Outcome(ok=False, kind=ErrorKind.VCS_ERROR, message=f"Could not list remote branches: {remote.message}")
    # a remote backup left behind by retire may be reclaimed by its own working branch
    remote_taken = name in remote.value and name != default_name
    if name in backup_names or name in local.value or remote_taken:
        return Outcome(
            ok=False,
            kind=ErrorKind.NAME_COLLISION,
            message=f'Create Backup Branch failed: intended backup branch name "{name}" already exists',
        )
    if name in remote.value:
        logger.info('Reclaiming remote backup branch "%s/%s" for "%s"', config.remote, name, working)

    steps = _Steps(irreversible=("commit_branch_info",))
    unstaged = git.reset_mixed()
    if not unstaged.ok:
        return steps.fail(ErrorKind.VCS_ERROR, f"Create Backup Branch failed: could not unstage changes: {unstaged.message}")
    steps.done("unstage")

    record = BackupRecord(backup_branch_name=name, auto_backup=config.default_auto_backup)
    persisted = False
    if config.commit_branch_info and config.persist_branch_info:
        try:
            session.store.set(path, working, record)
        except StorageError as e:
            return steps.fail(ErrorKind.STORAGE_ERROR, f"Create Backup Branch failed: {e}")
        persisted = True
        steps.done("persist_record")

        committed = git.add(path)
        if committed.ok:
            committed = git.commit(BRANCH_INFO_COMMIT_MESSAGE.format(branch=working))
        if not committed.ok:
            git.reset_mixed()
            try:
                session.store.delete(path, working)
            except StorageError:
                logger.warning("Could not roll back branch info record for %s", working, exc_info=True)
            return steps.fail(
                committed.kind or ErrorKind.VCS_ERROR,
                f"Create Backup Branch failed while committing {path}: {committed.message}",
            )
        steps.done("commit_branch_info")

    created = git.create_branch(name, working)
    if not created.ok:
        return steps.fail(
            ErrorKind.VCS_ERROR, f'Create Backup Branch failed: could not create "{name}": {created.message}'
        )
    steps.done("create_branch")

    if not persisted:
        try:
            session.store.set(path, working, record)
        except StorageError as e:
            git.delete_local_branch(name)
            return steps.fail(ErrorKind.STORAGE_ERROR, f'Create Backup Branch failed: {e}; removed "{name}" again')
        steps.done("persist_record")

    return steps.succeed(f'Created backup branch "{name}" for "{working}"', value=name)


@_serialized
def retire_backup_branch(session: BackupSession, working_branch: str | None = None) -> Outcome:
    """Unlink *working_branch* and delete its local backup branch.

    The remote backup branch and its history are left untouched.
    """
    working, blocked = _guard(session, working_branch)
    if blocked:
        return blocked
    logger.info('Retiring backup branch for "%s"', working)

    path = session.branch_info_path
    record = session.store.get(path, working)
    if record is None:
        return _not_linked("Retire Backup Branch aborted", working)
    name = record.backup_branch_name

    steps = _Steps(irreversible=("delete_record",))
    try:
        session.store.delete(path, working)
    except StorageError as e:
        return steps.fail(ErrorKind.STORAGE_ERROR, f"Retire Backup Branch failed: {e}")
    steps.done("delete_record")

    local = session.git.list_local_branches()
    if local.ok and name not in local.value:
        return steps.succeed(f'Retired backup branch for "{working}" (local "{name}" was already gone)', value=name)

    deleted = session.git.delete_local_branch(name)
    if not deleted.ok:
        return steps.fail(ErrorKind.VCS_ERROR, f'Retire Backup Branch failed: could not delete "{name}": {deleted.message}')
    steps.done("delete_branch")
    return steps.succeed(f'Retired backup branch "{name}" for "{working}"', value=name)


@_serialized
def sync_backup_branch(session: BackupSession, working_branch: str | None = None) -> Outcome:
    """Recreate the local backup branch at the working branch tip.

    Commits that only existed on the local backup branch are dropped from it.
    """
    working, blocked = _guard(session, working_branch)
    if blocked:
        return blocked
    logger.info('Syncing backup branch for "%s"', working)

    record = session.store.get(session.branch_info_path, working)
    if record is None:
        return _not_linked("Sync Backup Branch aborted", working)
    name = record.backup_branch_name
    git = session.git

    steps = _Steps(irreversible=("delete_branch",))
    local = git.list_local_branches()
    if not local.ok:
        return steps.fail(ErrorKind.VCS_ERROR, f"Sync Backup Branch failed: could not list branches: {local.message}")
    if name in local.value:
        deleted = git.delete_local_branch(name)
        if not deleted.ok:
            return steps.fail(ErrorKind.VCS_ERROR, f'Sync Backup Branch failed: could not delete "{name}": {deleted.message}')
        steps.done("delete_branch")

    created = git.create_branch(name, working)
    if not created.ok:
        return steps.fail(ErrorKind.VCS_ERROR, f'Sync Backup Branch failed: could not recreate "{name}": {created.message}')
    steps.done("create_branch")
    return steps.succeed(f'Synced backup branch "{name}" to "{working}"', value=name)


def _snapshot(session: BackupSession, backup_name: str, steps: _Steps) -> Outcome | None:
    """Commit the working-tree changes on the backup branch and force-push them."""
    git = session.git
    remote = session.config.remote

    staged = git.add(".")
    if not staged.ok:
        git.reset_mixed()
        return steps.fail(ErrorKind.VCS_ERROR, f"Backup failed while staging changes: {staged.message}")
    steps.done("stage")

    committed = git.commit(BACKUP_COMMIT_MESSAGE.format(id=uuid4()))
    if not committed.ok:
        git.reset_mixed()
        if committed.kind == ErrorKind.COMMIT_EMPTY:
            return steps.fail(ErrorKind.COMMIT_EMPTY, "Backup skipped: there are no changes to back up")
        return steps.fail(committed.kind or ErrorKind.VCS_ERROR, f"Backup failed while committing: {committed.message}")
    steps.done("commit")

    # history of the remote backup branch is rewritten on every cycle
    pushed = git.push(remote, backup_name, force=True)
    if not pushed.ok:
        # the snapshot never reached the remote: drop it and keep its changes in the working tree
        dropped = git.reset_soft("HEAD~1")
        if dropped.ok:
            git.reset_mixed()
        else:
            logger.warning("Could not drop unpushed snapshot on %s: %s", backup_name, dropped.message)
        return steps.fail(
            ErrorKind.PUSH_REJECTED, f'Backup failed: could not push "{backup_name}" to "{remote}": {pushed.message}'
        )
    steps.done("push")

    # local backup branch mirrors the working branch; the remote stays one commit ahead
    rewound = git.reset_mixed("HEAD~1")
    if not rewound.ok:
        return steps.fail(ErrorKind.VCS_ERROR, f'Backup could not rewind local "{backup_name}": {rewound.message}')
    steps.done("rewind")
    return None


@_serialized
def backup(session: BackupSession, working_branch: str | None = None) -> Outcome:
    """Snapshot the uncommitted work of *working_branch* to the remote backup branch.

    The workspace always ends on *working_branch*, whatever step failed.
    """
    working, blocked = _guard(session, working_branch)
    if blocked:
        return blocked
    logger.info('Backing up current branch "%s"', working)

    record = session.store.get(session.branch_info_path, working)
    if record is None:
        return Outcome.precondition(
            "not_linked", f'Backup failed: no backup branch found for "{working}". Create a backup branch first.'
        )
    name = record.backup_branch_name
    git = session.git

    steps = _Steps(irreversible=("push",))
    unstaged = git.reset_mixed()
    if not unstaged.ok:
        return steps.fail(ErrorKind.VCS_ERROR, f"Backup failed: could not unstage changes: {unstaged.message}")
    steps.done("unstage")

    checked_out = git.checkout(name)
    if not checked_out.ok:
        outcome = steps.fail(
            ErrorKind.CHECKOUT_CONFLICT,
            f'Backup failed during checkout of "{name}"; it is likely out of sync with "{working}". '
            f"Run 'agb sync' after committing or pulling: {checked_out.message}",
        )
        return _abort(session, working, outcome)
    steps.done("checkout_backup")

    failure: Outcome | None = None
    try:
        failure = _snapshot(session, name, steps)
    finally:
        returned = git.checkout(working)

    if not returned.ok:
        outcome = steps.fail(
            ErrorKind.CHECKOUT_CONFLICT,
            f'Backup could not check out "{working}" again; workspace left on "{name}": {returned.message}',
        )
        if failure is not None:
            outcome.message = f"{failure.message}; {outcome.message}"
        return outcome
    steps.done("checkout_working")

    if failure is not None:
        failure.steps = list(steps.completed)
        return failure
    return steps.succeed(f'Backed up "{working}" to "{session.config.remote}/{name}"', value=name)


def _restore(
    session: BackupSession,
    working: str,
    name: str,
    steps: _Steps,
    confirm: Callable[[str], bool] | None,
) -> Outcome:
    git = session.git
    remote = session.config.remote
    remote_ref = f"{remote}/{name}"

    checked_out = git.checkout(name)
    if not checked_out.ok:
        outcome = steps.fail(ErrorKind.CHECKOUT_CONFLICT, f'Load Backup failed: could not check out "{name}": {checked_out.message}')
        return _abort(session, working, outcome)
    steps.done("checkout_backup")

    fetched = git.fetch(remote)
    if not fetched.ok:
        outcome = steps.fail(ErrorKind.VCS_ERROR, f'Load Backup failed: could not fetch "{remote}": {fetched.message}')
        return _abort(session, working, outcome)
    steps.done("fetch")

    reset = git.reset_hard(remote_ref)
    if not reset.ok:
        outcome = steps.fail(ErrorKind.VCS_ERROR, f'Load Backup failed: could not reset to "{remote_ref}": {reset.message}')
        return _abort(session, working, outcome)
    steps.done("reset_hard")

    try:
        report = verifier.divergence(git, working, name)
    except BackupError as e:
        return _abort(session, working, steps.fail(e.kind, f"Load Backup failed while verifying the backup: {e}"))

    if not report.matches(0, 1):
        back = git.checkout(working)
        if not back.ok:
            return steps.fail(ErrorKind.CHECKOUT_CONFLICT, f'Load Backup could not check out "{working}": {back.message}')
        steps.done("checkout_working")
        question = (
            f'Backup "{remote_ref}" is out of sync with "{working}": {report.describe()} '
            "(expected 0 and 1). Load it anyway?"
        )
        if confirm is None or not confirm(question):
            outcome = Outcome.precondition("declined", f"Load Backup cancelled: {report.describe()}")
            outcome.step = steps.last
            outcome.steps = list(steps.completed)
            return outcome
        again = git.checkout(name)
        if not again.ok:
            outcome = steps.fail(ErrorKind.CHECKOUT_CONFLICT, f'Load Backup failed: could not check out "{name}": {again.message}')
            return _abort(session, working, outcome)
        steps.done("checkout_backup")

    # un-commit the snapshot so its changes carry over to the working branch
    rewound = git.reset_mixed("HEAD~1")
    if not rewound.ok:
        outcome = steps.fail(ErrorKind.VCS_ERROR, f"Load Backup failed while unpacking the snapshot: {rewound.message}")
        return _abort(session, working, outcome)
    steps.done("rewind")

    back = git.checkout(working)
    if not back.ok:
        return steps.fail(
            ErrorKind.CHECKOUT_CONFLICT,
            f'Load Backup could not carry the changes to "{working}"; workspace left on "{name}": {back.message}',
        )
    steps.done("checkout_working")
    return steps.succeed(f'Loaded backup "{remote_ref}" into "{working}"')


@_serialized
def load_backup(
    session: BackupSession,
    working_branch: str | None = None,
    *,
    has_dirty_documents: bool = False,
    backup_branch: str | None = None,
    confirm: Callable[[str], bool] | None = None,
) -> Outcome:
    """Restore the latest remote snapshot as uncommitted changes on *working_branch*.

    Args:
        has_dirty_documents: the editor has unsaved documents; aborts the load.
        backup_branch: explicit backup branch, used when no record exists.
        confirm: asked whether to continue when the backup is out of sync.
            Without it an out-of-sync backup is never loaded.

    ``Outcome.value`` is True once the changes are on the working branch.
    """
    working, blocked = _guard(session, working_branch)
    if blocked:
        blocked.value = False
        return blocked
    logger.info('Loading backup for "%s"', working)

    if has_dirty_documents:
        return Outcome.precondition(
            "dirty_workspace", "Load Backup aborted: Detected unsaved changes in your current workspace", value=False
        )

    name = backup_branch
    if name is None:
        record = session.store.get(session.branch_info_path, working)
        if record is None:
            return Outcome.precondition(
                "not_linked", f'Load Backup failed: No backup branch found for "{working}"', value=False
            )
        name = record.backup_branch_name

    steps = _Steps(irreversible=("reset_hard",))
    with _branch_info_kept(session, working):
        stashed = session.git.stash()
        if not stashed.ok:
            outcome = steps.fail(ErrorKind.VCS_ERROR, f"Load Backup failed: could not stash local changes: {stashed.message}")
            outcome.value = False
            return outcome
        steps.done("stash")

        try:
            outcome = _restore(session, working, name, steps, confirm)
        except KeyboardInterrupt:
            _ensure_on(session, working)
            raise
    outcome.value = outcome.ok
    return outcome


@_serialized
def update_auto_backup(session: BackupSession, flag: bool) -> Outcome:
    """Set the auto-backup flag on every record at once."""
    path = session.branch_info_path
    try:
        session.store.set_auto_backup_for_all(path, flag)
    except StorageError as e:
        return Outcome(ok=False, kind=ErrorKind.STORAGE_ERROR, message=str(e))
    count = len(session.store.get_all(path))
    state = "enabled" if flag else "disabled"
    return Outcome.success(f"Auto backup {state} for {count} backup branch(es)", value=count)


def should_auto_backup(session: BackupSession, working_branch: str | None = None) -> bool:
    if not session.config.enabled:
        return False
    if working_branch is None:
        current = session.git.current_branch()
        if not current.ok:
            return False
        working_branch = current.value
    try:
        record = session.store.get(session.branch_info_path, working_branch)
    except (BackupError, OSError):
        logger.debug("Auto backup check failed for %s", working_branch, exc_info=True)
        return False
    return bool(record and record.auto_backup)


def reconcile_auto_backup(
    session: BackupSession,
    changes: dict[str, tuple[Any, Any]],
    confirm: Callable[[bool], bool],
) -> Outcome | None:
    """Offer to apply a changed ``default_auto_backup`` to all existing records."""
    change = changes.get("default_auto_backup")
    if change is None:
        return None
    _, new_value = change
    if not confirm(new_value):
        return None
    return update_auto_backup(session, new_value)


def backup_status(session: BackupSession, working_branch: str | None = None) -> dict[str, Any]:
    """Describe the backup state of *working_branch* without changing anything."""
    status: dict[str, Any] = {
        "enabled": session.config.enabled,
        "repo_path": session.repo_path,
        "remote": session.config.remote,
        "branch": working_branch,
        "record": None,
        "backup_branch_exists": False,
        "local_divergence": None,
        "remote_divergence": None,
    }
    git = session.git
    if working_branch is None:
        current = git.current_branch()
        if not current.ok:
            return status
        working_branch = status["branch"] = current.value

    record = session.store.get(session.branch_info_path, working_branch)
    if record is None:
        return status
    status["record"] = record.to_dict()
    name = record.backup_branch_name

    local = git.list_local_branches()
    if local.ok and name in local.value:
        status["backup_branch_exists"] = True
        try:
            report = verifier.divergence(git, working_branch, name)
            status["local_divergence"] = (report.ahead_a, report.ahead_b)
        except BackupError:
            logger.debug("Local divergence check failed for %s", name, exc_info=True)

    remote = git.list_remote_branches(session.config.remote)
    if remote.ok and name in remote.value:
        try:
            report = verifier.divergence(git, working_branch, f"{session.config.remote}/{name}")
            status["remote_divergence"] = (report.ahead_a, report.ahead_b)
        except BackupError:
            logger.debug("Remote divergence check failed for %s", name, exc_info=True)
    return status
