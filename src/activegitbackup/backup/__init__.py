"""Backup branch lifecycle: records, divergence checks and the orchestrator."""

from .branch_info import BranchInfoStore
from .models import BackupRecord, DivergenceReport, Outcome
from .orchestrator import (
    backup,
    backup_status,
    create_backup_branch,
    load_backup,
    reconcile_auto_backup,
    retire_backup_branch,
    should_auto_backup,
    sync_backup_branch,
    update_auto_backup,
)
from .verifier import divergence, is_in_sync

__all__ = [
    "BranchInfoStore",
    "BackupRecord",
    "DivergenceReport",
    "Outcome",
    "backup",
    "backup_status",
    "create_backup_branch",
    "load_backup",
    "reconcile_auto_backup",
    "retire_backup_branch",
    "should_auto_backup",
    "sync_backup_branch",
    "update_auto_backup",
    "divergence",
    "is_in_sync",
]
