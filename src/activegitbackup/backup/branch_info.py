"""File-backed mapping from working branch to its backup record.

The store keeps a single cache entry ``{path, mapping}``. A call for the
cached path is served from memory; a call for any other path reloads from
disk and replaces the entry. Changes made to the file by someone else are
not seen until the path changes or the store is recreated.
"""

from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field, replace
from pathlib import Path

from ..core.errors import StorageError
from .models import BackupRecord

logger = logging.getLogger(__name__)


@dataclass
class _CacheEntry:
    path: str
    mapping: dict[str, BackupRecord] = field(default_factory=dict)


class BranchInfoStore:
    def __init__(self, root: str | Path):
        self.root = Path(root)
        self._cache: _CacheEntry | None = None
        self._lock = threading.RLock()

    def _file(self, path: str) -> Path:
        return self.root / path

    def _read(self, path: str) -> dict[str, BackupRecord]:
        file_path = self._file(path)
        try:
            data = json.loads(file_path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, UnicodeDecodeError, json.JSONDecodeError):
            logger.warning("Unreadable branch info file %s; starting empty", file_path)
            return {}
        if not isinstance(data, dict):
            logger.warning("Branch info file %s is not a JSON object; starting empty", file_path)
            return {}
        try:
            return {str(branch): BackupRecord.from_dict(info) for branch, info in data.items()}
        except (KeyError, TypeError, AttributeError):
            logger.warning("Malformed record in branch info file %s; starting empty", file_path)
            return {}

    def _write(self, path: str) -> None:
        file_path = self._file(path)
        payload = {branch: record.to_dict() for branch, record in self._cache.mapping.items()}
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            file_path.write_text(json.dumps(payload, indent=4), encoding="utf-8")
        except OSError as e:
            raise StorageError(f"Failed to write branch info file {file_path}: {e}") from e

    def _current(self, path: str) -> dict[str, BackupRecord]:
        if self._cache is None or self._cache.path != path:
            self._cache = _CacheEntry(path=path, mapping=self._read(path))
        return self._cache.mapping

    def get_all(self, path: str) -> dict[str, BackupRecord]:
        """Return a copy of the mapping stored at *path*."""
        with self._lock:
            return dict(self._current(path))

    def get(self, path: str, branch_name: str) -> BackupRecord | None:
        return self.get_all(path).get(branch_name)

    def has(self, path: str, branch_name: str) -> bool:
        return self.get(path, branch_name) is not None

    def set(self, path: str, branch_name: str, record: BackupRecord) -> None:
        """Insert or overwrite *branch_name* and persist the whole mapping."""
        with self._lock:
            self._current(path)[branch_name] = record
            self._write(path)

    def delete(self, path: str, branch_name: str) -> None:
        with self._lock:
            self._current(path).pop(branch_name, None)
            self._write(path)

    def set_auto_backup_for_all(self, path: str, flag: bool) -> None:
        with self._lock:
            mapping = self._current(path)
            for branch_name, record in mapping.items():
                mapping[branch_name] = replace(record, auto_backup=flag)
            self._write(path)
