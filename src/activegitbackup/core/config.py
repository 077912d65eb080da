"""Configuration management: TOML-based, global + per-repo merge."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

_GLOBAL_CONFIG_PATH = Path.home() / ".activegitbackup" / "config.toml"

DEFAULT_CONFIG: dict[str, Any] = {
    "backup": {
        "enabled": True,
        "remote": "origin",
        "branch_prefix": "agb-backup-",
        "default_auto_backup": False,
        "sync_on_commit": True,
    },
    "branch_info": {
        "persist": True,
        "path": ".agbinfo",
        "commit": False,
    },
    "git": {
        "timeout_seconds": 30,
        "network_timeout_seconds": 120,
    },
}


@dataclass(frozen=True)
class BackupConfig:
    """Immutable per-session settings consumed by the orchestrator."""

    enabled: bool = True
    remote: str = "origin"
    branch_prefix: str = "agb-backup-"
    default_auto_backup: bool = False
    sync_on_commit: bool = True
    persist_branch_info: bool = True
    branch_info_path: str = ".agbinfo"
    commit_branch_info: bool = False
    timeout_seconds: int = 30
    network_timeout_seconds: int = 120

    @classmethod
    def from_dict(cls, config: dict[str, Any]) -> BackupConfig:
        backup = config.get("backup", {})
        branch_info = config.get("branch_info", {})
        git = config.get("git", {})
        return cls(
            enabled=bool(backup.get("enabled", True)),
            remote=str(backup.get("remote", "origin")),
            branch_prefix=str(backup.get("branch_prefix", "agb-backup-")),
            default_auto_backup=bool(backup.get("default_auto_backup", False)),
            sync_on_commit=bool(backup.get("sync_on_commit", True)),
            persist_branch_info=bool(branch_info.get("persist", True)),
            branch_info_path=str(branch_info.get("path", ".agbinfo")),
            commit_branch_info=bool(branch_info.get("commit", False)),
            timeout_seconds=int(git.get("timeout_seconds", 30)),
            network_timeout_seconds=int(git.get("network_timeout_seconds", 120)),
        )


def diff_config(old: BackupConfig, new: BackupConfig) -> dict[str, tuple[Any, Any]]:
    """Return ``{field: (old, new)}`` for every setting that changed."""
    changes: dict[str, tuple[Any, Any]] = {}
    for f in fields(BackupConfig):
        before = getattr(old, f.name)
        after = getattr(new, f.name)
        if before != after:
            changes[f.name] = (before, after)
    return changes


def _deep_merge(base: dict, override: dict) -> dict:
    """Deep merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _local_config_path(repo_path: str | Path) -> Path:
    return Path(repo_path) / ".activegitbackup" / "config.toml"


def load_config(repo_path: str | Path | None = None) -> dict[str, Any]:
    """Load merged config: defaults <- global <- per-repo."""
    config = _deep_merge(DEFAULT_CONFIG, {})

    if _GLOBAL_CONFIG_PATH.exists():
        with open(_GLOBAL_CONFIG_PATH, "rb") as f:
            global_conf = tomllib.load(f)
        config = _deep_merge(config, global_conf)

    if repo_path:
        local_path = _local_config_path(repo_path)
        if local_path.exists():
            with open(local_path, "rb") as f:
                local_conf = tomllib.load(f)
            config = _deep_merge(config, local_conf)

    return config


def load_backup_config(repo_path: str | Path | None = None) -> BackupConfig:
    return BackupConfig.from_dict(load_config(repo_path))


def save_config(repo_path: str | Path | None, key: str, value: str) -> None:
    """Save a config value. Uses per-repo config if repo_path given, else global."""
    if repo_path:
        config_path = _local_config_path(repo_path)
    else:
        config_path = _GLOBAL_CONFIG_PATH

    config_path.parent.mkdir(parents=True, exist_ok=True)

    existing: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path, "rb") as f:
            existing = tomllib.load(f)

    parts = key.split(".")
    target = existing
    for part in parts[:-1]:
        if part not in target:
            target[part] = {}
        target = target[part]

    target[parts[-1]] = _parse_value(value)

    _write_toml(config_path, existing)


def get_config_value(config: dict, key: str) -> Any:
    """Get a nested config value by dotted key."""
    parts = key.split(".")
    current = config
    for part in parts:
        if isinstance(current, dict) and part in current:
            current = current[part]
        else:
            return None
    return current


def _parse_value(value: str) -> Any:
    if value.lower() in ("true", "yes", "on"):
        return True
    if value.lower() in ("false", "no", "off"):
        return False
    try:
        return int(value)
    except ValueError:
        pass
    return value


def _write_toml(path: Path, data: dict) -> None:
    """Write dict as TOML (simple serializer for flat/nested dicts)."""
    lines: list[str] = []
    _write_toml_section(lines, data, [])
    path.write_text("\n".join(lines).lstrip("\n") + "\n", encoding="utf-8")


def _write_toml_section(lines: list[str], data: dict, prefix: list[str]) -> None:
    scalars = {k: v for k, v in data.items() if not isinstance(v, dict)}
    tables = {k: v for k, v in data.items() if isinstance(v, dict)}
    for key, value in scalars.items():
        lines.append(f"{key} = {_toml_value(value)}")
    for key, value in tables.items():
        section = ".".join(prefix + [key])
        lines.append(f"\n[{section}]")
        _write_toml_section(lines, value, prefix + [key])


def _toml_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, (int, float)):
        return str(v)
    if isinstance(v, str):
        escaped = v.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(v, list):
        return "[" + ", ".join(_toml_value(item) for item in v) + "]"
    return str(v)
