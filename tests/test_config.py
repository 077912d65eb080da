"""Tests for config loading, saving and diffing."""

from __future__ import annotations

import tomllib

from activegitbackup.core.config import (
    BackupConfig,
    _parse_value,
    diff_config,
    get_config_value,
    load_backup_config,
    load_config,
    save_config,
)


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        config = load_config(str(tmp_path))
        assert config["backup"]["remote"] == "origin"
        assert config["branch_info"]["path"] == ".agbinfo"
        assert load_backup_config(str(tmp_path)) == BackupConfig()

    def test_local_overrides_global(self, tmp_path, isolated_global_config):
        isolated_global_config.parent.mkdir(parents=True)
        isolated_global_config.write_text('[backup]\nremote = "mirror"\nbranch_prefix = "bk/"\n', encoding="utf-8")
        save_config(str(tmp_path), "backup.remote", "backup-remote")

        cfg = load_backup_config(str(tmp_path))
        assert cfg.remote == "backup-remote"
        assert cfg.branch_prefix == "bk/"
        assert cfg.enabled is True

    def test_save_without_repo_writes_global(self, isolated_global_config):
        save_config(None, "backup.default_auto_backup", "on")
        with open(isolated_global_config, "rb") as f:
            assert tomllib.load(f)["backup"]["default_auto_backup"] is True

    def test_saved_file_is_valid_toml(self, tmp_path):
        save_config(str(tmp_path), "backup.branch_prefix", 'odd "quoted" \\ prefix')
        save_config(str(tmp_path), "git.timeout_seconds", "45")
        with open(tmp_path / ".activegitbackup" / "config.toml", "rb") as f:
            data = tomllib.load(f)
        assert data["backup"]["branch_prefix"] == 'odd "quoted" \\ prefix'
        assert data["git"]["timeout_seconds"] == 45

    def test_get_config_value(self, tmp_path):
        config = load_config(str(tmp_path))
        assert get_config_value(config, "backup.sync_on_commit") is True
        assert get_config_value(config, "backup.nope") is None


class TestParseValue:
    def test_booleans_and_ints(self):
        assert _parse_value("yes") is True
        assert _parse_value("OFF") is False
        assert _parse_value("12") == 12
        assert _parse_value("origin") == "origin"


class TestDiffConfig:
    def test_no_changes(self):
        assert diff_config(BackupConfig(), BackupConfig()) == {}

    def test_reports_old_and_new(self):
        old = BackupConfig()
        new = BackupConfig(default_auto_backup=True, remote="mirror")
        assert diff_config(old, new) == {
            "remote": ("origin", "mirror"),
            "default_auto_backup": (False, True),
        }

    def test_from_dict_fills_missing_sections(self):
        cfg = BackupConfig.from_dict({"branch_info": {"persist": False}})
        assert cfg.persist_branch_info is False
        assert cfg.remote == "origin"
