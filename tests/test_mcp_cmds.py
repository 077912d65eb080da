"""Tests for MCP server commands."""

from __future__ import annotations

from unittest.mock import patch

from typer.testing import CliRunner

from activegitbackup.cli import app

runner = CliRunner()


class TestMcpServe:
    def test_import_error(self):
        with patch("activegitbackup.cli.mcp_cmds.console"):
            with patch.dict("sys.modules", {"activegitbackup.mcp": None, "activegitbackup.mcp.server": None}):
                result = runner.invoke(app, ["mcp", "serve"])
                assert result.exit_code == 1

    def test_missing_extra(self):
        with patch("activegitbackup.mcp.server.mcp", None):
            result = runner.invoke(app, ["mcp", "serve"])
        assert result.exit_code == 1
        assert "pip install" in " ".join(result.output.split())

    def test_success(self):
        with patch("activegitbackup.mcp.server.run_server") as mock_run:
            result = runner.invoke(app, ["mcp", "serve"])
            assert result.exit_code == 0
            mock_run.assert_called_once()
