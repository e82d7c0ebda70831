# Copyright © 2025 Sierra Labs LLC
# SPDX-License-Identifier: AGPL-3.0-only
# License-Filename: LICENSE

"""
Tests for the command line interface.
"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from logcollectd import __version__
from logcollectd.cli.main import cli
from logcollectd.processing.server import CollectorStartupError


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def mock_server():
    """Patch the server and signal setup so the command returns at once."""
    with patch("logcollectd.cli.main.signal.signal"), \
         patch("logcollectd.cli.main.CollectorServer") as server_cls:
        server = server_cls.return_value
        server.wait.return_value = True
        server.get_stats.return_value = {"received": 1, "written": 1, "active_bucket": None}
        yield server_cls


class TestCliOptions:
    """Test argument handling and exit codes."""

    def test_help_exits_zero(self, runner):
        result = runner.invoke(cli, ["-h"])
        assert result.exit_code == 0
        assert "Usage" in result.output
        assert "--db-dir" in result.output

    def test_version(self, runner):
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_bad_port_is_usage_error(self, runner):
        result = runner.invoke(cli, ["-p", "notaport"])
        assert result.exit_code == 2

    def test_bad_compress_age_is_usage_error(self, runner):
        result = runner.invoke(cli, ["--compress-age", "soon"])
        assert result.exit_code == 2

    def test_unknown_option(self, runner):
        result = runner.invoke(cli, ["-x"])
        assert result.exit_code == 2

    def test_missing_directory_exits_nonzero(self, runner, mock_server, tmp_path):
        result = runner.invoke(cli, ["-d", str(tmp_path / "missing")])
        assert result.exit_code == 1
        mock_server.assert_not_called()


class TestCliRun:
    """Test starting the collector."""

    def test_flags_reach_config(self, runner, mock_server, tmp_path):
        result = runner.invoke(
            cli,
            ["-d", str(tmp_path), "-p", "6514", "-v", "--compress-age", "3d", "--compressor", "xz"],
        )

        assert result.exit_code == 0, result.output
        config = mock_server.call_args[0][0]
        assert config.db_dir == tmp_path
        assert config.port == 6514
        assert config.verbose is True
        assert config.compress_age == 3 * 86400
        assert config.compressor == "xz"
        mock_server.return_value.start.assert_called_once()
        mock_server.return_value.stop.assert_called()

    def test_startup_error_exits_one(self, runner, mock_server, tmp_path):
        mock_server.return_value.start.side_effect = CollectorStartupError("Cannot bind UDP socket")

        result = runner.invoke(cli, ["-d", str(tmp_path), "-p", "6514"])

        assert result.exit_code == 1

    def test_config_file(self, runner, mock_server, tmp_path):
        config_path = tmp_path / "logcollectd.yaml"
        config_path.write_text(
            "storage:\n  db_dir: {}\nretention:\n  compress_age: 12h\n".format(tmp_path)
        )

        result = runner.invoke(cli, ["--config", str(config_path)])

        assert result.exit_code == 0, result.output
        config = mock_server.call_args[0][0]
        assert config.db_dir == tmp_path
        assert config.compress_age == 43200
