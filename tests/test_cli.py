"""Tests for the maintenance CLI and configuration loading."""

from __future__ import annotations

import pytest
import yaml
from click.testing import CliRunner

from feedstore.cli import cli
from feedstore.config import DEFAULTS, load_config


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def cli_args(tmp_path):
    """Global options pointing the CLI at a throwaway database."""
    return ["--db", str(tmp_path / "cli.db"), "--config", str(tmp_path / "missing.yaml")]


class TestConfig:
    def test_missing_file_yields_defaults(self, tmp_path):
        config = load_config(str(tmp_path / "nope.yaml"))
        assert config == DEFAULTS
        assert config is not DEFAULTS

    def test_file_merges_over_defaults(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(yaml.dump({"database": {"path": "custom.db"}}))

        config = load_config(str(path))
        assert config["database"]["path"] == "custom.db"
        assert config["database"]["cache_size_mb"] == 16
        assert config["logging"]["level"] == "INFO"

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("- just\n- a list\n")
        with pytest.raises(ValueError):
            load_config(str(path))


class TestCLI:
    def test_init(self, runner, cli_args):
        result = runner.invoke(cli, cli_args + ["init"])
        assert result.exit_code == 0, result.output
        assert "Database ready" in result.output

    def test_init_reset_drops_feeds(self, runner, cli_args):
        runner.invoke(cli, cli_args + ["add", "https://example.com/feed.xml", "--title", "Example"])

        result = runner.invoke(cli, cli_args + ["init", "--reset"])
        assert result.exit_code == 0, result.output
        assert "Database reset" in result.output

        result = runner.invoke(cli, cli_args + ["feeds"])
        assert "No feeds" in result.output

    def test_add_and_list(self, runner, cli_args):
        result = runner.invoke(
            cli, cli_args + ["add", "https://example.com/feed.xml", "--title", "Example"]
        )
        assert result.exit_code == 0, result.output
        assert "Example" in result.output

        result = runner.invoke(cli, cli_args + ["feeds"])
        assert result.exit_code == 0, result.output
        assert "Example" in result.output

    def test_add_with_unknown_folder_fails(self, runner, cli_args):
        result = runner.invoke(
            cli, cli_args + ["add", "https://example.com/feed.xml", "--folder-id", "42"]
        )
        assert result.exit_code == 1

    def test_rm(self, runner, cli_args):
        runner.invoke(cli, cli_args + ["add", "https://example.com/feed.xml"])

        result = runner.invoke(cli, cli_args + ["rm", "1"])
        assert result.exit_code == 0, result.output

        result = runner.invoke(cli, cli_args + ["rm", "1"])
        assert result.exit_code == 1

    def test_status(self, runner, cli_args):
        runner.invoke(cli, cli_args + ["add", "https://example.com/feed.xml"])
        result = runner.invoke(cli, cli_args + ["status"])
        assert result.exit_code == 0, result.output
        assert "Feeds: 1" in result.output

    def test_errors_empty_and_reset(self, runner, cli_args):
        result = runner.invoke(cli, cli_args + ["errors"])
        assert result.exit_code == 0, result.output
        assert "No feed errors" in result.output

        result = runner.invoke(cli, cli_args + ["errors", "--reset"])
        assert result.exit_code == 0, result.output
        assert "cleared" in result.output
