"""Tests for the ctxc command group."""

from click.testing import CliRunner

from ctxcompiler.cli.main import cli
from ctxcompiler.config.constants import TOOL_VERSION

runner = CliRunner()


class TestCli:
    """ctxc group tests."""

    def test_version(self) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert TOOL_VERSION in result.output

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "compile" in result.output
        assert "verify" in result.output
