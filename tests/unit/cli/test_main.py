"""Unit tests for the top-level CLI application."""

from unittest.mock import patch

from grubpower import __version__
from grubpower.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()

COMMANDS = (
    "install",
    "build",
    "add-entry",
    "uninstall",
    "configure",
    "setup",
    "check",
    "test-usb",
    "check-update",
    "rebuild",
    "direct",
    "fix-kernel",
    "monitor",
)


class TestMainApp:
    """Tests for global options and command registration."""

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])

        assert result.exit_code == 0
        assert f"GrubPower Advanced version {__version__}" in result.stdout

    def test_no_args_shows_help(self) -> None:
        result = runner.invoke(app, [])

        assert "Usage" in result.output

    def test_all_commands_registered(self) -> None:
        for command in COMMANDS:
            result = runner.invoke(app, [command, "--help"])
            assert result.exit_code == 0, command

    def test_short_help_option(self) -> None:
        result = runner.invoke(app, ["-h"])

        assert result.exit_code == 0
        assert "monitor" in result.stdout


class TestCheckUpdate:
    """Tests for grubpower check-update."""

    def test_prints_local_version(self) -> None:
        result = runner.invoke(app, ["check-update"])

        assert result.exit_code == 0
        assert __version__ in result.stdout
        assert "No updates available" in result.stdout


class TestRootRequired:
    """Commands that change the system refuse to run unprivileged."""

    def test_refused_without_root(self) -> None:
        with patch("grubpower.cli.workflow.is_root", return_value=False):
            for command in ("install", "build", "add-entry", "uninstall", "direct", "test-usb"):
                result = runner.invoke(app, [command])
                assert result.exit_code == 1, command
                assert "must be run as root" in result.output
