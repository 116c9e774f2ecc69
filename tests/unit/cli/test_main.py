"""Unit tests for the main CLI application."""

import logging

from kmainline import __version__
from kmainline.cli.main import app, configure_logging
from typer.testing import CliRunner

runner = CliRunner()


def test_version() -> None:
    """--version prints the version and exits."""
    result = runner.invoke(app, ["--version"])

    assert result.exit_code == 0
    assert f"kmainline version {__version__}" in result.output


def test_no_args_shows_help() -> None:
    """Running without a command shows the usage."""
    result = runner.invoke(app, [])

    assert "Usage" in result.output
    for command in ("list", "show", "download", "cache", "config"):
        assert command in result.output


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_default_level(self) -> None:
        """Warnings are logged by default."""
        configure_logging(verbose=False, quiet=False)
        assert logging.getLogger().level == logging.WARNING

    def test_verbose(self) -> None:
        """--verbose enables debug logging, including httpx."""
        configure_logging(verbose=True, quiet=False)
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.DEBUG

    def test_quiet(self) -> None:
        """--quiet only logs errors."""
        configure_logging(verbose=False, quiet=True)
        assert logging.getLogger().level == logging.ERROR
        assert logging.getLogger("httpx").level == logging.WARNING
