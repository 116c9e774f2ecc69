"""Unit tests for the show command."""

import json
from unittest.mock import patch

from kmainline.cli.main import app
from typer.testing import CliRunner

runner = CliRunner()


class TestShowCommand:
    """Tests for kmainline show."""

    def test_details_table(self, cli_env) -> None:
        """Variants of the requested architecture are listed."""
        result = runner.invoke(app, ["show", "5.13", "--arch", "amd64"])

        assert result.exit_code == 0, result.output
        assert "Linux 5.13" in result.output
        assert "generic" in result.output
        assert "lowlatency" in result.output
        assert "oddball" in result.output
        assert "signed" in result.output
        assert "missing" in result.output

    def test_version_prefix_accepted(self, cli_env) -> None:
        """A leading 'v' in the version is ignored."""
        result = runner.invoke(app, ["show", "v5.13", "-a", "amd64"])

        assert result.exit_code == 0, result.output
        assert "generic" in result.output

    def test_defaults_to_system_arch(self, cli_env) -> None:
        """Without --arch the running machine's architecture is shown."""
        with patch("kmainline.cli.commands.show.system_arch", return_value="amd64"):
            result = runner.invoke(app, ["--quiet", "show", "5.13", "--json"])

        assert result.exit_code == 0, result.output
        assert list(json.loads(result.output)["archs"]) == ["amd64"]

    def test_all_architectures_json(self, cli_env) -> None:
        """--all resolves every architecture of the build."""
        result = runner.invoke(app, ["--quiet", "show", "5.13", "--all", "--json"])

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["version"] == "5.13"
        assert data["summary"]["commit_title"] == "Linux 5.13"
        assert data["archs"]["amd64"]["packages"]["generic"]["status"] == "signed"
        assert "404" in data["archs"]["arm64"]["error"]

    def test_unknown_version(self, cli_env) -> None:
        """Unknown versions exit with an error."""
        result = runner.invoke(app, ["show", "4.0", "--arch", "amd64"])

        assert result.exit_code == 1
        assert "Kernel 4.0 not found." in result.output
