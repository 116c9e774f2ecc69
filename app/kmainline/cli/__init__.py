"""CLI package for kmainline.

This package contains the Typer application and all subcommands.
"""

from kmainline.cli.main import app

__all__ = ["app"]
