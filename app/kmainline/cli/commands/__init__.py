"""CLI commands for kmainline.

This package contains all subcommand implementations.
"""

from kmainline.cli.commands import cache, config, download, listing, show

__all__ = ["cache", "config", "download", "listing", "show"]
