"""Rich console formatting utilities.

Provides consistent formatting for CLI output using Rich.
"""

import sys

from rich.console import Console
from rich.table import Table

from kmainline.core.theme import get_theme
from kmainline.models.catalog import VariantStatus

_STATUS_ICONS: dict[VariantStatus, str] = {
    VariantStatus.SIGNED: "●",  # Filled circle
    VariantStatus.UNSIGNED: "◐",  # Half circle
    VariantStatus.MISSING: "○",  # Empty circle
}


def _detect_color_system() -> str | None:
    """Use truecolor on interactive terminals, let Rich decide otherwise."""
    if sys.stdout.isatty():
        return "truecolor"
    return None


# Shared console instances (theme loaded once at import)
console = Console(theme=get_theme(), color_system=_detect_color_system())
err_console = Console(theme=get_theme(), stderr=True, color_system=_detect_color_system())


def format_bytes(size: int | None) -> str:
    """Format a byte count for humans (e.g., '12.3 MB').

    Args:
        size: Number of bytes, None if unknown.

    Returns:
        Formatted size, or '?' when unknown.
    """
    if size is None:
        return "?"
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"


def format_status(status: VariantStatus) -> str:
    """Format a variant status with its icon and color markup."""
    return f"[{status.value}]{_STATUS_ICONS[status]} {status.value}[/]"


def create_kernel_table(
    title: str = "Mainline Kernels",
    show_archs: bool = False,
    show_variants: bool = False,
) -> Table:
    """Create a pre-configured table for listing kernel versions.

    Args:
        title: Table title.
        show_archs: Add an architectures column.
        show_variants: Add a variants column.

    Returns:
        Rich Table with version and date columns plus the requested ones.
    """
    table = Table(
        title=title,
        show_header=True,
        header_style="bold_header",
        border_style="border",
        row_styles=["", "on grey7"],
    )
    table.add_column("Version", style="version", no_wrap=True)
    table.add_column("Released", style="muted")
    if show_archs:
        table.add_column("Architectures", style="info")
    if show_variants:
        table.add_column("Variants", style="text", overflow="ellipsis")
    return table


def print_info(message: str) -> None:
    """Print an info message."""
    console.print(f"[info]{message}[/]")


def print_warning(message: str) -> None:
    """Print a warning message."""
    err_console.print(f"[warning]Warning:[/] {message}")


def print_error(message: str) -> None:
    """Print an error message."""
    err_console.print(f"[error]Error:[/] {message}")


def print_success(message: str) -> None:
    """Print a success message."""
    console.print(f"[success]{message}[/]")
