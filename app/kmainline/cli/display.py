"""Shared Rich display functions for kernels, downloads and the cache.

Provides table builders and progress reporting used by the list, show,
download and cache commands.
"""

from datetime import UTC, datetime

from rich.progress import (
    BarColumn,
    DownloadColumn,
    Progress,
    TaskID,
    TextColumn,
    TimeRemainingColumn,
    TransferSpeedColumn,
)
from rich.table import Table

from kmainline.models.catalog import EPOCH, CatalogEntry, VariantStatus
from kmainline.store.content import StoreEntry, VerifyReport
from kmainline.transfer.http import DownloadProgress, ProgressCallback
from kmainline.utils.formatting import (
    console,
    create_kernel_table,
    format_bytes,
    format_status,
    print_success,
    print_warning,
)
from kmainline.utils.urls import basename


def format_release_date(value: datetime, now: datetime | None = None) -> str:
    """Format a listing date; the year is omitted for the current year.

    Args:
        value: Release date.
        now: Reference time (defaults to the current time).

    Returns:
        e.g. 'Jun 27, 18:43' or 'Jun 27, 2021', '-' when unknown.
    """
    if value == EPOCH:
        return "-"
    now = now or datetime.now(UTC)
    if value.year == now.year:
        return value.strftime("%b %d, %H:%M")
    return value.strftime("%b %d, %Y")


def create_listing_table(
    entries: list[CatalogEntry],
    archs: dict[str, list[str]] | None = None,
    variants: dict[str, list[str]] | None = None,
) -> Table:
    """Create a table of kernel versions.

    Args:
        entries: Entries to show, in display order.
        archs: Architectures by version; the column is hidden if None.
        variants: Variants by version; the column is hidden if None.

    Returns:
        Rich Table ready to print.
    """
    table = create_kernel_table(show_archs=archs is not None, show_variants=variants is not None)
    for entry in entries:
        row = [entry.version, format_release_date(entry.release_date)]
        if archs is not None:
            row.append(", ".join(archs.get(entry.version, [])))
        if variants is not None:
            row.append(", ".join(variants.get(entry.version, [])))
        table.add_row(*row)
    return table


def create_details_table(entry: CatalogEntry, archs: list[str]) -> Table:
    """Create the detail view of one kernel version.

    Each architecture lists its variants colored by whether a signed,
    only an unsigned, or no kernel image is published.

    Args:
        entry: Resolved catalog entry.
        archs: Architectures to show.

    Returns:
        Rich Table ready to print.
    """
    variant_table = Table(show_header=True, header_style="bold_header", border_style="border")
    variant_table.add_column("Image")
    variant_table.add_column("Variants")
    seen: set[VariantStatus] = set()
    for arch in archs:
        info = entry.architectures.get(arch)
        if info is None:
            variant_table.add_row(arch, "[muted]not resolved[/]")
            continue
        if info.error is not None and not info.variants:
            variant_table.add_row(arch, f"[error]{info.error}[/]")
            continue
        cells = []
        for name in info.variants:
            status = info.packages[name].status
            seen.add(status)
            cells.append(f"[{status.value}]{name}[/]")
        text = ", ".join(cells) or "[muted]none[/]"
        if info.error is not None:
            text += f"\n[error]{info.error}[/]"
        variant_table.add_row(arch, text)
    legend = " - ".join(format_status(status) for status in VariantStatus if status in seen)
    if legend:
        variant_table.caption = legend

    table = Table(show_header=False, border_style="border")
    table.add_column(style="bold_header")
    table.add_column()
    table.add_row("Kernel", f"[version]{entry.version}[/]")
    built = "-" if entry.release_date == EPOCH else entry.release_date.strftime("%d %b %Y, %H:%M:%S")
    table.add_row("Built on", built)
    summary = entry.summary
    table.add_row("Images", ", ".join(summary.architectures) if summary else "-")
    if summary is not None and summary.commit_title:
        table.add_row("Commit", summary.commit_title)
    table.add_row("Details", variant_table)
    return table


def create_download_progress() -> Progress:
    """Create the progress display used while downloading packages."""
    return Progress(
        TextColumn("[info]{task.description}[/]"),
        BarColumn(),
        DownloadColumn(),
        TransferSpeedColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=False,
    )


def progress_reporter(progress: Progress, task_id: TaskID) -> ProgressCallback:
    """Build a callback that mirrors DownloadProgress events into a Rich task."""

    def report(event: DownloadProgress) -> None:
        stats = event.stats
        description = basename(event.url)
        if event.from_cache:
            description = f"{description} [cached](cached)[/]"
        progress.update(
            task_id,
            description=description,
            total=stats.bytes_total,
            completed=stats.bytes_completed,
        )

    return report


def create_cache_table(entries: list[StoreEntry]) -> Table:
    """Create a table listing cache entries."""
    table = Table(
        title="Download Cache",
        show_header=True,
        header_style="bold_header",
        border_style="border",
    )
    table.add_column("File", no_wrap=True)
    table.add_column("Size", style="info", justify="right")
    table.add_column("Stored", style="muted")
    table.add_column("Integrity", style="muted", overflow="ellipsis")
    for entry in entries:
        stored = datetime.fromtimestamp(entry.time, tz=UTC).strftime("%Y-%m-%d %H:%M")
        table.add_row(basename(entry.key), format_bytes(entry.size), stored, entry.integrity)
    return table


def print_verify_report(report: VerifyReport) -> None:
    """Print the outcome of a cache verification."""
    for key in report.missing:
        print_warning(f"Missing content for {key}")
    for key in report.corrupted:
        print_warning(f"Corrupted content for {key}")
    message = f"Verified {report.verified} cache entries"
    if report.reclaimed_count:
        message += (
            f", reclaimed {report.reclaimed_count} files ({format_bytes(report.reclaimed_bytes)})"
        )
    print_success(message)
