"""Download command implementation.

Downloads the packages of a kernel version into the cache and optionally
copies them to an output directory.
"""

import asyncio
import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated

import typer
from rich.progress import Progress

from kmainline.cli.display import create_download_progress, print_verify_report, progress_reporter
from kmainline.cli.types import get_settings, open_session, run, split_csv, system_arch
from kmainline.core.config import Settings
from kmainline.core.errors import NotFoundError
from kmainline.models.catalog import CatalogEntry, PackageInfo
from kmainline.transfer.pipeline import DownloadPipeline, FetchResult
from kmainline.utils.formatting import console, print_info, print_success, print_warning

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PlannedFile:
    """A package to download and where to copy it."""

    package: PackageInfo
    output_path: Path | None


def plan_downloads(
    entry: CatalogEntry,
    archs: list[str],
    variants: list[str],
    output_dir: Path | None = None,
    overwrite: bool = False,
) -> list[PlannedFile]:
    """Collect the packages of the requested variants.

    Headers shared by several variants are listed once. Missing variants
    are reported and skipped, as are files already present in the output
    directory unless ``overwrite`` is set.

    Args:
        entry: Resolved catalog entry.
        archs: Architectures to download.
        variants: Variant names to download.
        output_dir: Directory the packages are copied to, if any.
        overwrite: Replace existing files in the output directory.

    Returns:
        Files to download in a stable order.
    """
    planned: dict[str, PlannedFile] = {}
    for arch in archs:
        info = entry.architecture(arch)
        for name in variants:
            try:
                variant = info.variant(name)
            except NotFoundError:
                print_warning(f"Kernel {name} is missing for configuration {entry.version}-{arch}")
                continue
            for pkg in variant.files.all_packages():
                if pkg.deb_url in planned:
                    continue
                output_path = output_dir / pkg.deb if output_dir is not None else None
                if output_path is not None and output_path.exists() and not overwrite:
                    print_warning(f"Skipping {output_path}, file exists (use --overwrite)")
                    continue
                planned[pkg.deb_url] = PlannedFile(package=pkg, output_path=output_path)
    return list(planned.values())


async def _fetch(pipeline: DownloadPipeline, planned: PlannedFile, progress: Progress) -> FetchResult:
    pkg = planned.package
    task_id = progress.add_task(pkg.deb, total=None)
    result = await pipeline.fetch_or_cached(
        pkg.deb_url,
        integrity=pkg.hash,
        progress=progress_reporter(progress, task_id),
    )
    logger.debug("%s %s", "Cached" if result.from_cache else "Fetched", pkg.deb)
    return result


async def _download_kernel(
    settings: Settings,
    version: str,
    output_dir: Path | None,
    variants: list[str],
    archs: list[str],
    overwrite: bool,
) -> None:
    async with open_session(settings) as session:
        await session.resolver.reload_listing()
        entry = await session.resolver.get_info(version, archs, strict=True)
        files = plan_downloads(entry, archs, variants, output_dir, overwrite)
        if not files:
            print_warning("Nothing to download.")
            return
        print_info(f"{len(files)} files will be downloaded.")

        with create_download_progress() as progress:
            results = await asyncio.gather(
                *(_fetch(session.pipeline, planned, progress) for planned in files)
            )

        with console.status("Verifying cache...") as status:
            report = await session.pipeline.verify_store(
                log=lambda stage, message: status.update(f"Verifying cache: {message}")
            )
        print_verify_report(report)
        report.raise_for_corruption()

    if output_dir is None:
        print_success(f"Downloaded {len(files)} packages to the cache.")
        return

    output_dir.mkdir(parents=True, exist_ok=True)
    for planned, result in zip(files, results, strict=True):
        target = output_dir / planned.package.deb
        await asyncio.to_thread(shutil.copyfile, result.path, target)
        logger.debug("Copied %s to %s", result.path, target)
    print_success(f"Copied {len(files)} packages to {output_dir}")


def download(
    version: Annotated[
        str,
        typer.Argument(help="Kernel version (e.g., 5.13 or 5.13.1)."),
    ],
    output_dir: Annotated[
        Path | None,
        typer.Argument(help="Directory to copy the .deb packages to."),
    ] = None,
    variant: Annotated[
        list[str] | None,
        typer.Option(
            "--variant",
            "-v",
            help="Kernel variant to download (repeatable). Defaults to the configured variants.",
        ),
    ] = None,
    arch: Annotated[
        list[str] | None,
        typer.Option(
            "--arch",
            "-a",
            help="Architecture to download (repeatable). Defaults to this machine's.",
        ),
    ] = None,
    overwrite: Annotated[
        bool,
        typer.Option("--overwrite", "-o", help="Overwrite files in the output directory."),
    ] = False,
) -> None:
    """Download a kernel version to the cache.

    Packages are verified against the published checksums. With an output
    directory, the .deb files are copied there afterwards.

    Examples:
        kmainline download 5.13                  # Cache only
        kmainline download 5.13 ./debs           # Copy to ./debs
        kmainline download 5.13 -v lowlatency -a arm64 ./debs
    """
    settings = get_settings()
    variants = split_csv(variant) or list(settings.default_variants)
    archs = split_csv(arch) or [system_arch()]
    run(_download_kernel(settings, version, output_dir, variants, archs, overwrite))
