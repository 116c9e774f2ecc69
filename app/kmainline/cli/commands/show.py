"""Show command implementation.

Displays the architectures and variants published for one kernel version.
"""

import json
from typing import Annotated

import typer

from kmainline.cli.display import create_details_table
from kmainline.cli.types import get_settings, open_session, run, split_csv, system_arch
from kmainline.core.config import Settings
from kmainline.utils.formatting import console


async def _show_kernel(
    settings: Settings,
    version: str,
    archs: list[str],
    all_archs: bool,
    json_output: bool,
) -> None:
    async with open_session(settings) as session:
        resolver = session.resolver
        await resolver.reload_listing()
        if all_archs:
            archs = list((await resolver.get_summary(version)).architectures)
        entry = await resolver.get_info(version, archs)

    if json_output:
        console.print_json(json.dumps(entry.to_dict()))
        return
    console.print(create_details_table(entry, archs))


def show(
    version: Annotated[
        str,
        typer.Argument(help="Kernel version (e.g., 5.13 or 5.13.1)."),
    ],
    arch: Annotated[
        list[str] | None,
        typer.Option(
            "--arch",
            "-a",
            help="Architecture to show (repeatable). Defaults to this machine's.",
        ),
    ] = None,
    all_archs: Annotated[
        bool,
        typer.Option("--all", help="Show every architecture of the build."),
    ] = False,
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON."),
    ] = False,
) -> None:
    """Show the information for a specific kernel version.

    Variants are marked signed, unsigned or missing depending on which
    kernel image is published for them.

    Examples:
        kmainline show 5.13
        kmainline show 5.13 -a arm64 -a armhf
        kmainline show 5.13 --all --json
    """
    archs = split_csv(arch) or [system_arch()]
    run(_show_kernel(get_settings(), version, archs, all_archs, json_output))
