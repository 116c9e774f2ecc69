"""List command implementation.

Lists kernel versions published in the mainline repository.
"""

import asyncio
import json
import re
from datetime import UTC, datetime
from typing import Annotated

import typer

from kmainline.catalog.resolver import CatalogResolver
from kmainline.cli.display import create_listing_table
from kmainline.cli.types import get_settings, open_session, run, system_arch
from kmainline.core.config import Settings
from kmainline.models.catalog import CatalogEntry
from kmainline.utils.formatting import console, print_error, print_info

app = typer.Typer(
    help="List kernels from the mainline repository.",
    invoke_without_command=True,
)

DEFAULT_LIMIT = 5
# Upper bound used when a date range is given without an explicit limit
RANGE_LIMIT = 1000

_PARTIAL_DATE_RE = re.compile(r"^(\d{4})(?:-(\d{1,2}))?$")


def parse_limit(value: str | None) -> int:
    """Parse --limit, falling back to the default for unusable values."""
    if value is None:
        return DEFAULT_LIMIT
    try:
        limit = int(value.strip())
    except ValueError:
        return DEFAULT_LIMIT
    return limit if limit > 0 else DEFAULT_LIMIT


def parse_date_option(value: str, option: str) -> datetime:
    """Parse a --after/--before value such as '2019', '2019-06' or '2019-06-30'.

    Raises:
        typer.BadParameter: If the value is not a date.
    """
    match = _PARTIAL_DATE_RE.match(value.strip())
    try:
        if match is not None:
            year, month = match.groups()
            return datetime(int(year), int(month or 1), 1, tzinfo=UTC)
        parsed = datetime.fromisoformat(value.strip())
    except ValueError:
        msg = f"Invalid date: {value}. Use YYYY, YYYY-MM or YYYY-MM-DD."
        raise typer.BadParameter(msg, param_hint=option) from None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


async def _architectures(
    resolver: CatalogResolver, entries: list[CatalogEntry]
) -> dict[str, list[str]]:
    summaries = await asyncio.gather(*(resolver.get_summary(e.version) for e in entries))
    return {e.version: s.architectures for e, s in zip(entries, summaries, strict=True)}


async def _variants(
    resolver: CatalogResolver, entries: list[CatalogEntry], arch: str
) -> dict[str, list[str]]:
    infos = await asyncio.gather(*(resolver.get_info(e.version, [arch]) for e in entries))
    result: dict[str, list[str]] = {}
    for info in infos:
        names: list[str] = []
        for arch_info in info.architectures.values():
            names.extend(v for v in arch_info.variants if v not in names)
        result[info.version] = names
    return result


async def _list_kernels(
    settings: Settings,
    after: datetime | None,
    before: datetime | None,
    limit: int,
    show_archs: bool,
    show_variants: bool,
    json_output: bool,
) -> int:
    async with open_session(settings) as session:
        resolver = session.resolver
        await resolver.reload_listing()
        entries = [
            entry
            for entry in resolver.entries()
            if (after is None or entry.release_date >= after)
            and (before is None or entry.release_date <= before)
        ]
        if not entries:
            print_error("No kernels matching the given criteria were found.")
            return 1
        entries = entries[-limit:]

        if json_output:
            infos = await asyncio.gather(*(resolver.get_info(e.version) for e in entries))
            console.print_json(json.dumps([info.to_dict() for info in infos]))
            return 0

        archs = await _architectures(resolver, entries) if show_archs else None
        variants = await _variants(resolver, entries, system_arch()) if show_variants else None
        console.print(create_listing_table(entries, archs=archs, variants=variants))
    return 0


@app.callback(invoke_without_command=True)
def list_kernels(
    ctx: typer.Context,
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON."),
    ] = False,
    after: Annotated[
        str | None,
        typer.Option("--after", help="Only kernels released after this date."),
    ] = None,
    before: Annotated[
        str | None,
        typer.Option("--before", help="Only kernels released before this date."),
    ] = None,
    archs: Annotated[
        bool,
        typer.Option("--archs", "-A", help="Show kernel architectures."),
    ] = False,
    variants: Annotated[
        bool,
        typer.Option("--variants", "-V", help="Show kernel variants for this machine."),
    ] = False,
    limit: Annotated[
        str | None,
        typer.Option("--limit", "-l", help="Number of most recent kernels to list."),
    ] = None,
) -> None:
    """List kernels from the mainline repository.

    Shows the 5 most recent kernels unless a date range or limit is given.

    Examples:
        kmainline list                              # 5 most recent kernels
        kmainline list --after 2019 --before 2020   # Kernels from 2019
        kmainline list -l 20 --archs                # With architectures
    """
    if ctx.invoked_subcommand is not None:
        return

    after_date = parse_date_option(after, "--after") if after else None
    before_date = parse_date_option(before, "--before") if before else None
    count = parse_limit(limit)
    if after_date and before_date and limit is None:
        count = RANGE_LIMIT
    if after is None and before is None and limit is None and not json_output:
        print_info(
            f"Displaying the {DEFAULT_LIMIT} most recent kernels. "
            "Use --before and --after to select a date range."
        )

    code = run(
        _list_kernels(
            get_settings(),
            after=after_date,
            before=before_date,
            limit=count,
            show_archs=archs,
            show_variants=variants,
            json_output=json_output,
        )
    )
    if code:
        raise typer.Exit(code=code)
