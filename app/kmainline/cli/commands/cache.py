"""Cache commands.

Inspect, verify and clear the local download cache.
"""

import json
from typing import Annotated

import typer

from kmainline.cli.display import create_cache_table, print_verify_report
from kmainline.cli.types import get_settings, open_store
from kmainline.utils.formatting import console, format_bytes, print_info, print_success

app = typer.Typer(
    help="Inspect and manage the download cache.",
    invoke_without_command=True,
    no_args_is_help=True,
)


@app.command()
def inspect(
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON."),
    ] = False,
) -> None:
    """List the packages stored in the cache."""
    store = open_store(get_settings())
    entries = sorted(store.ls().values(), key=lambda e: e.key)

    if json_output:
        data = [{**entry.to_dict(), "path": str(entry.path)} for entry in entries]
        console.print_json(json.dumps(data))
        return

    if not entries:
        print_info("The cache is empty.")
        return

    console.print(create_cache_table(entries))
    total = sum(entry.size for entry in entries)
    console.print(f"\n[dim]{len(entries)} entries ({format_bytes(total)}) in {store.root}[/dim]")


@app.command()
def verify() -> None:
    """Check every cached package against its digest."""
    store = open_store(get_settings())
    with console.status("Verifying cache...") as status:
        report = store.verify(log=lambda stage, message: status.update(f"[{stage}] {message}"))
    print_verify_report(report)
    if not report.ok:
        raise typer.Exit(code=1)


@app.command()
def clear(
    yes: Annotated[
        bool,
        typer.Option("--yes", "-y", help="Skip confirmation prompt."),
    ] = False,
) -> None:
    """Remove every package from the cache."""
    store = open_store(get_settings())
    if not yes:
        confirmed = typer.confirm(f"Clear the cache at {store.root}?", default=False)
        if not confirmed:
            print_info("Aborted.")
            raise typer.Exit(code=0)
    store.rm_all()
    print_success("Cache cleared.")
