"""Config commands.

Show the effective settings and create a default config file.
"""

import json
from typing import Annotated

import typer

from kmainline.cli.types import get_settings
from kmainline.core.config import ConfigError, Settings, save_settings
from kmainline.core.paths import get_config_path, get_store_dir
from kmainline.utils.formatting import console, print_error, print_info, print_success

app = typer.Typer(
    help="Show and initialize the configuration.",
    invoke_without_command=True,
    no_args_is_help=True,
)


@app.command()
def show(
    json_output: Annotated[
        bool,
        typer.Option("--json", "-j", help="Output as JSON."),
    ] = False,
) -> None:
    """Show the effective settings."""
    settings = get_settings()
    data = settings.model_dump(mode="json")
    data["store_dir"] = str(get_store_dir(settings.cache_dir))

    if json_output:
        console.print_json(json.dumps(data))
        return

    path = get_config_path()
    source = str(path) if path.exists() else f"{path} (not created, using defaults)"
    console.print(f"[bold_header]Config file:[/] {source}")
    for key, value in data.items():
        console.print(f"  [info]{key}[/] = {value}")


@app.command()
def init(
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Overwrite an existing config file."),
    ] = False,
) -> None:
    """Write a config file with the default settings."""
    path = get_config_path()
    if path.exists() and not force:
        print_info(f"Config file already exists: {path}")
        print_info("Would be overwritten with --force.")
        return
    try:
        saved = save_settings(Settings(), path)
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
    print_success(f"Created config file: {saved}")
