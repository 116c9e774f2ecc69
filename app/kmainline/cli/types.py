"""Shared types and utilities for CLI commands.

Builds the resolver, store and download pipeline from the user's settings
and runs command coroutines with domain errors turned into exit codes.
"""

import asyncio
import platform
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
import typer

from kmainline.catalog.resolver import CatalogResolver
from kmainline.core.config import ConfigError, Settings, load_settings
from kmainline.core.errors import KMainlineError
from kmainline.core.paths import ensure_store_dir
from kmainline.store.content import ContentStore
from kmainline.transfer.http import USER_AGENT, HttpFetcher
from kmainline.transfer.pipeline import DownloadPipeline
from kmainline.utils.formatting import print_error

T = TypeVar("T")

# platform.machine() value to Debian architecture
_MACHINE_ARCHS: dict[str, str] = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv7l": "armhf",
    "armv6l": "armel",
    "i386": "i386",
    "i686": "i386",
    "ppc64le": "ppc64el",
    "s390x": "s390x",
    "riscv64": "riscv64",
}


def system_arch() -> str:
    """Debian architecture of the running system (e.g., 'amd64')."""
    machine = platform.machine().lower()
    return _MACHINE_ARCHS.get(machine, machine)


def split_csv(values: list[str] | None) -> list[str]:
    """Flatten repeated and comma-separated option values."""
    result: list[str] = []
    for value in values or []:
        for item in value.split(","):
            item = item.strip()
            if item and item not in result:
                result.append(item)
    return result


def get_settings() -> Settings:
    """Load settings, exiting with an error message if they are invalid."""
    try:
        return load_settings()
    except ConfigError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None


def create_client(settings: Settings) -> httpx.AsyncClient:
    """Create the HTTP client shared by a CLI session."""
    return httpx.AsyncClient(
        follow_redirects=True,
        timeout=httpx.Timeout(settings.timeout_seconds),
        headers={"User-Agent": USER_AGENT},
    )


@dataclass(slots=True)
class Session:
    """Collaborators of one CLI invocation."""

    settings: Settings
    resolver: CatalogResolver
    store: ContentStore
    pipeline: DownloadPipeline


def open_store(settings: Settings) -> ContentStore:
    """Open the content store in the configured cache directory."""
    try:
        return ContentStore(ensure_store_dir(settings.cache_dir))
    except RuntimeError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None


@asynccontextmanager
async def open_session(settings: Settings) -> AsyncIterator[Session]:
    """Create a resolver and pipeline sharing one HTTP client."""
    store = open_store(settings)
    async with create_client(settings) as client:
        fetcher = HttpFetcher(client=client)
        yield Session(
            settings=settings,
            resolver=CatalogResolver(fetcher, settings.repo_url),
            store=store,
            pipeline=DownloadPipeline(fetcher, store),
        )


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Run a command coroutine, turning domain errors into exit code 1."""
    try:
        return asyncio.run(coro)
    except KMainlineError as e:
        print_error(str(e))
        raise typer.Exit(code=1) from None
