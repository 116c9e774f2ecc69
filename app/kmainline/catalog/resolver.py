"""Catalog resolver.

Turns the remote mainline tree into CatalogEntry objects: the root listing
gives the versions, each version's summary.yaml gives its architectures,
and each architecture's CHECKSUMS manifest gives the packages.
"""

import asyncio
import logging

from kmainline.catalog.listing import parse_listing
from kmainline.catalog.manifest import build_pattern, find_package, partition_packages
from kmainline.catalog.summary import parse_summary
from kmainline.core.config import UBUNTU_MAINLINE_URL
from kmainline.core.errors import IntegrityMissingError, NotFoundError
from kmainline.models.catalog import (
    ArchitectureInfo,
    BuildSummary,
    CatalogEntry,
    PackageInfo,
    PackageKind,
    version_sort_key,
)
from kmainline.transfer.http import HttpFetcher
from kmainline.utils.urls import join_url

logger = logging.getLogger(__name__)

MANIFEST_NAME = "CHECKSUMS"
SUMMARY_NAME = "summary.yaml"


class RemoteTextCache:
    """Per-URL memo of remote text documents.

    Concurrent reads of one URL share a single pending request. Failed
    requests are forgotten so that a later read retries them.
    """

    def __init__(self, fetcher: HttpFetcher) -> None:
        self._fetcher = fetcher
        self._tasks: dict[str, asyncio.Task[str]] = {}

    def __contains__(self, url: str) -> bool:
        return url in self._tasks

    def __len__(self) -> int:
        return len(self._tasks)

    async def read(self, url: str) -> str:
        """Return the text at a URL, fetching it at most once.

        Raises:
            TransportError: If the request fails.
        """
        task = self._tasks.get(url)
        if task is None:
            task = asyncio.ensure_future(self._fetcher.read_text(url))
            self._tasks[url] = task

            def forget_failure(done: asyncio.Task[str]) -> None:
                if (done.cancelled() or done.exception() is not None) and (
                    self._tasks.get(url) is done
                ):
                    del self._tasks[url]

            task.add_done_callback(forget_failure)
        return await asyncio.shield(task)

    def invalidate(self, url: str) -> None:
        """Forget the cached text for a URL."""
        self._tasks.pop(url, None)

    def clear(self) -> None:
        self._tasks.clear()


class CatalogResolver:
    """Resolves versions, build summaries and packages of the mainline tree.

    Attributes:
        url: Root listing URL.
        texts: Memo of every remote document read so far.
    """

    def __init__(self, fetcher: HttpFetcher, url: str = UBUNTU_MAINLINE_URL) -> None:
        self.url = url.rstrip("/")
        self.texts = RemoteTextCache(fetcher)
        self._entries: dict[str, CatalogEntry] = {}

    async def reload_listing(self) -> dict[str, CatalogEntry]:
        """Read the root listing and add newly published versions.

        Known entries are kept as they are, including their resolved data.

        Returns:
            The full index by version.

        Raises:
            TransportError: If the listing cannot be fetched.
            ParseError: If the listing cannot be parsed.
        """
        self.texts.invalidate(self.url)
        html = await self.texts.read(self.url)
        added = 0
        for record in parse_listing(html, self.url):
            if record.version in self._entries:
                continue
            self._entries[record.version] = CatalogEntry(
                version=record.version,
                source_url=record.url,
                release_date=record.release_date,
            )
            added += 1
        logger.debug("Listing %s: %d versions (%d new)", self.url, len(self._entries), added)
        return self._entries

    def entries(self) -> list[CatalogEntry]:
        """Return every known entry sorted by version."""
        return sorted(self._entries.values(), key=lambda e: version_sort_key(e.version))

    def entry(self, version: str) -> CatalogEntry:
        """Look up a known version.

        Raises:
            NotFoundError: If the version is not in the listing.
        """
        key = version.removeprefix("v").rstrip("/")
        try:
            return self._entries[key]
        except KeyError:
            raise NotFoundError(f"Kernel {version} not found.") from None

    async def get_summary(self, version: str) -> BuildSummary:
        """Load the build summary of a version (cached on the entry).

        Raises:
            NotFoundError: If the version is unknown.
            TransportError: If summary.yaml cannot be fetched.
            ParseError: If summary.yaml is malformed.
        """
        entry = self.entry(version)
        if entry.summary is None:
            summary_url = join_url(entry.source_url, SUMMARY_NAME)
            text = await self.texts.read(summary_url)
            entry.summary = parse_summary(text, listing_url=entry.source_url, summary_url=summary_url)
        return entry.summary

    async def resolve_architecture(
        self, entry: CatalogEntry, arch: str, strict: bool = False
    ) -> ArchitectureInfo:
        """Resolve the packages of one architecture from its CHECKSUMS.

        Manifest records without a usable digest are left out. They are
        noted in ``error`` unless ``strict`` is set, in which case the first
        one is raised. The entry is only updated once the whole manifest
        has been processed.

        Args:
            entry: Catalog entry to populate.
            arch: Architecture name.
            strict: Raise on records without a usable digest.

        Returns:
            The populated ArchitectureInfo (also stored on the entry).

        Raises:
            TransportError: If the manifest cannot be fetched.
            IntegrityMissingError: If strict and a package has no usable digest.
        """
        arch_url = join_url(entry.source_url, arch)
        text = await self.texts.read(join_url(arch_url, MANIFEST_NAME))

        info = ArchitectureInfo(name=arch)
        rejected: list[IntegrityMissingError] = []
        for kind in PackageKind:
            # Headers come in arch-specific and architecture-independent flavors
            pattern_arch = None if kind.multiple else arch
            pattern = build_pattern(kind.value, version=entry.version, arch=pattern_arch)
            packages, errors = partition_packages(text, pattern, arch_url)
            for pkg in packages:
                info.add_package(kind, pkg)
            rejected.extend(errors)
        info.fan_out_headers()

        if rejected:
            if strict:
                raise rejected[0]
            for error in rejected:
                logger.warning("Skipping %s/%s package: %s", entry.version, arch, error)
            info.error = " ".join(str(error) for error in rejected)

        entry.architectures[arch] = info
        logger.debug(
            "Resolved %s/%s: %d variants", entry.version, arch, len(info.variants)
        )
        return info

    async def _resolve_strict(self, entry: CatalogEntry, archs: list[str]) -> None:
        if not archs:
            return
        tasks = [
            asyncio.ensure_future(self.resolve_architecture(entry, a, strict=True)) for a in archs
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        for task in tasks:
            if task in done and (error := task.exception()) is not None:
                raise error

    async def get_info(
        self,
        version: str,
        architectures: list[str] | None = None,
        strict: bool = False,
    ) -> CatalogEntry:
        """Resolve a version's summary and architectures.

        Args:
            version: Version key.
            architectures: Architectures to resolve (defaults to the
                summary's architectures).
            strict: Raise the first architecture failure instead of
                recording it on the ArchitectureInfo.

        Returns:
            The populated CatalogEntry.

        Raises:
            NotFoundError: If the version is unknown.
            TransportError: If the summary (or, when strict, a manifest)
                cannot be fetched.
        """
        entry = self.entry(version)
        summary = await self.get_summary(version)
        archs = list(architectures) if architectures is not None else list(summary.architectures)

        if strict:
            await self._resolve_strict(entry, archs)
            return entry

        results = await asyncio.gather(
            *(self.resolve_architecture(entry, arch) for arch in archs),
            return_exceptions=True,
        )
        for arch, result in zip(archs, results, strict=True):
            if isinstance(result, BaseException):
                if isinstance(result, asyncio.CancelledError):
                    raise result
                logger.warning("Error getting kernel info for %s/%s: %s", version, arch, result)
                info = entry.architectures.get(arch)
                if info is None:
                    info = entry.architectures[arch] = ArchitectureInfo(name=arch)
                info.error = str(result)
        return entry

    async def get_package(
        self,
        version: str,
        arch: str,
        variant: str,
        kind: PackageKind,
    ) -> PackageInfo | None:
        """Look up a single package of one variant directly in its manifest.

        Args:
            version: Version key.
            arch: Architecture name.
            variant: Variant name (e.g., 'generic').
            kind: Package role; headers are multi-valued and not supported.

        Returns:
            The first matching package, or None.

        Raises:
            ValueError: If kind is HEADERS.
            NotFoundError: If the version is unknown.
            TransportError: If the manifest cannot be fetched.
            IntegrityMissingError: If the package has no usable digest.
        """
        if kind.multiple:
            msg = f"{kind.value} packages are multi-valued, use get_info()"
            raise ValueError(msg)
        entry = self.entry(version)
        arch_url = join_url(entry.source_url, arch)
        text = await self.texts.read(join_url(arch_url, MANIFEST_NAME))
        pattern = build_pattern(kind.value, version=entry.version, arch=arch, variant=variant)
        return find_package(text, pattern, arch_url)
