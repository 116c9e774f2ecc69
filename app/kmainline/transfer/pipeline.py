"""Content-addressed download pipeline.

Serves artifacts from the local store when a verified copy exists and
otherwise streams them from the network into the store. Concurrent
requests for the same URL share a single network transfer.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

from kmainline.core.errors import IntegrityMismatchError
from kmainline.store.content import ContentStore, StoreEntry, VerifyLog, VerifyReport
from kmainline.transfer.http import (
    DownloadProgress,
    HttpFetcher,
    ProgressCallback,
    stream_with_progress,
)
from kmainline.transfer.telemetry import Transfer, TransferStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FetchResult:
    """Outcome of fetch_or_cached().

    Attributes:
        from_cache: True if no network transfer was needed.
        entry: Store entry holding the bytes.
    """

    from_cache: bool
    entry: StoreEntry

    @property
    def path(self) -> Path:
        return self.entry.path

    def open(self) -> BinaryIO:
        """Open the persisted bytes for reading."""
        return self.entry.path.open("rb")


@dataclass
class _Flight:
    """One in-progress fetch shared by every waiter for its URL."""

    id: str
    integrity: str | None
    task: "asyncio.Task[StoreEntry]"
    listeners: list[ProgressCallback] = field(default_factory=list)
    waiters: int = 0


def _cached_stats(size: int) -> TransferStats:
    transfer = Transfer(bytes_total=size, bytes_completed=size)
    transfer.start()
    transfer.finish()
    return transfer.stats()


class DownloadPipeline:
    """Fetches artifacts through the content store.

    Attributes:
        fetcher: Remote fetcher.
        store: Content store the artifacts are persisted in.
    """

    def __init__(self, fetcher: HttpFetcher, store: ContentStore) -> None:
        self.fetcher = fetcher
        self.store = store
        self._flights: dict[str, _Flight] = {}

    async def _lookup(self, url: str, integrity: str | None) -> StoreEntry | None:
        """Return a verified store entry for the URL, or None."""
        entry = await asyncio.to_thread(self.store.get_info, url)
        if entry is None:
            return None
        if not await asyncio.to_thread(self.store.check, entry, integrity):
            logger.warning("Cached copy of %s failed verification, fetching again", url)
            return None
        return entry

    async def _fetch(
        self,
        url: str,
        integrity: str | None,
        transfer_id: str,
        notify: ProgressCallback,
    ) -> StoreEntry:
        """Stream the URL into a store writer and commit it."""
        with self.store.writer(url, integrity=integrity) as writer:
            async with self.fetcher.stream(url) as response:
                async for chunk in stream_with_progress(
                    response, url, notify, transfer_id=transfer_id
                ):
                    writer.write(chunk)
            entry = writer.commit()
        logger.info("Downloaded %s (%d bytes)", url, entry.size)
        return entry

    def _start(self, url: str, integrity: str | None) -> _Flight:
        transfer_id = uuid.uuid4().hex
        listeners: list[ProgressCallback] = []

        def notify(event: DownloadProgress) -> None:
            for listener in list(listeners):
                listener(event)

        task = asyncio.create_task(self._fetch(url, integrity, transfer_id, notify))
        flight = _Flight(id=transfer_id, integrity=integrity, task=task, listeners=listeners)

        def done(finished: "asyncio.Task[StoreEntry]") -> None:
            if self._flights.get(url) is flight:
                del self._flights[url]
            if not finished.cancelled():
                # Mark the exception retrieved even if every waiter left
                finished.exception()

        task.add_done_callback(done)
        self._flights[url] = flight
        return flight

    async def _wait(
        self, url: str, flight: _Flight, progress: ProgressCallback | None
    ) -> StoreEntry:
        """Wait for a shared fetch, cancelling it when the last waiter leaves."""
        if progress is not None:
            flight.listeners.append(progress)
        flight.waiters += 1
        try:
            return await asyncio.shield(flight.task)
        finally:
            flight.waiters -= 1
            if progress is not None:
                flight.listeners.remove(progress)
            if flight.waiters == 0 and not flight.task.done():
                logger.debug("Last waiter left, cancelling download of %s", url)
                flight.task.cancel()

    async def fetch_or_cached(
        self,
        url: str,
        integrity: str | None = None,
        progress: ProgressCallback | None = None,
    ) -> FetchResult:
        """Get an artifact from the store, downloading it on a miss.

        Args:
            url: Artifact URL, also the store key.
            integrity: Required integrity (e.g., 'sha256-...'), if known.
            progress: Callback receiving DownloadProgress events.

        Returns:
            FetchResult pointing at the persisted bytes.

        Raises:
            TransportError: If the download fails.
            IntegrityMismatchError: If the downloaded bytes do not match.
        """
        flight = self._flights.get(url)
        if flight is None:
            cached = await self._lookup(url, integrity)
            if cached is not None:
                logger.debug("Cache hit for %s", url)
                if progress is not None:
                    progress(
                        DownloadProgress(
                            id=uuid.uuid4().hex,
                            url=url,
                            stats=_cached_stats(cached.size),
                            from_cache=True,
                        )
                    )
                return FetchResult(from_cache=True, entry=cached)
            # Another caller may have started the fetch while we checked
            flight = self._flights.get(url) or self._start(url, integrity)
        else:
            logger.debug("Joining in-flight download of %s", url)

        try:
            entry = await self._wait(url, flight, progress)
        except IntegrityMismatchError:
            if integrity == flight.integrity:
                raise
            # The shared fetch was rejected against another caller's integrity
            logger.debug("Shared download of %s was rejected, fetching again", url)
            return await self.fetch_or_cached(url, integrity, progress)

        if integrity is not None and integrity != flight.integrity:
            if not await asyncio.to_thread(self.store.check, entry, integrity):
                msg = f"Integrity mismatch for {url}: expected {integrity}, stored {entry.integrity}"
                raise IntegrityMismatchError(msg)
        return FetchResult(from_cache=False, entry=entry)

    async def verify_store(self, log: VerifyLog | None = None) -> VerifyReport:
        """Run a verification sweep over the store."""
        return await asyncio.to_thread(self.store.verify, log)
