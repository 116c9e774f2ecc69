"""Remote fetcher built on a shared httpx.AsyncClient."""

import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Self

import httpx

from kmainline import __version__
from kmainline.core.errors import TransportError
from kmainline.transfer.telemetry import Transfer, TransferStats

logger = logging.getLogger(__name__)

USER_AGENT = f"kmainline/{__version__}"
CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True, slots=True)
class DownloadProgress:
    """Progress event for one download.

    Attributes:
        id: Identifier of the transfer the event belongs to.
        url: URL being downloaded.
        stats: Telemetry snapshot.
        from_cache: True if the bytes were served from the local store.
    """

    id: str
    url: str
    stats: TransferStats
    from_cache: bool = False


ProgressCallback = Callable[[DownloadProgress], None]


def _content_length(response: httpx.Response) -> int | None:
    """Declared body size, None when unknown or content-encoded."""
    if response.headers.get("Content-Encoding", "identity") != "identity":
        return None
    value = response.headers.get("Content-Length")
    if value is None:
        return None
    try:
        length = int(value)
    except ValueError:
        return None
    return length if length >= 0 else None


async def stream_with_progress(
    response: httpx.Response,
    url: str,
    progress: ProgressCallback | None = None,
    *,
    transfer_id: str | None = None,
    chunk_size: int = CHUNK_SIZE,
) -> AsyncIterator[bytes]:
    """Yield the response body while reporting transfer telemetry.

    Args:
        response: Open streaming response.
        url: Requested URL, used in progress events.
        progress: Callback invoked on start, per chunk and on completion.
        transfer_id: Identifier for progress events (defaults to the URL).
        chunk_size: Read size in bytes.

    Yields:
        Body chunks.
    """
    transfer = Transfer(bytes_total=_content_length(response))
    ident = transfer_id or url

    def emit() -> None:
        if progress is not None:
            progress(DownloadProgress(id=ident, url=url, stats=transfer.stats()))

    transfer.start()
    emit()
    received = 0
    async for chunk in response.aiter_bytes(chunk_size):
        received += len(chunk)
        transfer.update_bytes(received)
        emit()
        yield chunk
    transfer.finish()
    emit()


class HttpFetcher:
    """GETs remote documents and artifacts.

    One client is shared by every request so that connections are pooled.
    Use as an async context manager, or call aclose() when done.

    Example:
        >>> async with HttpFetcher(timeout=30) as fetcher:
        ...     text = await fetcher.read_text(url)
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        timeout: float | None = None,
        user_agent: str = USER_AGENT,
    ) -> None:
        """Initialize the fetcher.

        Args:
            client: Client to use; a new one is created (and owned) if None.
            timeout: Request timeout in seconds, None to disable.
            user_agent: User-Agent header for an owned client.
        """
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            follow_redirects=True,
            timeout=httpx.Timeout(timeout),
            headers={"User-Agent": user_agent},
        )

    async def __aenter__(self) -> Self:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the client if this fetcher created it."""
        if self._owns_client:
            await self._client.aclose()

    @asynccontextmanager
    async def stream(self, url: str) -> AsyncIterator[httpx.Response]:
        """Open a streaming GET request.

        Args:
            url: URL to fetch.

        Yields:
            Response with a successful status; the body is not yet read.

        Raises:
            TransportError: On a non-2xx status or a network failure.
        """
        logger.debug("GET %s", url)
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    raise TransportError(response.status_code, url, response.reason_phrase)
                yield response
        except httpx.HTTPError as e:
            raise TransportError(None, url, str(e) or type(e).__name__) from e

    async def read_text(self, url: str, progress: ProgressCallback | None = None) -> str:
        """Fetch a document and decode it as text.

        Args:
            url: URL to fetch.
            progress: Optional progress callback.

        Returns:
            Decoded body.

        Raises:
            TransportError: On a non-2xx status or a network failure.
        """
        async with self.stream(url) as response:
            body = b"".join([chunk async for chunk in stream_with_progress(response, url, progress)])
            encoding = response.encoding or "utf-8"
        return body.decode(encoding, errors="replace")
