"""Network transfers: HTTP fetching, telemetry and the download pipeline."""

from kmainline.transfer.http import DownloadProgress, HttpFetcher, ProgressCallback
from kmainline.transfer.pipeline import DownloadPipeline, FetchResult
from kmainline.transfer.telemetry import Transfer, TransferState, TransferStats

__all__ = [
    "DownloadPipeline",
    "DownloadProgress",
    "FetchResult",
    "HttpFetcher",
    "ProgressCallback",
    "Transfer",
    "TransferState",
    "TransferStats",
]
