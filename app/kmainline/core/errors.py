"""Error taxonomy for kmainline.

All domain errors derive from KMainlineError so that the CLI layer can
catch them in one place and turn them into user-facing messages.
"""


class KMainlineError(Exception):
    """Base exception for all kmainline errors."""


class NotFoundError(KMainlineError):
    """Raised when an unknown version, architecture or variant is requested."""


class IntegrityMissingError(KMainlineError):
    """Raised when a manifest entry carries no recognised digest.

    A package without a SHA-256 or SHA-1 digest cannot be verified and is
    never returned to callers.
    """


class IntegrityMismatchError(KMainlineError):
    """Raised when stored or fetched bytes do not match the expected digest."""


class ParseError(KMainlineError):
    """Raised when a listing, summary or manifest document is malformed."""


class StoreCorruptionError(KMainlineError):
    """Raised when a store entry fails its recorded digest.

    Attributes:
        keys: Keys of the corrupted entries.
    """

    def __init__(self, message: str, keys: list[str] | None = None) -> None:
        super().__init__(message)
        self.keys = keys or []


class TransportError(KMainlineError):
    """Raised when a remote request fails.

    Attributes:
        status: HTTP status code, or None if no response was received.
        url: The URL that was requested.
    """

    def __init__(self, status: int | None, url: str, reason: str | None = None) -> None:
        self.status = status
        self.url = url
        self.reason = reason
        if status is None:
            message = f"Error fetching {url}: {reason or 'connection failed'}"
        else:
            message = f"Error fetching {url}: {status} {reason or ''}".rstrip()
        super().__init__(message)
