"""URL helpers for the mainline directory tree."""


def join_url(base: str, *parts: str) -> str:
    """Join path segments onto a base URL.

    Redundant slashes between segments are collapsed; a trailing slash on
    the last segment is dropped.

    Args:
        base: Base URL (e.g., 'https://kernel.ubuntu.com/~kernel-ppa/mainline/').
        *parts: Path segments to append.

    Returns:
        Joined URL.

    Example:
        >>> join_url("https://host/mainline/", "v5.13/", "amd64", "CHECKSUMS")
        'https://host/mainline/v5.13/amd64/CHECKSUMS'
    """
    url = base.rstrip("/")
    for part in parts:
        segment = part.strip("/")
        if segment:
            url = f"{url}/{segment}"
    return url


def basename(url: str) -> str:
    """Return the last path segment of a URL."""
    return url.rstrip("/").rsplit("/", 1)[-1]
