"""Root listing parser.

The mainline root is an auto-generated directory index. Each build is a
link such as ``v5.13.1/`` followed by its modification date, either in the
next table cell or as trailing text in a ``<pre>`` listing.
"""

import logging
import re
from dataclasses import dataclass
from datetime import UTC, datetime

from bs4 import BeautifulSoup, NavigableString, Tag

from kmainline.core.errors import ParseError
from kmainline.models.catalog import EPOCH
from kmainline.utils.urls import join_url

logger = logging.getLogger(__name__)

_VERSION_HREF_RE = re.compile(r"v\d+\.\d+(\.\d+)?-?.*")
_DATE_RE = re.compile(
    r"\d{4}-\d{2}-\d{2}(?:[ T]\d{2}:\d{2}(?::\d{2})?)?"
    r"|\d{2}-[A-Za-z]{3}-\d{4}(?: \d{2}:\d{2})?"
)
_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%Y-%m-%dT%H:%M:%S",
    "%Y-%m-%dT%H:%M",
    "%Y-%m-%d",
    "%d-%b-%Y %H:%M",
    "%d-%b-%Y",
)

# Builds flagged as broken upstream
EXCLUDE_MARKER = "dontuse"


@dataclass(frozen=True, slots=True)
class ListingRecord:
    """One build directory found in the root listing.

    Attributes:
        version: Version key with leading 'v' and trailing '/' removed.
        url: Absolute URL of the build directory.
        release_date: Listing date, epoch if unknown.
    """

    version: str
    url: str
    release_date: datetime


def parse_release_date(text: str | None) -> datetime:
    """Parse a listing date, falling back to the epoch.

    Args:
        text: Text found next to a build link.

    Returns:
        Timezone-aware UTC datetime, or the epoch if no date is recognised.
    """
    if not text:
        return EPOCH
    match = _DATE_RE.search(text)
    if match is None:
        return EPOCH
    value = match.group(0)
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).replace(tzinfo=UTC)
        except ValueError:
            continue
    return EPOCH


def _sibling_text(anchor: Tag) -> str | None:
    """Find the date text next to a listing link."""
    following = anchor.next_sibling
    if isinstance(following, NavigableString) and following.strip():
        return str(following)
    parent = anchor.parent
    if isinstance(parent, Tag):
        cell = parent.find_next_sibling()
        if isinstance(cell, Tag):
            return cell.get_text(" ", strip=True)
    return None


def _is_build_href(href: str) -> bool:
    return _VERSION_HREF_RE.match(href) is not None and EXCLUDE_MARKER not in href


def parse_listing(html: str, base_url: str) -> list[ListingRecord]:
    """Extract build directories from the root listing.

    Args:
        html: Listing HTML document.
        base_url: URL the listing was read from.

    Returns:
        Records in document order; the first link wins for duplicate keys.

    Raises:
        ParseError: If the document contains no links at all.
    """
    soup = BeautifulSoup(html, "html.parser")
    anchors = soup.find_all("a")
    if not anchors:
        raise ParseError(f"No links found in listing {base_url}")

    records: dict[str, ListingRecord] = {}
    for anchor in anchors:
        href = anchor.get("href")
        if not isinstance(href, str) or not _is_build_href(href):
            continue
        version = re.sub(r"^v|/$", "", href)
        if version in records:
            continue
        date_text = _sibling_text(anchor)
        release_date = parse_release_date(date_text)
        if release_date == EPOCH:
            logger.debug("No release date for %s (%r)", version, date_text)
        records[version] = ListingRecord(
            version=version,
            url=join_url(base_url, href),
            release_date=release_date,
        )
    return list(records.values())
