"""Build summary parser.

Each build directory carries a ``summary.yaml`` describing the build host,
the source commit and the architectures that were built.
"""

from datetime import UTC, date, datetime
from typing import Any

import yaml

from kmainline.core.errors import ParseError
from kmainline.models.catalog import BuildSummary

# summary.yaml key for each BuildSummary field
SUMMARY_KEYS: dict[str, str] = {
    "host": "build-host",
    "architectures": "testsets",
    "commit_label": "commit-label",
    "commit_title": "commit-title",
    "commit_time": "commit-time",
    "commit_hash": "commit-hash",
    "start_time": "start-time",
    "end_time": "end-time",
    "series": "series",
    "commit": "commit",
}

_TIME_FIELDS = ("commit_time", "start_time", "end_time")
_TEXT_FIELDS = ("host", "series", "commit", "commit_label", "commit_title", "commit_hash")


def _to_datetime(value: Any) -> datetime | None:
    """Normalize a YAML timestamp to an aware UTC datetime."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=UTC)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)
    try:
        parsed = datetime.fromisoformat(str(value).strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise ParseError(f"Invalid timestamp in summary: {value!r}") from e
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)


def _to_architectures(value: Any) -> list[str]:
    """Reduce testsets such as 'amd64/build' to unique architecture names."""
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, list):
        raise ParseError(f"Invalid testsets in summary: {value!r}")
    archs: list[str] = []
    for item in value:
        name = str(item).split("/", 1)[0].strip()
        if name and name not in archs:
            archs.append(name)
    return archs


def parse_summary(text: str, listing_url: str, summary_url: str) -> BuildSummary:
    """Parse a summary.yaml document.

    Args:
        text: YAML document.
        listing_url: Build directory URL.
        summary_url: URL the document was read from.

    Returns:
        BuildSummary with the remapped fields.

    Raises:
        ParseError: If the document is not a YAML mapping or has invalid values.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise ParseError(f"Invalid YAML in {summary_url}: {e}") from e

    if not isinstance(data, dict):
        raise ParseError(f"Expected a mapping in {summary_url}, got {type(data).__name__}")

    values: dict[str, Any] = {field: data.get(key) for field, key in SUMMARY_KEYS.items()}
    for field in _TEXT_FIELDS:
        if values[field] is not None:
            values[field] = str(values[field])
    for field in _TIME_FIELDS:
        values[field] = _to_datetime(values[field])
    values["architectures"] = _to_architectures(values["architectures"])

    return BuildSummary(listing_url=listing_url, summary_url=summary_url, **values)
