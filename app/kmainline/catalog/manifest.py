"""Checksum manifest parser.

A mainline build directory publishes one CHECKSUMS file per architecture,
with one ``<hexdigest>  <filename>`` pair per line and one section per
digest algorithm::

    # Checksums-Sha1:
    1c5b...  linux-headers-5.16.0-051600_5.16.0-051600.202201091830_all.deb
    # Checksums-Sha256:
    9f2a...  linux-headers-5.16.0-051600_5.16.0-051600.202201091830_all.deb

Filenames follow the grammar::

    <prefix>-<version>[-<label>[-<variant>]]_<upstream>-<debTag>_<arch>.deb

where ``debTag`` is ``<label>.<build>``: the label segment of the tag is
either numeric or must repeat the label segment of the package name.
"""

import functools
import re
from enum import Enum

from kmainline.core.errors import IntegrityMissingError
from kmainline.models.catalog import PackageInfo
from kmainline.utils.urls import join_url

_SEMVER_RE = re.compile(r"(\d+)(?:\.(\d+))?(?:\.(\d+))?")


class MatchMode(str, Enum):
    """How many records a manifest match returns."""

    SINGLE = "single"
    MULTIPLE = "multiple"


def coerce_version(version: str) -> str:
    """Coerce a catalog version key to a full x.y.z version.

    Args:
        version: Version such as '5.13', '5.13.1' or 'v5.17-rc1'.

    Returns:
        Normalized version such as '5.13.0'.

    Raises:
        ValueError: If the string contains no version number.
    """
    match = _SEMVER_RE.search(version)
    if match is None:
        msg = f"Cannot derive a version number from {version!r}"
        raise ValueError(msg)
    major, minor, patch = match.groups()
    return f"{int(major)}.{int(minor or 0)}.{int(patch or 0)}"


@functools.lru_cache(maxsize=256)
def build_pattern(
    name: str,
    version: str | None = None,
    arch: str | None = None,
    variant: str | None = None,
) -> re.Pattern[str]:
    """Build the matcher for packages with the given name prefix.

    Args:
        name: Package name prefix (e.g., 'linux-headers').
        version: Restrict matches to this kernel version.
        arch: Restrict matches to this architecture.
        variant: Restrict matches to packages of this variant.

    Returns:
        Compiled multiline pattern with named groups ``sha256``, ``sha1``,
        ``digest``, ``deb``, ``packageFullName``, ``version``,
        ``packageLabel``, ``variant``, ``debTag``, ``debLabel``, ``tag``
        and ``arch``.
    """
    version_ident = (
        re.escape(coerce_version(version)) if version is not None else r"\d+\.\d+\.\d+"
    )
    arch_ident = re.escape(arch) if arch is not None else r"[^_\s]+?"
    # A digest token that is neither SHA-256 nor SHA-1 is still captured so
    # the entry can be rejected instead of silently skipped.
    digest = r"(?:(?P<sha256>[0-9A-Fa-f]{64})|(?P<sha1>[0-9A-Fa-f]{40})|(?P<digest>\S+))"
    if variant is None:
        suffix = r"(?:-(?P<packageLabel>[^_\s]+?)(?:-(?P<variant>[^_\s]+?))?)?"
    else:
        suffix = rf"-(?P<packageLabel>[^_\s]+?)-(?P<variant>{re.escape(variant)})"
    full_name = rf"(?P<packageFullName>{re.escape(name)}-(?P<version>{version_ident}){suffix})"
    deb_tag = r"(?P<debTag>(?P<debLabel>\d+|(?P=packageLabel))\.(?P<tag>\d+))"
    deb = rf"(?P<deb>{full_name}_\d+\.\d+\.\d+-{deb_tag}_(?P<arch>{arch_ident})\.deb)"
    return re.compile(rf"^[ \t]*{digest}[ \t]+\*?{deb}[ \t\r]*$", re.MULTILINE)


def _record_from_match(match: re.Match[str], base_url: str) -> dict[str, str | None]:
    groups = match.groupdict()
    return {
        "version": groups["version"],
        "arch": groups["arch"],
        "package_full_name": groups["packageFullName"],
        "package_label": groups["packageLabel"],
        "variant": groups["variant"],
        "deb": groups["deb"],
        "deb_tag": groups["debTag"],
        "deb_label": groups["debLabel"],
        "tag": groups["tag"],
        "deb_url": join_url(base_url, groups["deb"]),
        "sha1": groups["sha1"].lower() if groups["sha1"] else None,
        "sha256": groups["sha256"].lower() if groups["sha256"] else None,
    }


def _collect(text: str, pattern: re.Pattern[str], base_url: str) -> list[dict[str, str | None]]:
    """Gather matches, merging the per-algorithm lines of each file.

    Records keep the position of the first line that mentions the file.
    """
    records: dict[str, dict[str, str | None]] = {}
    for match in pattern.finditer(text):
        record = _record_from_match(match, base_url)
        deb = match.group("deb")
        existing = records.get(deb)
        if existing is None:
            records[deb] = record
            continue
        for key, value in record.items():
            if value is not None:
                existing[key] = value
    return list(records.values())


def _to_package(record: dict[str, str | None]) -> PackageInfo:
    return PackageInfo(**record)  # type: ignore[arg-type]


def match_packages(
    text: str,
    pattern: re.Pattern[str],
    base_url: str,
    mode: MatchMode = MatchMode.MULTIPLE,
) -> PackageInfo | list[PackageInfo] | None:
    """Extract package records from a checksum manifest.

    Args:
        text: Manifest document.
        pattern: Pattern from build_pattern().
        base_url: URL the artifact filenames are relative to.
        mode: SINGLE returns the first record (or None), MULTIPLE returns
            every record in document order.

    Returns:
        PackageInfo, list of PackageInfo, or None in SINGLE mode without match.

    Raises:
        IntegrityMissingError: If a matched entry has no SHA-256 or SHA-1 digest.
    """
    if mode is MatchMode.SINGLE:
        return find_package(text, pattern, base_url)
    return find_packages(text, pattern, base_url)


def find_package(text: str, pattern: re.Pattern[str], base_url: str) -> PackageInfo | None:
    """Return the first package matching ``pattern``, if any."""
    records = _collect(text, pattern, base_url)
    return _to_package(records[0]) if records else None


def find_packages(text: str, pattern: re.Pattern[str], base_url: str) -> list[PackageInfo]:
    """Return every package matching ``pattern`` in document order."""
    return [_to_package(record) for record in _collect(text, pattern, base_url)]


def partition_packages(
    text: str, pattern: re.Pattern[str], base_url: str
) -> tuple[list[PackageInfo], list[IntegrityMissingError]]:
    """Validate every matching record on its own.

    A record without a usable digest is rejected without affecting the
    other records.

    Returns:
        The valid packages in document order, and one error per rejected record.
    """
    packages: list[PackageInfo] = []
    errors: list[IntegrityMissingError] = []
    for record in _collect(text, pattern, base_url):
        try:
            packages.append(_to_package(record))
        except IntegrityMissingError as e:
            errors.append(e)
    return packages, errors
