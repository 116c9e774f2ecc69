"""Catalog models for mainline kernel builds.

This module defines the data structures the catalog resolver builds from
the remote listing, summary and checksum documents:

    CatalogEntry -> ArchitectureInfo -> Variant -> PackageInfo

All of them are populated on demand by the resolver and are read-only for
every other component.
"""

from __future__ import annotations

import base64
import re
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from kmainline.core.errors import IntegrityMissingError, NotFoundError

# Variant name used for architecture-independent packages (headers)
ALL_VARIANT = "all"

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


class PackageKind(str, Enum):
    """Package roles that make up one kernel variant.

    The value is the package name prefix used in the checksum manifest.
    """

    HEADERS = "linux-headers"
    MODULES = "linux-modules"
    IMAGE = "linux-image"
    IMAGE_UNSIGNED = "linux-image-unsigned"

    @property
    def multiple(self) -> bool:
        """Whether a variant can hold several packages of this kind."""
        return self is PackageKind.HEADERS


class VariantStatus(str, Enum):
    """Install readiness of a variant, derived from its image packages."""

    SIGNED = "signed"
    UNSIGNED = "unsigned"
    MISSING = "missing"


def _digest_to_sri(algorithm: str, hex_digest: str) -> str:
    """Encode a hex digest as '<algorithm>-<base64>'."""
    return f"{algorithm}-{base64.b64encode(bytes.fromhex(hex_digest)).decode('ascii')}"


@dataclass(frozen=True, slots=True)
class PackageInfo:
    """A single resolved .deb artifact from a checksum manifest.

    Attributes:
        version: Kernel version from the package name (e.g., '5.16.0').
        arch: Debian architecture (e.g., 'amd64', 'all').
        package_full_name: Full package name (e.g., 'linux-modules-5.16.0-051600-generic').
        deb: Artifact filename.
        deb_tag: Build tag (e.g., '051600.202201091830').
        deb_label: Label part of the build tag (e.g., '051600').
        tag: Build number part of the build tag (e.g., '202201091830').
        deb_url: Resolved download URL.
        package_label: Label segment of the package name, if any.
        variant: Variant segment of the package name, if any.
        sha1: SHA-1 hex digest, if listed.
        sha256: SHA-256 hex digest, if listed.
    """

    version: str
    arch: str
    package_full_name: str
    deb: str
    deb_tag: str
    deb_label: str
    tag: str
    deb_url: str
    package_label: str | None = field(default=None)
    variant: str | None = field(default=None)
    sha1: str | None = field(default=None)
    sha256: str | None = field(default=None)

    def __post_init__(self) -> None:
        """Reject packages that cannot be integrity-checked."""
        if not self.sha256 and not self.sha1:
            msg = f'Could not determine checksum of package "{self.package_full_name}".'
            raise IntegrityMissingError(msg)

    @property
    def hash(self) -> str:
        """Integrity string, preferring SHA-256 over SHA-1."""
        if self.sha256:
            return _digest_to_sri("sha256", self.sha256)
        return _digest_to_sri("sha1", self.sha1 or "")

    @property
    def variant_name(self) -> str:
        """Variant this package belongs to ('all' when it has none)."""
        return self.variant or ALL_VARIANT

    @property
    def rebuilt_filename(self) -> str:
        """Reassemble the artifact filename from its parsed parts."""
        return f"{self.package_full_name}_{self.version}-{self.deb_tag}_{self.arch}.deb"

    def merged_with(self, other: PackageInfo) -> PackageInfo:
        """Merge another record of the same package into this one.

        Non-empty attributes of ``other`` win; digests are unioned.

        Args:
            other: A record with the same package_full_name.

        Returns:
            New PackageInfo carrying the attributes of both.
        """
        return replace(
            self,
            **{
                name: getattr(other, name)
                for name in self.__dataclass_fields__
                if getattr(other, name) is not None
            },
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "version": self.version,
            "arch": self.arch,
            "package_full_name": self.package_full_name,
            "deb": self.deb,
            "deb_tag": self.deb_tag,
            "deb_url": self.deb_url,
            "hash": self.hash,
        }
        if self.package_label is not None:
            result["package_label"] = self.package_label
        if self.variant is not None:
            result["variant"] = self.variant
        if self.sha1 is not None:
            result["sha1"] = self.sha1
        if self.sha256 is not None:
            result["sha256"] = self.sha256
        return result


def _merge_into(packages: list[PackageInfo], pkg: PackageInfo) -> None:
    """Insert a package into a list, merging on package_full_name."""
    for index, existing in enumerate(packages):
        if existing.package_full_name == pkg.package_full_name:
            packages[index] = existing.merged_with(pkg)
            return
    packages.append(pkg)


@dataclass(slots=True)
class VariantFiles:
    """Packages of one variant, one slot per PackageKind.

    Headers are a list since a variant can depend on several header
    packages (its own and the architecture-independent ones); every other
    role holds at most one package.
    """

    headers: list[PackageInfo] = field(default_factory=list)
    modules: PackageInfo | None = None
    image: PackageInfo | None = None
    image_unsigned: PackageInfo | None = None

    def add(self, kind: PackageKind, pkg: PackageInfo) -> None:
        """Record a package under its role.

        Multi-valued roles merge on package_full_name, single-valued roles
        merge with the package already present.
        """
        if kind is PackageKind.HEADERS:
            _merge_into(self.headers, pkg)
            return
        attr = _SINGLE_SLOTS[kind]
        current: PackageInfo | None = getattr(self, attr)
        setattr(self, attr, pkg if current is None else current.merged_with(pkg))

    def get(self, kind: PackageKind) -> list[PackageInfo]:
        """Return the packages of a role as a list (empty if absent)."""
        if kind is PackageKind.HEADERS:
            return list(self.headers)
        pkg = getattr(self, _SINGLE_SLOTS[kind])
        return [pkg] if pkg is not None else []

    def all_packages(self) -> list[PackageInfo]:
        """Return every package of this variant."""
        return [pkg for kind in PackageKind for pkg in self.get(kind)]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {"headers": [pkg.to_dict() for pkg in self.headers]}
        for attr in _SINGLE_SLOTS.values():
            pkg = getattr(self, attr)
            if pkg is not None:
                result[attr] = pkg.to_dict()
        return result


_SINGLE_SLOTS: dict[PackageKind, str] = {
    PackageKind.MODULES: "modules",
    PackageKind.IMAGE: "image",
    PackageKind.IMAGE_UNSIGNED: "image_unsigned",
}


@dataclass(slots=True)
class Variant:
    """A named build flavor (e.g. 'generic', 'lowlatency') of one architecture."""

    name: str
    files: VariantFiles = field(default_factory=VariantFiles)

    @property
    def status(self) -> VariantStatus:
        """Signed when a signed image exists, unsigned when only the unsigned one does."""
        if self.files.image is not None:
            return VariantStatus.SIGNED
        if self.files.image_unsigned is not None:
            return VariantStatus.UNSIGNED
        return VariantStatus.MISSING

    def install_set(self) -> list[PackageInfo]:
        """Return the packages needed to install this variant.

        Returns:
            Headers, then the image (signed preferred), then modules.

        Raises:
            NotFoundError: If headers, modules or any image are missing.
        """
        files = self.files
        if not files.headers:
            raise NotFoundError(f"Missing headers package for variant {self.name}")
        if files.modules is None:
            raise NotFoundError(f"Missing modules package for variant {self.name}")
        image = files.image or files.image_unsigned
        if image is None:
            raise NotFoundError(f"Missing image package for variant {self.name}")
        return [*files.headers, image, files.modules]

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {"name": self.name, "status": self.status.value, "files": self.files.to_dict()}


@dataclass(slots=True)
class ArchitectureInfo:
    """Packages of one kernel version for one architecture.

    Attributes:
        name: Debian architecture name.
        variants: Variant names in discovery order, excluding 'all'.
        packages: Variant name to Variant (including 'all').
        error: Warning annotation when resolution failed.
    """

    name: str
    variants: list[str] = field(default_factory=list)
    packages: dict[str, Variant] = field(default_factory=dict)
    error: str | None = None

    def add_package(self, kind: PackageKind, pkg: PackageInfo) -> None:
        """Record a package under its variant, discovering the variant if new."""
        variant_name = pkg.variant_name
        if pkg.variant and variant_name not in self.variants:
            self.variants.append(variant_name)
        variant = self.packages.get(variant_name)
        if variant is None:
            variant = self.packages[variant_name] = Variant(name=variant_name)
        variant.files.add(kind, pkg)

    def fan_out_headers(self) -> None:
        """Attach the architecture-independent headers to every variant."""
        shared = self.packages.get(ALL_VARIANT)
        if shared is None:
            return
        for name in self.variants:
            for pkg in shared.files.headers:
                self.packages[name].files.add(PackageKind.HEADERS, pkg)

    def variant(self, name: str) -> Variant:
        """Look up a variant by name.

        Raises:
            NotFoundError: If the variant was not found for this architecture.
        """
        try:
            return self.packages[name]
        except KeyError:
            raise NotFoundError(f"Variant {name} is missing for architecture {self.name}") from None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        result: dict[str, Any] = {
            "name": self.name,
            "variants": list(self.variants),
            "packages": {name: v.to_dict() for name, v in self.packages.items()},
        }
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass(frozen=True, slots=True)
class BuildSummary:
    """Build metadata read from a version's summary.yaml."""

    host: str | None
    architectures: list[str]
    series: str | None
    commit: str | None
    commit_label: str | None
    commit_title: str | None
    commit_time: datetime | None
    commit_hash: str | None
    start_time: datetime | None
    end_time: datetime | None
    listing_url: str
    summary_url: str

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "host": self.host,
            "architectures": list(self.architectures),
            "series": self.series,
            "commit": self.commit,
            "commit_label": self.commit_label,
            "commit_title": self.commit_title,
            "commit_time": _iso(self.commit_time),
            "commit_hash": self.commit_hash,
            "start_time": _iso(self.start_time),
            "end_time": _iso(self.end_time),
            "listing_url": self.listing_url,
            "summary_url": self.summary_url,
        }


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class CatalogEntry:
    """One published kernel version.

    Attributes:
        version: Version key (e.g., '5.16', '5.13.1', '5.17-rc1').
        source_url: Directory URL of the build.
        release_date: Date shown in the listing (epoch if unknown).
        summary: Build summary, loaded on first request.
        architectures: Resolved architectures by name.
    """

    version: str
    source_url: str
    release_date: datetime = EPOCH
    summary: BuildSummary | None = None
    architectures: dict[str, ArchitectureInfo] = field(default_factory=dict)

    def architecture(self, name: str) -> ArchitectureInfo:
        """Look up a resolved architecture by name.

        Raises:
            NotFoundError: If the architecture was not resolved for this version.
        """
        try:
            return self.architectures[name]
        except KeyError:
            msg = f"Architecture {name} is not available for kernel {self.version}"
            raise NotFoundError(msg) from None

    def to_dict(self) -> dict[str, Any]:
        """Serialize to dictionary for JSON output."""
        return {
            "version": self.version,
            "url": self.source_url,
            "date": self.release_date.isoformat(),
            "summary": self.summary.to_dict() if self.summary is not None else None,
            "archs": {name: a.to_dict() for name, a in self.architectures.items()},
        }


_VERSION_RE = re.compile(r"^(\d+)(?:\.(\d+))?(?:\.(\d+))?(?:-?(.*))?$")


def version_sort_key(version: str) -> tuple[int, int, int, int, str]:
    """Sort key ordering version keys like semantic versions.

    Pre-release suffixes ('-rc3') sort before the release itself, and
    non-numeric keys sort last.

    Args:
        version: Catalog version key (e.g., '5.10.1', '5.17-rc1').

    Returns:
        Tuple usable as a sort key.
    """
    match = _VERSION_RE.match(version)
    if match is None:
        return (1 << 30, 0, 0, 0, version)
    major, minor, patch, suffix = match.groups()
    return (
        int(major),
        int(minor or 0),
        int(patch or 0),
        0 if suffix else 1,
        suffix or "",
    )
