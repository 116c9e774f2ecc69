"""Unit tests for catalog models.

Tests for PackageInfo, variants, architectures and version ordering.
"""

import base64
from datetime import UTC, datetime

import pytest
from kmainline.core.errors import IntegrityMissingError, NotFoundError
from kmainline.models.catalog import (
    ALL_VARIANT,
    EPOCH,
    ArchitectureInfo,
    CatalogEntry,
    PackageInfo,
    PackageKind,
    Variant,
    VariantFiles,
    VariantStatus,
    version_sort_key,
)

SHA1 = "a" * 40
SHA256 = "0123456789abcdef" * 4


def make_package(
    prefix: str = "linux-modules",
    variant: str | None = "generic",
    arch: str = "amd64",
    sha1: str | None = None,
    sha256: str | None = SHA256,
) -> PackageInfo:
    """Create a PackageInfo for kernel 5.16.0 build 051600.202201091830."""
    full_name = f"{prefix}-5.16.0-051600" + (f"-{variant}" if variant else "")
    deb = f"{full_name}_5.16.0-051600.202201091830_{arch}.deb"
    return PackageInfo(
        version="5.16.0",
        arch=arch,
        package_full_name=full_name,
        deb=deb,
        deb_tag="051600.202201091830",
        deb_label="051600",
        tag="202201091830",
        deb_url=f"https://kernel.test/mainline/v5.16/{arch}/{deb}",
        package_label="051600",
        variant=variant,
        sha1=sha1,
        sha256=sha256,
    )


class TestPackageInfo:
    """Tests for PackageInfo dataclass."""

    def test_requires_a_digest(self) -> None:
        """A package without SHA-1 or SHA-256 is rejected."""
        with pytest.raises(IntegrityMissingError, match="Could not determine checksum"):
            make_package(sha1=None, sha256=None)

    def test_hash_prefers_sha256(self) -> None:
        """hash uses the SHA-256 digest when both are present."""
        pkg = make_package(sha1=SHA1, sha256=SHA256)
        expected = base64.b64encode(bytes.fromhex(SHA256)).decode()
        assert pkg.hash == f"sha256-{expected}"

    def test_hash_falls_back_to_sha1(self) -> None:
        """hash uses the SHA-1 digest when no SHA-256 is listed."""
        pkg = make_package(sha1=SHA1, sha256=None)
        expected = base64.b64encode(bytes.fromhex(SHA1)).decode()
        assert pkg.hash == f"sha1-{expected}"

    def test_rebuilt_filename_matches_deb(self) -> None:
        """rebuilt_filename reassembles the original artifact name."""
        pkg = make_package()
        assert pkg.rebuilt_filename == pkg.deb

    def test_variant_name_defaults_to_all(self) -> None:
        """Packages without variant belong to the 'all' variant."""
        assert make_package(variant=None).variant_name == ALL_VARIANT
        assert make_package(variant="lowlatency").variant_name == "lowlatency"

    def test_merged_with_unions_digests(self) -> None:
        """merged_with keeps the digests of both records."""
        sha1_only = make_package(sha1=SHA1, sha256=None)
        sha256_only = make_package(sha1=None, sha256=SHA256)

        merged = sha1_only.merged_with(sha256_only)

        assert merged.sha1 == SHA1
        assert merged.sha256 == SHA256

    def test_is_frozen(self) -> None:
        """PackageInfo is immutable."""
        pkg = make_package()
        with pytest.raises(AttributeError):
            pkg.arch = "arm64"  # type: ignore[misc]

    def test_to_dict(self) -> None:
        """to_dict includes the hash and omits missing digests."""
        data = make_package(sha1=None).to_dict()
        assert data["hash"].startswith("sha256-")
        assert data["variant"] == "generic"
        assert "sha1" not in data


class TestVariant:
    """Tests for Variant status and install set."""

    def test_status_signed(self) -> None:
        """A signed image makes the variant signed."""
        files = VariantFiles(
            image=make_package("linux-image"),
            image_unsigned=make_package("linux-image-unsigned"),
        )
        assert Variant("generic", files).status == VariantStatus.SIGNED

    def test_status_unsigned(self) -> None:
        """Only an unsigned image makes the variant unsigned."""
        files = VariantFiles(image_unsigned=make_package("linux-image-unsigned"))
        assert Variant("generic", files).status == VariantStatus.UNSIGNED

    def test_status_missing(self) -> None:
        """No image at all makes the variant missing."""
        files = VariantFiles(modules=make_package("linux-modules"))
        assert Variant("generic", files).status == VariantStatus.MISSING

    def test_install_set_order(self) -> None:
        """install_set returns headers, image, then modules."""
        headers = make_package("linux-headers")
        image = make_package("linux-image-unsigned")
        modules = make_package("linux-modules")
        files = VariantFiles(headers=[headers], modules=modules, image_unsigned=image)

        assert Variant("generic", files).install_set() == [headers, image, modules]

    def test_install_set_requires_modules(self) -> None:
        """install_set raises if the modules package is missing."""
        files = VariantFiles(
            headers=[make_package("linux-headers")],
            image=make_package("linux-image"),
        )
        with pytest.raises(NotFoundError, match="modules"):
            Variant("generic", files).install_set()

    def test_single_slot_merges(self) -> None:
        """Adding a single-valued package twice merges the records."""
        files = VariantFiles()
        files.add(PackageKind.MODULES, make_package(sha1=SHA1, sha256=None))
        files.add(PackageKind.MODULES, make_package(sha1=None, sha256=SHA256))

        assert files.modules is not None
        assert files.modules.sha1 == SHA1
        assert files.modules.sha256 == SHA256


class TestArchitectureInfo:
    """Tests for ArchitectureInfo population."""

    def test_add_package_discovers_variants(self) -> None:
        """Variants are recorded in discovery order, excluding 'all'."""
        info = ArchitectureInfo(name="amd64")
        info.add_package(PackageKind.HEADERS, make_package("linux-headers", variant=None))
        info.add_package(PackageKind.MODULES, make_package(variant="generic"))
        info.add_package(PackageKind.MODULES, make_package(variant="lowlatency"))
        info.add_package(PackageKind.IMAGE, make_package("linux-image", variant="generic"))

        assert info.variants == ["generic", "lowlatency"]
        assert set(info.packages) == {ALL_VARIANT, "generic", "lowlatency"}

    def test_headers_merge_by_full_name(self) -> None:
        """Header records for the same package collapse into one."""
        info = ArchitectureInfo(name="amd64")
        info.add_package(PackageKind.HEADERS, make_package("linux-headers", sha1=SHA1, sha256=None))
        info.add_package(PackageKind.HEADERS, make_package("linux-headers", sha1=None))

        headers = info.packages["generic"].files.headers
        assert len(headers) == 1
        assert headers[0].sha1 == SHA1
        assert headers[0].sha256 == SHA256

    def test_fan_out_headers(self) -> None:
        """Shared headers are attached to every variant."""
        info = ArchitectureInfo(name="amd64")
        shared = make_package("linux-headers", variant=None, arch="all")
        info.add_package(PackageKind.HEADERS, shared)
        info.add_package(PackageKind.HEADERS, make_package("linux-headers", variant="generic"))
        info.add_package(PackageKind.MODULES, make_package(variant="lowlatency"))

        info.fan_out_headers()

        generic = info.packages["generic"].files.headers
        assert [p.package_full_name for p in generic] == [
            "linux-headers-5.16.0-051600-generic",
            "linux-headers-5.16.0-051600",
        ]
        assert info.packages["lowlatency"].files.headers == [shared]

    def test_fan_out_is_idempotent(self) -> None:
        """Fanning out twice does not duplicate headers."""
        info = ArchitectureInfo(name="amd64")
        info.add_package(PackageKind.HEADERS, make_package("linux-headers", variant=None))
        info.add_package(PackageKind.MODULES, make_package(variant="generic"))

        info.fan_out_headers()
        info.fan_out_headers()

        assert len(info.packages["generic"].files.headers) == 1

    def test_unknown_variant(self) -> None:
        """variant() raises NotFoundError for unknown names."""
        with pytest.raises(NotFoundError, match="Variant oem is missing"):
            ArchitectureInfo(name="amd64").variant("oem")


class TestCatalogEntry:
    """Tests for CatalogEntry."""

    def test_defaults(self) -> None:
        """New entries have an epoch date and nothing resolved."""
        entry = CatalogEntry(version="5.13", source_url="https://kernel.test/mainline/v5.13")
        assert entry.release_date == EPOCH
        assert entry.summary is None
        assert entry.architectures == {}

    def test_unknown_architecture(self) -> None:
        """architecture() raises NotFoundError for unresolved names."""
        entry = CatalogEntry(version="5.13", source_url="https://kernel.test/mainline/v5.13")
        with pytest.raises(NotFoundError, match="riscv64"):
            entry.architecture("riscv64")

    def test_to_dict(self) -> None:
        """to_dict serializes dates as ISO strings."""
        entry = CatalogEntry(
            version="5.13",
            source_url="https://kernel.test/mainline/v5.13",
            release_date=datetime(2021, 6, 27, 23, 50, tzinfo=UTC),
        )
        data = entry.to_dict()
        assert data["version"] == "5.13"
        assert data["date"] == "2021-06-27T23:50:00+00:00"
        assert data["archs"] == {}


class TestVersionSortKey:
    """Tests for version_sort_key."""

    def test_semantic_order(self) -> None:
        """Versions sort numerically, release candidates before releases."""
        versions = ["5.13.1", "5.4", "5.14-rc1", "5.13", "5.10.100", "5.14", "5.10.9"]
        assert sorted(versions, key=version_sort_key) == [
            "5.4",
            "5.10.9",
            "5.10.100",
            "5.13",
            "5.13.1",
            "5.14-rc1",
            "5.14",
        ]

    def test_non_numeric_last(self) -> None:
        """Keys without a version number sort after every version."""
        assert sorted(["daily", "5.13"], key=version_sort_key) == ["5.13", "daily"]
