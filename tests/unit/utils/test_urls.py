"""Unit tests for URL helpers."""

import pytest
from kmainline.utils.urls import basename, join_url


class TestJoinUrl:
    """Tests for join_url function."""

    @pytest.mark.parametrize(
        ("base", "parts", "expected"),
        [
            ("https://host/mainline", ("v5.13",), "https://host/mainline/v5.13"),
            ("https://host/mainline/", ("v5.13/",), "https://host/mainline/v5.13"),
            ("https://host/mainline", ("/v5.13/", "/amd64"), "https://host/mainline/v5.13/amd64"),
            ("https://host/mainline/", (), "https://host/mainline"),
            ("https://host/mainline", ("", "CHECKSUMS"), "https://host/mainline/CHECKSUMS"),
        ],
    )
    def test_joins(self, base: str, parts: tuple[str, ...], expected: str) -> None:
        """Segments are joined with exactly one slash."""
        assert join_url(base, *parts) == expected


class TestBasename:
    """Tests for basename function."""

    def test_last_segment(self) -> None:
        """The file name of a URL is its last segment."""
        assert basename("https://host/v5.13/amd64/linux.deb") == "linux.deb"

    def test_trailing_slash(self) -> None:
        """Directory URLs yield the directory name."""
        assert basename("https://host/mainline/v5.13/") == "v5.13"
