"""Unit tests for the build summary parser."""

from datetime import UTC, datetime

import pytest
from kmainline.catalog.summary import parse_summary
from kmainline.core.errors import ParseError

LISTING_URL = "https://kernel.test/mainline/v5.13"
SUMMARY_URL = f"{LISTING_URL}/summary.yaml"


class TestParseSummary:
    """Tests for parse_summary."""

    def test_remaps_keys(self, summary_yaml: str) -> None:
        """Hyphenated summary keys map onto BuildSummary fields."""
        summary = parse_summary(summary_yaml, LISTING_URL, SUMMARY_URL)

        assert summary.host == "kathleen"
        assert summary.series == "impish"
        assert summary.commit == "v5.13"
        assert summary.commit_label == "v5.13"
        assert summary.commit_title == "Linux 5.13"
        assert summary.commit_hash == "62fb9874f5da54fdb243003b386128037319b219"
        assert summary.listing_url == LISTING_URL
        assert summary.summary_url == SUMMARY_URL

    def test_testsets_become_architectures(self, summary_yaml: str) -> None:
        """testsets entries are reduced to unique architecture names."""
        summary = parse_summary(summary_yaml, LISTING_URL, SUMMARY_URL)
        assert summary.architectures == ["amd64", "arm64"]

    def test_timestamps(self, summary_yaml: str) -> None:
        """Timestamps become timezone-aware datetimes."""
        summary = parse_summary(summary_yaml, LISTING_URL, SUMMARY_URL)

        assert summary.start_time == datetime(2021, 6, 27, 23, 33, 48, tzinfo=UTC)
        assert summary.end_time == datetime(2021, 6, 28, 1, 2, 3, tzinfo=UTC)
        assert summary.commit_time is not None
        assert summary.commit_time.tzinfo is not None

    def test_epoch_and_string_timestamps(self) -> None:
        """Epoch numbers and quoted ISO strings are accepted."""
        text = 'start-time: 0\nend-time: "2021-06-28T01:02:03Z"\n'
        summary = parse_summary(text, LISTING_URL, SUMMARY_URL)

        assert summary.start_time == datetime(1970, 1, 1, tzinfo=UTC)
        assert summary.end_time == datetime(2021, 6, 28, 1, 2, 3, tzinfo=UTC)

    def test_missing_keys_are_none(self) -> None:
        """Absent keys leave the fields empty."""
        summary = parse_summary("series: jammy\n", LISTING_URL, SUMMARY_URL)

        assert summary.series == "jammy"
        assert summary.host is None
        assert summary.architectures == []
        assert summary.commit_time is None

    def test_invalid_yaml(self) -> None:
        """Malformed YAML raises ParseError."""
        with pytest.raises(ParseError, match="Invalid YAML"):
            parse_summary("testsets: [amd64/build\n", LISTING_URL, SUMMARY_URL)

    def test_non_mapping(self) -> None:
        """A document that is not a mapping raises ParseError."""
        with pytest.raises(ParseError, match="Expected a mapping"):
            parse_summary("- amd64\n- arm64\n", LISTING_URL, SUMMARY_URL)

    def test_invalid_timestamp(self) -> None:
        """Unparseable timestamps raise ParseError."""
        with pytest.raises(ParseError, match="Invalid timestamp"):
            parse_summary("start-time: yesterday\n", LISTING_URL, SUMMARY_URL)
