"""Tests for release-title quality/format parsing."""

from __future__ import annotations

import pytest

from downloadarr.domain.entities.preferences import TorrentFormat, TorrentQuality
from downloadarr.infrastructure.indexers.release_parser import (
    parse_format,
    parse_quality,
)


class TestParseQuality:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Dune.2021.2160p.WEB-DL.x265", TorrentQuality.UHD_4K),
            ("Dune.2021.1080p.BluRay.x264", TorrentQuality.HD_1080P),
            ("Dune.2021.720p.WEBRip.x264", TorrentQuality.HD_720P),
            ("Dune.2021.480p.DVDRip.XviD", TorrentQuality.SD),
        ],
    )
    def test_screen_size(self, title: str, expected: TorrentQuality) -> None:
        assert parse_quality(title) == expected

    def test_empty_title(self) -> None:
        assert parse_quality("") is None


class TestParseFormat:
    @pytest.mark.parametrize(
        ("title", "expected"),
        [
            ("Dune.2021.1080p.WEB-DL.x265-GRP", TorrentFormat.X265),
            ("Dune 2021 1080p HEVC", TorrentFormat.HEVC),
            ("Dune.2021.1080p.BluRay.x264-GRP", TorrentFormat.X264),
            ("Dune.2021.1080p.H.264", TorrentFormat.X264),
            ("Dune.2021.2160p.AV1", TorrentFormat.AV1),
            ("Dune.2021.DVDRip.XviD", TorrentFormat.XVID),
            ("Dune.2021.DVDRip.DivX", TorrentFormat.DIVX),
        ],
    )
    def test_keywords(self, title: str, expected: TorrentFormat) -> None:
        assert parse_format(title) == expected

    def test_x265_wins_over_hevc_when_both_present(self) -> None:
        assert parse_format("Dune.2021.1080p.HEVC.x265") == TorrentFormat.X265

    def test_empty_title(self) -> None:
        assert parse_format("") is None
