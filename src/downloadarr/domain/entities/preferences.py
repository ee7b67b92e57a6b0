"""Domain entities for torrent preferences.

Pure value objects, no framework dependencies, no I/O.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class TorrentQuality(str, Enum):
    """Video resolution tiers.

    Values are the labels used in release titles and API payloads;
    names (``HD_1080P``) are accepted on input as well.
    """

    SD = "SD"
    HD_720P = "720p"
    HD_1080P = "1080p"
    UHD_4K = "4K"
    UHD_8K = "8K"

    @classmethod
    def parse(cls, value: str | TorrentQuality) -> TorrentQuality:
        return _parse_enum(cls, value)


class TorrentFormat(str, Enum):
    """Video codec / container formats."""

    X264 = "x264"
    X265 = "x265"
    XVID = "XviD"
    DIVX = "DivX"
    AV1 = "AV1"
    HEVC = "HEVC"

    @classmethod
    def parse(cls, value: str | TorrentFormat) -> TorrentFormat:
        return _parse_enum(cls, value)


class TorrentCategory(str, Enum):
    MOVIES = "Movies"
    MOVIES_HD = "Movies/HD"
    MOVIES_UHD = "Movies/UHD"
    TV = "TV"
    TV_HD = "TV/HD"
    TV_UHD = "TV/UHD"
    GAMES = "PC/Games"

    @classmethod
    def parse(cls, value: str | TorrentCategory) -> TorrentCategory:
        return _parse_enum(cls, value)


class ContentType(str, Enum):
    MOVIE = "movie"
    TV_SHOW = "tv-show"
    GAME = "game"

    @classmethod
    def parse(cls, value: str | ContentType) -> ContentType:
        return _parse_enum(cls, value)


def _parse_enum(enum_cls, value):
    """Resolve *value* by member value, then by member name (case-insensitive)."""
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        raise ValueError(f"{value!r} is not a valid {enum_cls.__name__}")
    raw = value.strip()
    for member in enum_cls:
        if member.value.lower() == raw.lower():
            return member
    normalized = raw.upper().replace("-", "_").replace("/", "_")
    if normalized in enum_cls.__members__:
        return enum_cls.__members__[normalized]
    raise ValueError(f"{value!r} is not a valid {enum_cls.__name__}")


@dataclass(frozen=True)
class TorrentPreferences:
    """Stored selection preferences.

    ``preferred_qualities`` and ``preferred_formats`` are ordered: earlier
    entries are preferred over later ones.
    """

    preferred_qualities: list[TorrentQuality] = field(
        default_factory=lambda: [
            TorrentQuality.HD_1080P,
            TorrentQuality.HD_720P,
            TorrentQuality.UHD_4K,
        ]
    )
    preferred_formats: list[TorrentFormat] = field(
        default_factory=lambda: [
            TorrentFormat.X265,
            TorrentFormat.HEVC,
            TorrentFormat.X264,
        ]
    )
    default_category: TorrentCategory = TorrentCategory.MOVIES_HD
    min_seeders: int = 5
    max_size_gb: float = 20.0
    trusted_indexers: list[str] = field(
        default_factory=lambda: ["1337x", "RARBG", "YTS"]
    )
    blacklisted_words: list[str] = field(
        default_factory=lambda: ["cam", "ts", "hdcam", "hdts"]
    )
    auto_select_best: bool = True
    prefer_remux: bool = False
    prefer_small_size: bool = False

    def to_dict(self) -> dict[str, object]:
        return {
            "preferred_qualities": [q.value for q in self.preferred_qualities],
            "preferred_formats": [f.value for f in self.preferred_formats],
            "default_category": self.default_category.value,
            "min_seeders": self.min_seeders,
            "max_size_gb": self.max_size_gb,
            "trusted_indexers": list(self.trusted_indexers),
            "blacklisted_words": list(self.blacklisted_words),
            "auto_select_best": self.auto_select_best,
            "prefer_remux": self.prefer_remux,
            "prefer_small_size": self.prefer_small_size,
        }

    @classmethod
    def from_dict(cls, data: dict[str, object]) -> TorrentPreferences:
        """Rebuild from a trusted (already validated) mapping."""
        defaults = cls()
        return cls(
            preferred_qualities=[
                TorrentQuality.parse(q)
                for q in data.get("preferred_qualities", defaults.preferred_qualities)
            ],
            preferred_formats=[
                TorrentFormat.parse(f)
                for f in data.get("preferred_formats", defaults.preferred_formats)
            ],
            default_category=TorrentCategory.parse(
                data.get("default_category", defaults.default_category)
            ),
            min_seeders=int(data.get("min_seeders", defaults.min_seeders)),
            max_size_gb=float(data.get("max_size_gb", defaults.max_size_gb)),
            trusted_indexers=list(
                data.get("trusted_indexers", defaults.trusted_indexers)
            ),
            blacklisted_words=list(
                data.get("blacklisted_words", defaults.blacklisted_words)
            ),
            auto_select_best=bool(
                data.get("auto_select_best", defaults.auto_select_best)
            ),
            prefer_remux=bool(data.get("prefer_remux", defaults.prefer_remux)),
            prefer_small_size=bool(
                data.get("prefer_small_size", defaults.prefer_small_size)
            ),
        )
