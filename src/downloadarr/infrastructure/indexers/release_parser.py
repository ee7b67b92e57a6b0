"""Release title parser using guessit for quality and codec extraction."""

from __future__ import annotations

import re

from guessit import guessit

from downloadarr.domain.entities.preferences import TorrentFormat, TorrentQuality

# --- Quality mappings ---

_SCREEN_SIZE_TO_QUALITY: dict[str, TorrentQuality] = {
    "4320p": TorrentQuality.UHD_8K,
    "2160p": TorrentQuality.UHD_4K,
    "1080p": TorrentQuality.HD_1080P,
    "1080i": TorrentQuality.HD_1080P,
    "720p": TorrentQuality.HD_720P,
    "576p": TorrentQuality.SD,
    "480p": TorrentQuality.SD,
    "480i": TorrentQuality.SD,
    "360p": TorrentQuality.SD,
}

# Keyword fallback, checked in order (first hit wins).
_QUALITY_KEYWORDS: list[tuple[re.Pattern[str], TorrentQuality]] = [
    (re.compile(r"(?i)\b(2160p|4k|uhd)\b"), TorrentQuality.UHD_4K),
    (re.compile(r"(?i)\b(4320p|8k)\b"), TorrentQuality.UHD_8K),
    (re.compile(r"(?i)\b(1080p|fhd)\b"), TorrentQuality.HD_1080P),
    (re.compile(r"(?i)\b(720p|hd)\b"), TorrentQuality.HD_720P),
    (re.compile(r"(?i)\b(480p|480i|sd|dvdrip)\b"), TorrentQuality.SD),
]

# --- Format mappings ---

# Title tokens distinguish x265 from HEVC; guessit folds both into H.265.
_FORMAT_KEYWORDS: list[tuple[re.Pattern[str], TorrentFormat]] = [
    (re.compile(r"(?i)\bav1\b"), TorrentFormat.AV1),
    (re.compile(r"(?i)\b(x265|h\.?265)\b"), TorrentFormat.X265),
    (re.compile(r"(?i)\bhevc\b"), TorrentFormat.HEVC),
    (re.compile(r"(?i)\b(x264|h\.?264)\b"), TorrentFormat.X264),
    (re.compile(r"(?i)\bxvid\b"), TorrentFormat.XVID),
    (re.compile(r"(?i)\bdivx\b"), TorrentFormat.DIVX),
]

_CODEC_TO_FORMAT: dict[str, TorrentFormat] = {
    "H.264": TorrentFormat.X264,
    "H.265": TorrentFormat.X265,
    "Xvid": TorrentFormat.XVID,
    "DivX": TorrentFormat.DIVX,
    "AV1": TorrentFormat.AV1,
}


def _tokenize(title: str) -> str:
    # Dots/underscores separate tokens in scene names; keep "h.265" intact.
    return re.sub(r"(?<![hH])[._]", " ", title)


def parse_quality(title: str) -> TorrentQuality | None:
    """Determine resolution tier from a release title.

    Priority: 1) guessit screen_size, 2) keyword scan.
    """
    if not title:
        return None

    guess = guessit(title)
    screen_size = guess.get("screen_size")
    if isinstance(screen_size, str) and screen_size in _SCREEN_SIZE_TO_QUALITY:
        return _SCREEN_SIZE_TO_QUALITY[screen_size]

    text = _tokenize(title)
    for pattern, quality in _QUALITY_KEYWORDS:
        if pattern.search(text):
            return quality
    return None


def parse_format(title: str) -> TorrentFormat | None:
    """Determine codec/format from a release title.

    Priority: 1) keyword scan, 2) guessit video_codec.
    """
    if not title:
        return None

    text = _tokenize(title)
    for pattern, fmt in _FORMAT_KEYWORDS:
        if pattern.search(text):
            return fmt

    codec = guessit(title).get("video_codec")
    if isinstance(codec, str):
        return _CODEC_TO_FORMAT.get(codec)
    return None
