"""Title sanitization, name-variation generation and folder-name parsing.

Directory matching is exact string comparison over generated variants;
near-misses are left for the manual organize queue.
"""

from __future__ import annotations

import re

from guessit import guessit

from downloadarr.domain.entities.organize import DetectedMetadata
from downloadarr.domain.entities.preferences import ContentType

# --- Sanitization ---

_STRIP_CHARS = re.compile(r'[;?"<>|*]')
_SLASHES = re.compile(r"[/\\]")
_WHITESPACE = re.compile(r"\s+")
_TRAILING_S = re.compile(r"s$")
_LEADING_THE = re.compile(r"^The\s+")


def sanitize_title(title: str) -> str:
    """Make a title safe to use as a directory name.

    Colon becomes underscore, ``; ? " < > | *`` are removed, slashes become
    dashes and whitespace runs collapse to a single space.
    """
    out = title.replace(":", "_")
    out = _STRIP_CHARS.sub("", out)
    out = _SLASHES.sub("-", out)
    out = _WHITESPACE.sub(" ", out)
    return out.strip()


def generate_title_variations(title: str) -> list[str]:
    """Raw + sanitized title, each with a trailing "s" stripped, each of
    those with a leading "The " removed. Deduplicated, order-preserving,
    empty strings dropped."""
    base = [title, sanitize_title(title)]
    singular = [_TRAILING_S.sub("", v) for v in base]
    with_the = base + singular
    without_the = [_LEADING_THE.sub("", v) for v in with_the]
    return [v for v in dict.fromkeys(with_the + without_the) if v]


def generate_directory_variations(title: str, year: int | None = None) -> list[str]:
    """Title variations, each optionally followed by its ``"<variant> (year)"`` form."""
    names: list[str] = []
    for variant in generate_title_variations(title):
        names.append(variant)
        if year:
            names.append(f"{variant} ({year})")
    return list(dict.fromkeys(names))


def matches_directory(folder_name: str, title: str, year: int | None = None) -> bool:
    """Exact match of the sanitized folder name against the title's variants."""
    candidate = sanitize_title(folder_name)
    return candidate in generate_directory_variations(title, year)


# --- Folder-name parsing ---

_MEDIA_EXTENSIONS = re.compile(
    r"\.(mkv|mp4|avi|m4v|mov|wmv|ts|iso)$", re.IGNORECASE
)

# Library naming conventions (what placement produces).
_MOVIE_PATTERN = re.compile(
    r"^(?P<title>.+?)\s*\((?P<year>\d{4})\)"
    r"(?:\s*-\s*(?P<quality>.+?))?(?:\s*-\s*(?P<format>.+?))?"
    r"(?:\s*-\s*(?P<edition>.+?))?$"
)
_TV_PATTERN = re.compile(
    r"^(?P<title>.+?)\s*-\s*S(?P<season>\d+)E(?P<episode>\d+)"
    r"(?:\s*-\s*(?P<quality>.+?))?(?:\s*-\s*(?P<format>.+?))?"
    r"(?:\s*-\s*(?P<edition>.+?))?$",
    re.IGNORECASE,
)
_TV_FOLDER_PATTERN = re.compile(r"^(?P<title>.+?)\s*\((?P<year>\d{4})\)$")
_GAME_PATTERN = re.compile(
    r"^(?P<title>.+?)\s*\((?P<platform>.+?)\)(?:\s*-\s*(?P<edition>.+?))?$"
)

# Fallback cleanup.
_YEAR_PAREN = re.compile(r"\((\d{4})\)")
_YEAR_BRACKET = re.compile(r"\[(\d{4})\]")
_YEAR_BARE = re.compile(r"\b(19\d{2}|20\d{2})\b")
_QUALITY_TAGS = re.compile(
    r"\b(2160p|1080p|720p|480p|4k|uhd|bluray|blu-ray|brrip|bdrip|web-?dl|webrip|"
    r"hdtv|dvdrip|x264|x265|h\.?264|h\.?265|hevc|xvid|divx|av1|remux|hdr|"
    r"proper|repack)\b",
    re.IGNORECASE,
)
_SEPARATORS = re.compile(r"[._]+")
_BRACKETS = re.compile(r"[\[\]()]")


def _int_or_none(value: object) -> int | None:
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.isdigit():
        return int(value)
    return None


def _from_convention(name: str, content_type: ContentType) -> DetectedMetadata | None:
    if content_type == ContentType.MOVIE:
        m = _MOVIE_PATTERN.match(name)
        if m:
            return DetectedMetadata(
                title=m["title"].strip(),
                year=int(m["year"]),
                quality=m["quality"],
                format=m["format"],
                edition=m["edition"],
            )
    elif content_type == ContentType.TV_SHOW:
        m = _TV_PATTERN.match(name)
        if m:
            return DetectedMetadata(
                title=m["title"].strip(),
                season=int(m["season"]),
                episode=int(m["episode"]),
                quality=m["quality"],
                format=m["format"],
                edition=m["edition"],
            )
        m = _TV_FOLDER_PATTERN.match(name)
        if m:
            return DetectedMetadata(title=m["title"].strip(), year=int(m["year"]))
    elif content_type == ContentType.GAME:
        m = _GAME_PATTERN.match(name)
        if m:
            return DetectedMetadata(
                title=m["title"].strip(),
                platform=m["platform"].strip(),
                edition=m["edition"],
            )
    return None


def _from_release_name(name: str, content_type: ContentType) -> DetectedMetadata | None:
    """Scene-style names (``Dune.2021.1080p.WEB-DL.x265-GRP``) via guessit."""
    if content_type == ContentType.GAME:
        return None
    guess = guessit(name)
    title = guess.get("title")
    if not isinstance(title, str) or not title.strip():
        return None
    # guessit returns a list for multi-season packs; keep the first.
    season = guess.get("season")
    if isinstance(season, list):
        season = season[0] if season else None
    episode = guess.get("episode")
    if isinstance(episode, list):
        episode = episode[0] if episode else None
    codec = guess.get("video_codec")
    return DetectedMetadata(
        title=title.strip(),
        year=_int_or_none(guess.get("year")),
        season=_int_or_none(season),
        episode=_int_or_none(episode),
        quality=guess.get("screen_size"),
        format=str(codec) if codec else None,
        edition=guess.get("edition") if isinstance(guess.get("edition"), str) else None,
    )


def _fallback(name: str) -> DetectedMetadata:
    year = None
    for pattern in (_YEAR_PAREN, _YEAR_BRACKET, _YEAR_BARE):
        m = pattern.search(name)
        if m:
            year = int(m.group(1))
            break

    cleaned = name
    if year is not None:
        cleaned = cleaned.replace(str(year), " ")
    cleaned = _QUALITY_TAGS.sub(" ", cleaned)
    cleaned = _SEPARATORS.sub(" ", cleaned)
    cleaned = _BRACKETS.sub(" ", cleaned)
    cleaned = cleaned.replace(" - ", " ").strip(" -")
    cleaned = _WHITESPACE.sub(" ", cleaned).strip()
    return DetectedMetadata(title=cleaned or None, year=year)


def parse_folder_name(name: str, content_type: ContentType) -> DetectedMetadata:
    """Best-effort title/year/season/platform guess for a download folder.

    Order: library naming convention, release-style name, plain cleanup.
    """
    stem = _MEDIA_EXTENSIONS.sub("", name.strip())
    detected = _from_convention(stem, content_type)
    if detected is not None:
        return detected
    detected = _from_release_name(stem, content_type)
    if detected is not None:
        return detected
    return _fallback(stem)


def display_name(detected: DetectedMetadata) -> str | None:
    """``Title (Year)`` / ``Title (Platform)`` / ``Title`` for matching."""
    if not detected.title:
        return None
    if detected.year:
        return f"{detected.title} ({detected.year})"
    if detected.platform:
        return f"{detected.title} ({detected.platform})"
    return detected.title
