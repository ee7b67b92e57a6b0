"""Move finished download folders into the media library."""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path

import structlog

from downloadarr.domain.entities.organize import PlacementResult, PlacementTarget
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.infrastructure.config.schema import OrganizeConfig
from downloadarr.infrastructure.organize.naming import sanitize_title

log = structlog.get_logger(__name__)

VIDEO_EXTENSIONS = frozenset(
    {".mkv", ".mp4", ".avi", ".m4v", ".mov", ".wmv", ".ts", ".webm", ".mpg"}
)
GAME_EXTENSIONS = frozenset(
    {".iso", ".zip", ".rar", ".7z", ".exe", ".bin", ".cue", ".nsp", ".xci", ".pkg"}
)


def media_extensions(content_type: ContentType) -> frozenset[str]:
    return GAME_EXTENSIONS if content_type == ContentType.GAME else VIDEO_EXTENSIONS


def _list_files(source: Path) -> list[Path]:
    if source.is_file():
        return [source]
    return sorted(p for p in source.rglob("*") if p.is_file())


def has_media_files(folder: Path, content_type: ContentType) -> bool:
    exts = media_extensions(content_type)
    return any(p.suffix.lower() in exts for p in _list_files(folder))


def target_folder_parts(
    content_type: ContentType, target: PlacementTarget
) -> tuple[list[str] | None, str | None]:
    """Return ``(path_parts, error)``; error names the missing field."""
    if not target.title:
        return None, "Title is required"

    if content_type == ContentType.MOVIE:
        if not target.year:
            return None, "Year is required for movies"
        return [f"{target.title} ({target.year})"], None

    if content_type == ContentType.TV_SHOW:
        if target.season is None:
            return None, "Season is required for TV shows"
        show = f"{target.title} ({target.year})" if target.year else target.title
        return [show, f"Season {target.season:02d}"], None

    if not target.platform:
        return None, "Platform is required for games"
    return [f"{target.title} ({target.platform})"], None


def _roll_back(moved: list[tuple[Path, Path]]) -> bool:
    """Return already-moved files to their sources. False if any stayed behind."""
    ok = True
    for src, dst in reversed(moved):
        try:
            src.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(dst), str(src))
        except OSError as exc:
            log.error("library_rollback_failed", file=str(dst), error=str(exc))
            ok = False
    return ok


class FilesystemLibraryPlacer:
    """LibraryPlacementPort over the local filesystem.

    Non-recoverable: the library root or the source is missing, or the
    target name sanitizes to nothing. Everything else (missing metadata,
    a file already at the destination, OS errors, no media) is recoverable.
    A move that fails part way is rolled back first; if that fails too the
    result is non-recoverable.
    """

    def __init__(self, config: OrganizeConfig) -> None:
        self._roots: dict[ContentType, Path] = {
            ContentType.MOVIE: config.movies_dir,
            ContentType.TV_SHOW: config.tv_dir,
            ContentType.GAME: config.games_dir,
        }

    def library_root(self, content_type: ContentType) -> Path:
        return self._roots[content_type]

    async def place(
        self,
        folder_path: str,
        content_type: ContentType,
        target: PlacementTarget,
    ) -> PlacementResult:
        root = self._roots[content_type]
        source = Path(folder_path)

        if not root.is_dir():
            return PlacementResult.fatal(f"Library root does not exist: {root}")
        if not source.exists():
            return PlacementResult.fatal(f"Source folder does not exist: {source}")

        raw_parts, missing = target_folder_parts(content_type, target)
        if raw_parts is None:
            return PlacementResult.retryable(missing or "Missing metadata")

        parts = [sanitize_title(part) for part in raw_parts]
        title_ok = bool(sanitize_title(target.title or "").strip(". "))
        if not title_ok or not all(parts) or any(p in (".", "..") for p in parts):
            return PlacementResult.fatal(f"Invalid target name: {raw_parts!r}")
        destination = root.joinpath(*parts)

        return await asyncio.to_thread(
            self._move_all, source, destination, content_type
        )

    def _move_all(
        self, source: Path, destination: Path, content_type: ContentType
    ) -> PlacementResult:
        files = _list_files(source)
        exts = media_extensions(content_type)
        if not any(f.suffix.lower() in exts for f in files):
            return PlacementResult.retryable(f"No media files found in {source}")

        base = source.parent if source.is_file() else source
        plan = [(f, destination / f.relative_to(base)) for f in files]
        conflicts = [str(dst) for _, dst in plan if dst.exists()]
        if conflicts:
            return PlacementResult.retryable(
                f"Target already exists: {conflicts[0]}"
            )

        moved: list[tuple[Path, Path]] = []
        try:
            for src, dst in plan:
                dst.parent.mkdir(parents=True, exist_ok=True)
                shutil.move(str(src), str(dst))
                moved.append((src, dst))
            if source.is_dir():
                shutil.rmtree(source)
        except OSError as exc:
            log.warning(
                "library_move_failed",
                source=str(source),
                destination=str(destination),
                moved=len(moved),
                error=str(exc),
            )
            if not _roll_back(moved):
                return PlacementResult.fatal(
                    f"Move failed and could not be rolled back: {exc}"
                )
            return PlacementResult.retryable(f"Move failed: {exc}")

        log.info(
            "library_placed",
            source=str(source),
            destination=str(destination),
            files=len(moved),
        )
        return PlacementResult.success(
            str(destination), [str(dst) for _, dst in moved]
        )
