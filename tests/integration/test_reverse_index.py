"""Integration tests: reverse-index scan feeding the organize queue.

Real filesystem, real FilesystemLibraryPlacer and diskcache-backed
repositories.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from types import SimpleNamespace

import pytest

from downloadarr.application.use_cases.organize_queue import OrganizeQueue
from downloadarr.domain.entities.acquisition import RequestStatus
from downloadarr.domain.entities.organize import OrganizeOverrides, OrganizeStatus
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.infrastructure.config.schema import OrganizeConfig
from downloadarr.infrastructure.organize.naming import (
    matches_directory,
    parse_folder_name,
)
from downloadarr.infrastructure.organize.placement import FilesystemLibraryPlacer
from downloadarr.infrastructure.organize.reverse_index import ReverseIndexer
from downloadarr.infrastructure.persistence.library_cache import (
    CacheLibraryEntryRepository,
)
from downloadarr.infrastructure.persistence.organize_cache import (
    CacheOrganizeQueueRepository,
)
from downloadarr.infrastructure.persistence.request_cache import (
    CacheAcquisitionRequestRepository,
)

pytestmark = pytest.mark.integration


@pytest.fixture()
def layout(tmp_path: Path) -> SimpleNamespace:
    downloads = tmp_path / "downloads"
    library = tmp_path / "library"
    for sub in ("movies", "tv-shows", "games"):
        (downloads / sub).mkdir(parents=True)
        (library / sub).mkdir(parents=True)
    return SimpleNamespace(downloads=downloads, library=library)


@pytest.fixture()
def wired(layout, diskcache) -> SimpleNamespace:
    queue_repo = CacheOrganizeQueueRepository(diskcache)
    request_repo = CacheAcquisitionRequestRepository(diskcache)
    library_repo = CacheLibraryEntryRepository(diskcache)
    settings = OrganizeConfig(
        movies_dir=layout.library / "movies",
        tv_dir=layout.library / "tv-shows",
        games_dir=layout.library / "games",
    )
    queue = OrganizeQueue(
        repository=queue_repo,
        placer=FilesystemLibraryPlacer(settings),
        parse_folder=parse_folder_name,
        matches_directory=matches_directory,
        settings=settings,
        library=library_repo,
    )
    indexer = ReverseIndexer(
        download_root=layout.downloads,
        sink=queue,
        queue_repository=queue_repo,
        request_repository=request_repo,
        library=library_repo,
    )
    return SimpleNamespace(
        queue=queue,
        indexer=indexer,
        queue_repo=queue_repo,
        request_repo=request_repo,
        library_repo=library_repo,
    )


def _write(folder: Path, name: str, content: str = "data") -> None:
    folder.mkdir(parents=True, exist_ok=True)
    (folder / name).write_text(content, encoding="utf-8")


class TestReverseIndexScan:
    async def test_completed_request_is_placed_automatically(
        self, wired, layout, acquisition_request
    ) -> None:
        await wired.request_repo.save(
            replace(acquisition_request, status=RequestStatus.COMPLETED)
        )
        _write(layout.downloads / "movies" / "Dune (2021)", "dune.mkv")

        handed = await wired.indexer.scan()

        assert handed == 1
        assert (layout.library / "movies" / "Dune (2021)" / "dune.mkv").exists()
        assert not (layout.downloads / "movies" / "Dune (2021)").exists()
        assert await wired.queue_repo.list_all() == []

    async def test_unknown_folder_lands_in_queue_and_can_be_processed(
        self, wired, layout
    ) -> None:
        _write(layout.downloads / "movies" / "Arrival.2016.1080p.BluRay", "a.mkv")

        await wired.indexer.scan()
        items, total = await wired.queue.list_queue()

        assert total == 1
        assert items[0].status == OrganizeStatus.PENDING
        assert items[0].detected.title == "Arrival"

        done = await wired.queue.process(
            items[0].item_id, OrganizeOverrides(title="Arrival", year=2016)
        )

        assert done.status == OrganizeStatus.COMPLETED
        assert (layout.library / "movies" / "Arrival (2016)" / "a.mkv").exists()
        [entry] = await wired.library_repo.list_all(ContentType.MOVIE)
        assert (entry.title, entry.year) == ("Arrival", 2016)
        assert await wired.request_repo.list_all() == []

    async def test_unfinished_and_empty_entries_ignored(self, wired, layout) -> None:
        movies = layout.downloads / "movies"
        _write(movies / "Partial.2020", "p.mkv")
        (movies / "Partial.2020.aria2").write_text("ctl", encoding="utf-8")
        _write(movies / "Extras", "readme.txt")

        handed = await wired.indexer.scan()

        assert handed == 0
        assert await wired.queue_repo.list_all() == []

    async def test_rescan_does_not_duplicate(self, wired, layout) -> None:
        _write(layout.downloads / "games" / "Halo (PC)", "setup.iso")

        await wired.indexer.scan()
        handed = await wired.indexer.scan()

        assert handed == 0
        items = await wired.queue_repo.list_all()
        assert len(items) == 1
        assert items[0].content_type == ContentType.GAME
