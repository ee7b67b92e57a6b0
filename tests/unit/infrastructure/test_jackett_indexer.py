"""Unit tests for JackettIndexer and query building."""

from __future__ import annotations

import httpx
import pytest
import respx

from downloadarr.domain.entities.acquisition import SearchQuery
from downloadarr.domain.entities.errors import (
    AuthenticationError,
    NotFoundError,
    RateLimitExceeded,
    TransientNetworkError,
    UnknownExternalError,
)
from downloadarr.domain.entities.preferences import (
    ContentType,
    TorrentFormat,
    TorrentQuality,
)
from downloadarr.domain.entities.rate_limit import RateLimitRule
from downloadarr.infrastructure.common.rate_limiter import FixedWindowRateLimiter
from downloadarr.infrastructure.indexers.jackett import (
    JackettIndexer,
    build_search_query,
    category_code,
)

_BASE = "http://jackett:9117"
_PATH = "/api/v2.0/indexers/all/results"

_RESULTS = {
    "Results": [
        {
            "Title": "Dune.2021.1080p.WEB-DL.x265-GRP",
            "MagnetUri": "magnet:?xt=urn:btih:aaaa",
            "Link": "http://jackett/dl/1",
            "Size": 4294967296,
            "Seeders": 120,
            "Peers": 15,
            "Tracker": "1337x",
            "CategoryDesc": "Movies/HD",
            "PublishDate": "2021-10-22T10:00:00+00:00",
        },
        {
            "Title": "Dune.2021.720p.x264",
            "MagnetUri": None,
            "Link": "http://jackett/dl/2",
            "Size": 1073741824,
            "Seeders": 3,
            "Peers": 1,
            "Tracker": "YTS",
        },
        {"Title": "no uri at all", "Size": 1, "Seeders": 1},
    ]
}


def _route() -> respx.Route:
    return respx.get(host="jackett", path=_PATH)


def _indexer(client: httpx.AsyncClient, **kwargs) -> JackettIndexer:
    return JackettIndexer(
        name="jackett", base_url=_BASE, api_key="key", http_client=client, **kwargs
    )


class TestBuildSearchQuery:
    def test_movie_adds_year(self) -> None:
        q = SearchQuery(title="Dune", content_type=ContentType.MOVIE, year=2021)
        assert build_search_query(q) == "Dune 2021"

    def test_tv_season_and_episode(self) -> None:
        q = SearchQuery(
            title="The Office", content_type=ContentType.TV_SHOW, season=2, episode=5
        )
        assert build_search_query(q) == "The Office S02E05"

    def test_tv_season_only(self) -> None:
        q = SearchQuery(title="The Office", content_type=ContentType.TV_SHOW, season=3)
        assert build_search_query(q) == "The Office S03"

    def test_game_ignores_year(self) -> None:
        q = SearchQuery(title="Hades", content_type=ContentType.GAME, year=2020)
        assert build_search_query(q) == "Hades"


class TestCategoryCode:
    def test_content_type_defaults(self) -> None:
        assert category_code(SearchQuery("x", ContentType.MOVIE)) == "2000"
        assert category_code(SearchQuery("x", ContentType.TV_SHOW)) == "5000"
        assert category_code(SearchQuery("x", ContentType.GAME)) == "4050"

    def test_game_platform(self) -> None:
        q = SearchQuery("x", ContentType.GAME, platform="PS4")
        assert category_code(q) == "1180"
        q = SearchQuery("x", ContentType.GAME, platform="nintendo-switch")
        assert category_code(q) == "1000"
        q = SearchQuery("x", ContentType.GAME, platform="unknown")
        assert category_code(q) == "4050"


class TestSearch:
    @respx.mock
    async def test_parses_results(self) -> None:
        route = _route().respond(200, json=_RESULTS)
        async with httpx.AsyncClient() as client:
            results = await _indexer(client).search(
                SearchQuery(title="Dune", content_type=ContentType.MOVIE, year=2021)
            )

        params = route.calls.last.request.url.params
        assert params["Query"] == "Dune 2021"
        assert params["Category"] == "2000"
        assert params["apikey"] == "key"

        assert len(results) == 2
        first, second = results
        assert first.download_uri.startswith("magnet:")
        assert first.indexer == "1337x"
        assert first.quality == TorrentQuality.HD_1080P
        assert first.format == TorrentFormat.X265
        assert first.published_at is not None
        assert second.download_uri == "http://jackett/dl/2"
        assert second.published_at is None

    @respx.mock
    async def test_empty_results(self) -> None:
        _route().respond(200, json={"Results": []})
        async with httpx.AsyncClient() as client:
            results = await _indexer(client).search(
                SearchQuery(title="Nothing", content_type=ContentType.MOVIE)
            )
        assert results == []

    @respx.mock
    async def test_malformed_result_is_skipped(self) -> None:
        good = _RESULTS["Results"][0]
        _route().respond(
            200,
            json={
                "Results": [
                    {**good, "Title": "Dune.2021.2160p", "Size": "4.2 GB"},
                    {**good, "Title": "Dune.2021.720p", "Seeders": {"n": 3}},
                    "not-a-result",
                    good,
                ]
            },
        )
        async with httpx.AsyncClient() as client:
            results = await _indexer(client).search(
                SearchQuery(title="Dune", content_type=ContentType.MOVIE)
            )

        assert [r.title for r in results] == [good["Title"]]

    @respx.mock
    async def test_search_carries_hard_timeout(self) -> None:
        route = _route().respond(200, json={"Results": []})
        async with httpx.AsyncClient() as client:
            await _indexer(client).search(
                SearchQuery(title="Dune", content_type=ContentType.MOVIE)
            )

        timeout = route.calls.last.request.extensions["timeout"]
        assert timeout["read"] == 10.0

    @pytest.mark.parametrize(
        ("status", "error"),
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (404, NotFoundError),
            (503, TransientNetworkError),
            (500, UnknownExternalError),
        ],
    )
    @respx.mock
    async def test_status_mapping(self, status: int, error: type[Exception]) -> None:
        _route().respond(status)
        async with httpx.AsyncClient() as client:
            with pytest.raises(error):
                await _indexer(client).search(
                    SearchQuery(title="Dune", content_type=ContentType.MOVIE)
                )

    @respx.mock
    async def test_429_carries_retry_after(self) -> None:
        _route().respond(429, headers={"Retry-After": "42"})
        async with httpx.AsyncClient() as client:
            with pytest.raises(RateLimitExceeded) as exc_info:
                await _indexer(client).search(
                    SearchQuery(title="Dune", content_type=ContentType.MOVIE)
                )
        assert exc_info.value.retry_after == 42

    @respx.mock
    async def test_timeout_is_transient(self) -> None:
        _route().mock(side_effect=httpx.ReadTimeout("slow"))
        async with httpx.AsyncClient() as client:
            with pytest.raises(TransientNetworkError):
                await _indexer(client).search(
                    SearchQuery(title="Dune", content_type=ContentType.MOVIE)
                )

    @respx.mock
    async def test_invalid_json_is_unknown(self) -> None:
        _route().respond(200, text="<html>")
        async with httpx.AsyncClient() as client:
            with pytest.raises(UnknownExternalError):
                await _indexer(client).search(
                    SearchQuery(title="Dune", content_type=ContentType.MOVIE)
                )

    @respx.mock
    async def test_throttled_without_network_call(self) -> None:
        route = _route().respond(200, json={"Results": []})
        limiter = FixedWindowRateLimiter()
        async with httpx.AsyncClient() as client:
            indexer = _indexer(
                client, limiter=limiter, rule=RateLimitRule(limit=1, window_ms=60_000)
            )
            query = SearchQuery(title="Dune", content_type=ContentType.MOVIE)
            await indexer.search(query)
            with pytest.raises(RateLimitExceeded):
                await indexer.search(query)

        assert route.call_count == 1
