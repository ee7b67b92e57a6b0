"""Jackett aggregator indexer (``/api/v2.0/indexers/all/results``)."""

from __future__ import annotations

from datetime import datetime
from typing import Any

import httpx
import structlog

from downloadarr.domain.entities.acquisition import SearchQuery, TorrentCandidate
from downloadarr.domain.entities.errors import RateLimitExceeded, UnknownExternalError
from downloadarr.domain.entities.preferences import ContentType
from downloadarr.domain.entities.rate_limit import RateLimitRule
from downloadarr.infrastructure.common.http_errors import (
    from_transport_error,
    raise_for_status,
)
from downloadarr.infrastructure.common.rate_limiter import FixedWindowRateLimiter
from downloadarr.infrastructure.indexers.release_parser import (
    parse_format,
    parse_quality,
)

log = structlog.get_logger(__name__)

_RESULTS_PATH = "/api/v2.0/indexers/all/results"

# Newznab category codes.
_CONTENT_CATEGORY: dict[ContentType, str] = {
    ContentType.MOVIE: "2000",
    ContentType.TV_SHOW: "5000",
    ContentType.GAME: "4050",
}

_PLATFORM_CATEGORY: dict[str, str] = {
    "pc": "4050",
    "linux": "4050",
    "steam": "4050",
    "gog": "4050",
    "mac": "4030",
    "ios": "4060",
    "android": "4070",
    "nintendo-3ds": "1110",
    "nintendo-ds": "1010",
    "wii-u": "1130",
    "wii": "1030",
    "ps4": "1180",
    "ps3": "1080",
    "psp": "1020",
    "ps-vita": "1120",
    "xbox-one": "1140",
    "xbox-360": "1050",
    "xbox": "1040",
}
_GENERIC_CONSOLE = "1000"
_CONSOLE_PLATFORMS = frozenset(
    {"nintendo-switch", "ps5", "ps2", "ps1", "xbox-series-x", "gamecube", "n64"}
)


def build_search_query(query: SearchQuery) -> str:
    """Free-text query: movies add the year, TV adds SxxEyy, games stay bare."""
    text = query.title.strip()
    if query.content_type == ContentType.MOVIE and query.year:
        return f"{text} {query.year}"
    if query.content_type == ContentType.TV_SHOW and query.season:
        if query.episode:
            return f"{text} S{query.season:02d}E{query.episode:02d}"
        return f"{text} S{query.season:02d}"
    return text


def category_code(query: SearchQuery) -> str:
    if query.content_type == ContentType.GAME and query.platform:
        platform = query.platform.strip().lower()
        if platform in _CONSOLE_PLATFORMS:
            return _GENERIC_CONSOLE
        return _PLATFORM_CATEGORY.get(platform, _CONTENT_CATEGORY[ContentType.GAME])
    return _CONTENT_CATEGORY[query.content_type]


def _parse_published(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        return None


def _to_candidate(item: dict[str, Any], fallback_indexer: str) -> TorrentCandidate | None:
    title = item.get("Title")
    uri = item.get("MagnetUri") or item.get("Link")
    if not title or not uri:
        return None
    return TorrentCandidate(
        title=title,
        size_bytes=int(item.get("Size") or 0),
        seeders=int(item.get("Seeders") or 0),
        leechers=int(item.get("Peers") or 0),
        indexer=item.get("Tracker") or fallback_indexer,
        download_uri=uri,
        quality=parse_quality(title),
        format=parse_format(title),
        category=item.get("CategoryDesc"),
        published_at=_parse_published(item.get("PublishDate")),
    )


class JackettIndexer:
    """IndexerPort over a Jackett instance.

    Outbound calls are throttled per instance under ``indexer:{name}``;
    a throttled call raises ``RateLimitExceeded`` without touching the
    network.
    """

    def __init__(
        self,
        *,
        name: str,
        base_url: str,
        api_key: str,
        http_client: httpx.AsyncClient,
        limiter: FixedWindowRateLimiter | None = None,
        rule: RateLimitRule | None = None,
        timeout: float = 10.0,
    ) -> None:
        self._name = name
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._http = http_client
        self._limiter = limiter
        self._rule = rule or RateLimitRule(limit=30, window_ms=60_000)
        self._timeout = timeout

    @property
    def name(self) -> str:
        return self._name

    async def search(self, query: SearchQuery) -> list[TorrentCandidate]:
        if self._limiter is not None:
            decision = await self._limiter.check(f"indexer:{self._name}", self._rule)
            if not decision.allowed:
                raise RateLimitExceeded(
                    f"Search rate limit reached for indexer {self._name}",
                    retry_after=decision.retry_after,
                )

        params = {
            "apikey": self._api_key,
            "Query": build_search_query(query),
            "Category": category_code(query),
        }
        try:
            resp = await self._http.get(
                f"{self._base_url}{_RESULTS_PATH}",
                params=params,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            log.warning("indexer_request_failed", indexer=self._name, error=str(exc))
            raise from_transport_error(exc, service=self._name) from exc

        raise_for_status(resp, service=self._name)

        try:
            payload = resp.json()
        except ValueError as exc:
            log.warning("indexer_invalid_json", indexer=self._name)
            raise UnknownExternalError(
                f"{self._name} returned an unreadable response", service=self._name
            ) from exc
        if not isinstance(payload, dict):
            raise UnknownExternalError(
                f"{self._name} returned an unexpected payload", service=self._name
            )

        candidates: list[TorrentCandidate] = []
        skipped = 0
        for item in payload.get("Results") or []:
            if not isinstance(item, dict):
                skipped += 1
                continue
            try:
                candidate = _to_candidate(item, self._name)
            except (ValueError, TypeError) as exc:
                skipped += 1
                log.debug(
                    "indexer_result_malformed",
                    indexer=self._name,
                    title=item.get("Title"),
                    error=str(exc),
                )
                continue
            if candidate is not None:
                candidates.append(candidate)

        log.info(
            "indexer_search_done",
            indexer=self._name,
            query=params["Query"],
            results=len(candidates),
            malformed=skipped,
        )
        return candidates
