"""Tests for domain value objects and their derived properties."""

from __future__ import annotations

from dataclasses import replace

import pytest

from downloadarr.domain.entities.acquisition import (
    AcquisitionRequest,
    DownloadJob,
    DownloadState,
    RequestStatus,
    TorrentCandidate,
)
from downloadarr.domain.entities.health import (
    ContainerHealth,
    HealthResult,
    HealthStatus,
)
from downloadarr.domain.entities.organize import PlacementResult
from downloadarr.domain.entities.preferences import (
    ContentType,
    TorrentCategory,
    TorrentFormat,
    TorrentPreferences,
    TorrentQuality,
)


class TestEnumParsing:
    def test_quality_by_value_case_insensitive(self) -> None:
        assert TorrentQuality.parse("1080P") is TorrentQuality.HD_1080P
        assert TorrentQuality.parse("4k") is TorrentQuality.UHD_4K

    def test_quality_by_name(self) -> None:
        assert TorrentQuality.parse("HD_720P") is TorrentQuality.HD_720P

    def test_format_mixed_case(self) -> None:
        assert TorrentFormat.parse("xvid") is TorrentFormat.XVID

    def test_category_with_slash(self) -> None:
        assert TorrentCategory.parse("movies/hd") is TorrentCategory.MOVIES_HD
        assert TorrentCategory.parse("PC/Games") is TorrentCategory.GAMES

    def test_content_type_accepts_name_and_value(self) -> None:
        assert ContentType.parse("tv-show") is ContentType.TV_SHOW
        assert ContentType.parse("TV_SHOW") is ContentType.TV_SHOW

    @pytest.mark.parametrize("raw", ["", "podcast", 5])
    def test_unknown_rejected(self, raw) -> None:
        with pytest.raises(ValueError):
            ContentType.parse(raw)


class TestTorrentPreferences:
    def test_defaults(self) -> None:
        p = TorrentPreferences()
        assert p.preferred_qualities[0] is TorrentQuality.HD_1080P
        assert p.min_seeders == 5
        assert p.max_size_gb == 20.0
        assert "cam" in p.blacklisted_words
        assert p.auto_select_best is True

    def test_dict_shape_uses_labels(self) -> None:
        d = TorrentPreferences().to_dict()
        assert d["preferred_qualities"] == ["1080p", "720p", "4K"]
        assert d["default_category"] == "Movies/HD"

    def test_from_dict_fills_missing_with_defaults(self) -> None:
        p = TorrentPreferences.from_dict({"min_seeders": 12})
        assert p.min_seeders == 12
        assert p.preferred_formats == TorrentPreferences().preferred_formats

    def test_list_defaults_are_independent(self) -> None:
        a = TorrentPreferences()
        b = TorrentPreferences()
        a.trusted_indexers.append("x")
        assert "x" not in b.trusted_indexers


class TestCandidateAndJob:
    def test_size_gb(self, make_candidate) -> None:
        c: TorrentCandidate = make_candidate(size_bytes=3 * 1024**3)
        assert c.size_gb == 3.0

    def test_progress_zero_total(self) -> None:
        assert DownloadJob(job_id="g", state=DownloadState.ACTIVE).progress == 0.0

    def test_progress_rounded(self) -> None:
        job = DownloadJob(
            job_id="g", state=DownloadState.ACTIVE, total_bytes=3, completed_bytes=1
        )
        assert job.progress == 33.33

    @pytest.mark.parametrize(
        ("state", "active"),
        [
            (DownloadState.ACTIVE, True),
            (DownloadState.WAITING, True),
            (DownloadState.PAUSED, True),
            (DownloadState.COMPLETE, False),
            (DownloadState.ERROR, False),
            (DownloadState.REMOVED, False),
        ],
    )
    def test_is_active(self, state: DownloadState, active: bool) -> None:
        assert DownloadJob(job_id="g", state=state).is_active is active


class TestAcquisitionRequest:
    def test_new_request_is_searching(
        self, acquisition_request: AcquisitionRequest
    ) -> None:
        assert acquisition_request.status is RequestStatus.SEARCHING
        assert acquisition_request.search_attempts == 0
        assert acquisition_request.is_terminal is False

    @pytest.mark.parametrize(
        "status",
        [
            RequestStatus.COMPLETED,
            RequestStatus.FAILED,
            RequestStatus.CANCELLED,
            RequestStatus.EXPIRED,
        ],
    )
    def test_terminal_statuses(
        self, acquisition_request: AcquisitionRequest, status: RequestStatus
    ) -> None:
        assert replace(acquisition_request, status=status).is_terminal is True

    def test_search_query_carries_identity(
        self, acquisition_request: AcquisitionRequest
    ) -> None:
        q = acquisition_request.to_search_query()
        assert q.title == "Dune"
        assert q.year == 2021
        assert q.content_type is ContentType.MOVIE


class TestHealthValues:
    def test_health_result_healthy_flag(self) -> None:
        assert HealthResult(HealthStatus.HEALTHY, "ok").healthy is True
        assert HealthResult(HealthStatus.UNHEALTHY, "down").healthy is False
        assert HealthResult(HealthStatus.NOT_APPLICABLE, "n/a").healthy is False

    def test_container_without_healthcheck_is_healthy_when_running(self) -> None:
        assert ContainerHealth(name="vpn", exists=True, running=True).healthy is True

    def test_container_unhealthy_status(self) -> None:
        c = ContainerHealth(name="vpn", exists=True, running=True, health="unhealthy")
        assert c.healthy is False

    def test_stopped_container_is_not_healthy(self) -> None:
        c = ContainerHealth(name="vpn", exists=True, running=False, exit_code=1)
        assert c.healthy is False


class TestPlacementResult:
    def test_constructors(self) -> None:
        ok = PlacementResult.success("/library/movies/Arrival (2016)", ["a.mkv"])
        assert ok.ok is True
        assert ok.moved_files == ["a.mkv"]

        retry = PlacementResult.retryable("Title is required")
        assert (retry.ok, retry.recoverable) == (False, True)

        fatal = PlacementResult.fatal("Library root missing")
        assert (fatal.ok, fatal.recoverable) == (False, False)
