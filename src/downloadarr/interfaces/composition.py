"""Composition root: dependency injection via FastAPI lifespan."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager, suppress
from typing import AsyncIterator, cast

import httpx
import structlog
from fastapi import FastAPI

from downloadarr.application.use_cases import (
    AcquisitionOrchestrator,
    OrganizeQueue,
    PreferencesService,
)
from downloadarr.domain.entities.rate_limit import RateLimitRule
from downloadarr.domain.ports import IndexerPort
from downloadarr.infrastructure.acquisition.scheduler import AcquisitionScheduler
from downloadarr.infrastructure.cache.cache_factory import create_cache
from downloadarr.infrastructure.config.schema import AppConfig
from downloadarr.infrastructure.download.aria2 import Aria2Client
from downloadarr.infrastructure.health.docker import DockerContainerInspector
from downloadarr.infrastructure.health.monitor import HealthMonitor
from downloadarr.infrastructure.indexers.jackett import JackettIndexer
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
from downloadarr.infrastructure.persistence.preferences_cache import (
    CachePreferencesStore,
)
from downloadarr.infrastructure.persistence.request_cache import (
    CacheAcquisitionRequestRepository,
)
from downloadarr.infrastructure.preferences.engine import PreferenceEngine
from downloadarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)


def _build_indexers(state: AppState, config: AppConfig) -> list[IndexerPort]:
    indexers: list[IndexerPort] = []
    for entry in config.indexers:
        if not entry.enabled:
            log.info("indexer_disabled_by_config", indexer=entry.name)
            continue
        indexers.append(
            JackettIndexer(
                name=entry.name,
                base_url=entry.url,
                api_key=entry.api_key,
                http_client=state.http_client,
                limiter=state.rate_limiter,
                rule=RateLimitRule(
                    limit=entry.rate_limit.limit,
                    window_ms=entry.rate_limit.window_ms,
                ),
                timeout=entry.timeout_seconds,
            )
        )
    if not indexers:
        log.warning("no_indexers_configured")
    return indexers


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Lifespan Hook: Initialize and cleanup all resources (DI Composition Root).

    Order matters:
        1. Record store (required by every repository)
        2. HTTP client + rate limiter (indexers, engine, health checks)
        3. Health monitor
        4. Repositories and use cases
        5. Background scheduler
    """
    state = cast(AppState, app.state)
    config = state.config

    # 1) Record store
    cache = create_cache(
        backend=config.cache.backend,
        directory=str(config.cache.directory),
        redis_url=config.cache.redis_url,
        max_concurrent=config.cache.max_concurrent,
    )
    await cache.__aenter__()
    state.cache = cache
    log.info("cache_initialized", backend=config.cache.backend)

    # 2) HTTP client; per-call timeouts are set by each adapter. The rate
    # limiter is created in create_app() and shared with the middleware.
    state.http_client = httpx.AsyncClient(
        timeout=httpx.Timeout(config.http_timeout_seconds),
        headers={"User-Agent": config.http_user_agent},
    )
    log.info("http_client_initialized", timeout=config.http_timeout_seconds)

    # 3) Health monitor (routing container + download engine reachability)
    state.health_monitor = HealthMonitor(
        config,
        state.http_client,
        state.rate_limiter,
        inspector=DockerContainerInspector(),
    )
    log.info(
        "health_monitor_initialized",
        routing_configured=state.health_monitor.routing_configured,
    )

    # 4) Repositories and use cases
    request_repo = CacheAcquisitionRequestRepository(cache)
    queue_repo = CacheOrganizeQueueRepository(cache)
    library_repo = CacheLibraryEntryRepository(cache)
    state.preferences = PreferencesService(CachePreferencesStore(cache))

    state.organize_queue = OrganizeQueue(
        repository=queue_repo,
        placer=FilesystemLibraryPlacer(config.organize),
        parse_folder=parse_folder_name,
        matches_directory=matches_directory,
        settings=config.organize,
        library=library_repo,
    )
    state.reverse_indexer = ReverseIndexer(
        download_root=config.download_engine.download_root,
        sink=state.organize_queue,
        queue_repository=queue_repo,
        request_repository=request_repo,
        library=library_repo,
    )
    state.orchestrator = AcquisitionOrchestrator(
        repository=request_repo,
        preferences=state.preferences,
        indexers=_build_indexers(state, config),
        health=state.health_monitor,
        engine=Aria2Client(
            config.download_engine,
            state.http_client,
            routing_host=config.routing.host,
        ),
        ranker_factory=PreferenceEngine,
        settings=config.acquisition,
        download_root=config.download_engine.download_root,
        organizer=state.organize_queue,
    )
    log.info("use_cases_initialized")

    # 5) Background scheduler
    state.scheduler = AcquisitionScheduler(
        orchestrator=state.orchestrator,
        config=config.acquisition,
        reverse_indexer=state.reverse_indexer,
        scan_interval_minutes=config.organize.scan_interval_minutes,
    )
    state._scheduler_task = asyncio.create_task(state.scheduler.run_forever())

    log.info("app_startup_complete")

    try:
        yield
    finally:
        if state._scheduler_task is not None:
            state._scheduler_task.cancel()
            with suppress(asyncio.CancelledError):
                await state._scheduler_task
            log.info("acquisition_scheduler_stopped")

        await state.http_client.aclose()
        log.info("http_client_closed")

        await state.cache.aclose()
        log.info("cache_closed")

        log.info("app_shutdown_complete")
