"""Application state container for FastAPI dependency injection."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
from starlette.datastructures import State

from downloadarr.infrastructure.config import AppConfig

if TYPE_CHECKING:
    import asyncio

    from downloadarr.application.use_cases import (
        AcquisitionOrchestrator,
        OrganizeQueue,
        PreferencesService,
    )
    from downloadarr.domain.ports import CachePort
    from downloadarr.infrastructure.acquisition.scheduler import AcquisitionScheduler
    from downloadarr.infrastructure.common.rate_limiter import FixedWindowRateLimiter
    from downloadarr.infrastructure.health.monitor import HealthMonitor
    from downloadarr.infrastructure.organize.reverse_index import ReverseIndexer


class AppState(State):
    """FastAPI application state with all DI resources.

    Lifecycle managed by composition.py::lifespan().
    """

    # Configuration
    config: AppConfig

    # Infrastructure
    cache: CachePort
    http_client: httpx.AsyncClient
    rate_limiter: FixedWindowRateLimiter
    health_monitor: HealthMonitor
    reverse_indexer: ReverseIndexer

    # Application services
    preferences: PreferencesService
    orchestrator: AcquisitionOrchestrator
    organize_queue: OrganizeQueue

    # Background loop
    scheduler: AcquisitionScheduler | None
    _scheduler_task: asyncio.Task | None
