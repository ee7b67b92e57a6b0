"""Acquisition request endpoints."""

from __future__ import annotations

from typing import cast

import structlog
from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from downloadarr.domain.entities.acquisition import RequestStatus
from downloadarr.domain.entities.errors import ValidationError, ValidationErrorKind
from downloadarr.interfaces.api.serializers import request_to_dict
from downloadarr.interfaces.app_state import AppState

log = structlog.get_logger(__name__)

router = APIRouter(prefix="/requests", tags=["requests"])


class CreateRequestBody(BaseModel):
    title: str
    content_type: str = Field(description="movie, tv-show or game")
    year: int | None = None
    season: int | None = None
    episode: int | None = None
    platform: str | None = None
    priority: int = 5


class SelectBody(BaseModel):
    index: int


def _parse_statuses(raw: list[str] | None) -> list[RequestStatus] | None:
    if not raw:
        return None
    try:
        return [RequestStatus(s.strip().lower()) for s in raw]
    except ValueError as e:
        raise ValidationError(
            ValidationErrorKind.INVALID_VALUE, str(e), field="status"
        ) from e


@router.post("", status_code=201)
async def create_request(request: Request, body: CreateRequestBody) -> JSONResponse:
    state = cast(AppState, request.app.state)
    created = await state.orchestrator.create_request(
        title=body.title,
        content_type=body.content_type,
        year=body.year,
        season=body.season,
        episode=body.episode,
        platform=body.platform,
        priority=body.priority,
    )
    return JSONResponse(status_code=201, content=request_to_dict(created))


@router.get("")
async def list_requests(
    request: Request,
    status: list[str] | None = Query(default=None, description="Filter by status."),
) -> JSONResponse:
    state = cast(AppState, request.app.state)
    items = await state.orchestrator.list_requests(_parse_statuses(status))
    return JSONResponse(
        content={"requests": [request_to_dict(r) for r in items], "count": len(items)}
    )


@router.get("/{request_id}")
async def get_request(request_id: str, request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content=request_to_dict(await state.orchestrator.get_request(request_id))
    )


@router.post("/{request_id}/cancel")
async def cancel_request(request_id: str, request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    return JSONResponse(
        content=request_to_dict(await state.orchestrator.cancel_request(request_id))
    )


@router.post("/{request_id}/search")
async def search_now(request_id: str, request: Request) -> JSONResponse:
    """Run one search cycle immediately instead of waiting for the scheduler."""
    state = cast(AppState, request.app.state)
    log.info("manual_search_triggered", request_id=request_id)
    return JSONResponse(
        content=request_to_dict(await state.orchestrator.run_search_cycle(request_id))
    )


@router.post("/{request_id}/select")
async def select_candidate(
    request_id: str, request: Request, body: SelectBody
) -> JSONResponse:
    state = cast(AppState, request.app.state)
    updated = await state.orchestrator.select_candidate(request_id, body.index)
    return JSONResponse(content=request_to_dict(updated))
