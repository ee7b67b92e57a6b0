"""Network path and routing container status."""

from __future__ import annotations

from typing import cast

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from downloadarr.interfaces.api.serializers import container_to_dict, health_to_dict
from downloadarr.interfaces.app_state import AppState

router = APIRouter(prefix="/health", tags=["health"])


@router.get("/network")
async def network_health(request: Request) -> JSONResponse:
    """Always 200: the verdict is in the body, never an HTTP error."""
    state = cast(AppState, request.app.state)
    result = await state.health_monitor.check_health()
    return JSONResponse(
        content={
            **health_to_dict(result),
            "routing_configured": state.health_monitor.routing_configured,
        }
    )


@router.get("/container")
async def container_health(request: Request) -> JSONResponse:
    state = cast(AppState, request.app.state)
    status = await state.health_monitor.container_status()
    return JSONResponse(content=container_to_dict(status))
