"""aria2 JSON-RPC client implementing DownloadEnginePort."""

from __future__ import annotations

import itertools
from typing import Any

import httpx
import structlog

from downloadarr.domain.entities.acquisition import DownloadJob, DownloadState
from downloadarr.domain.entities.errors import (
    AuthenticationError,
    NotFoundError,
    UnknownExternalError,
)
from downloadarr.domain.entities.health import NetworkPath
from downloadarr.infrastructure.common.http_errors import (
    from_transport_error,
    raise_for_status,
)
from downloadarr.infrastructure.config.schema import DownloadEngineConfig

log = structlog.get_logger(__name__)

_SERVICE = "aria2"

_MAGNET_OPTIONS: dict[str, str] = {
    "seed-time": "0",
    "bt-max-peers": "50",
    "follow-torrent": "true",
}

_STATUS_KEYS = [
    "gid",
    "status",
    "totalLength",
    "completedLength",
    "downloadSpeed",
    "dir",
    "errorMessage",
    "files",
]


def _to_job(data: dict[str, Any]) -> DownloadJob:
    try:
        state = DownloadState(data.get("status", ""))
    except ValueError:
        state = DownloadState.ERROR
    files = [f["path"] for f in data.get("files") or [] if f.get("path")]
    return DownloadJob(
        job_id=data["gid"],
        state=state,
        total_bytes=int(data.get("totalLength") or 0),
        completed_bytes=int(data.get("completedLength") or 0),
        download_speed=int(data.get("downloadSpeed") or 0),
        directory=data.get("dir"),
        error_message=data.get("errorMessage") or None,
        files=files,
    )


class Aria2Client:
    """Talks to aria2 over JSON-RPC.

    The base URL is chosen per call from the network path: the routed
    path goes through the routing host, the direct path to the engine
    host. Each call carries a hard timeout.
    """

    def __init__(
        self,
        config: DownloadEngineConfig,
        http_client: httpx.AsyncClient,
        *,
        routing_host: str,
    ) -> None:
        self._config = config
        self._http = http_client
        self._routing_host = routing_host
        self._ids = itertools.count(1)

    def base_url(self, path: NetworkPath) -> str:
        host = self._routing_host if path == NetworkPath.ROUTED else self._config.host
        return f"http://{host}:{self._config.port}{self._config.rpc_path}"

    async def submit(self, uri: str, directory: str, *, path: NetworkPath) -> str:
        options = {**_MAGNET_OPTIONS, "dir": directory}
        gid = await self._call(path, "aria2.addUri", [uri], options)
        log.info("download_submitted", gid=gid, directory=directory, path=path.value)
        return str(gid)

    async def status(self, job_id: str, *, path: NetworkPath) -> DownloadJob:
        data = await self._call(path, "aria2.tellStatus", job_id, _STATUS_KEYS)
        return _to_job(data)

    async def pause(self, job_id: str, *, path: NetworkPath) -> None:
        await self._call(path, "aria2.pause", job_id)

    async def resume(self, job_id: str, *, path: NetworkPath) -> None:
        await self._call(path, "aria2.unpause", job_id)

    async def cancel(self, job_id: str, *, path: NetworkPath) -> None:
        await self._call(path, "aria2.remove", job_id)
        log.info("download_cancelled", gid=job_id)

    async def version(self, *, path: NetworkPath) -> str:
        data = await self._call(path, "aria2.getVersion")
        return str(data.get("version", ""))

    async def _call(self, path: NetworkPath, method: str, *params: Any) -> Any:
        rpc_params: list[Any] = []
        if self._config.secret:
            rpc_params.append(f"token:{self._config.secret}")
        rpc_params.extend(params)
        payload = {
            "jsonrpc": "2.0",
            "id": str(next(self._ids)),
            "method": method,
            "params": rpc_params,
        }

        try:
            resp = await self._http.post(
                self.base_url(path),
                json=payload,
                timeout=self._config.timeout_seconds,
            )
        except httpx.HTTPError as exc:
            log.warning("aria2_request_failed", method=method, error=str(exc))
            raise from_transport_error(exc, service=_SERVICE) from exc

        # aria2 answers RPC-level errors with HTTP 400 and an error object.
        try:
            body = resp.json()
        except ValueError as exc:
            raise_for_status(resp, service=_SERVICE)
            raise UnknownExternalError(
                "aria2 returned an unreadable response", service=_SERVICE
            ) from exc

        error = body.get("error") if isinstance(body, dict) else None
        if error:
            _raise_rpc_error(method, error)
        raise_for_status(resp, service=_SERVICE)
        if not isinstance(body, dict) or "result" not in body:
            raise UnknownExternalError(
                "aria2 returned an unexpected payload", service=_SERVICE
            )
        return body["result"]


def _raise_rpc_error(method: str, error: dict[str, Any]) -> None:
    message = str(error.get("message", ""))
    log.warning("aria2_rpc_error", method=method, code=error.get("code"), message=message)
    lowered = message.lower()
    if "unauthorized" in lowered:
        raise AuthenticationError("aria2 rejected the rpc secret", service=_SERVICE)
    if "not found" in lowered:
        raise NotFoundError(f"aria2: {message}")
    raise UnknownExternalError(f"aria2 {method} failed", service=_SERVICE)
