"""Unit tests for Aria2Client (JSON-RPC over respx)."""

from __future__ import annotations

import json

import httpx
import pytest
import respx

from downloadarr.domain.entities.acquisition import DownloadState
from downloadarr.domain.entities.errors import (
    AuthenticationError,
    NotFoundError,
    TransientNetworkError,
    UnknownExternalError,
)
from downloadarr.domain.entities.health import NetworkPath
from downloadarr.infrastructure.config.schema import DownloadEngineConfig
from downloadarr.infrastructure.download.aria2 import Aria2Client

_DIRECT = "http://aria2:6800/jsonrpc"
_ROUTED = "http://vpn:6800/jsonrpc"


def _client(http: httpx.AsyncClient, secret: str = "s3cret") -> Aria2Client:
    return Aria2Client(
        DownloadEngineConfig(secret=secret), http, routing_host="vpn"
    )


def _sent(route: respx.Route) -> dict:
    return json.loads(route.calls.last.request.content)


class TestBaseUrl:
    async def test_path_selects_host(self) -> None:
        async with httpx.AsyncClient() as http:
            client = _client(http)
            assert client.base_url(NetworkPath.DIRECT) == _DIRECT
            assert client.base_url(NetworkPath.ROUTED) == _ROUTED


class TestSubmit:
    @respx.mock
    async def test_add_uri_with_token_and_dir(self) -> None:
        route = respx.post(_ROUTED).respond(
            200, json={"jsonrpc": "2.0", "id": "1", "result": "2089b05ecca3d829"}
        )
        async with httpx.AsyncClient() as http:
            gid = await _client(http).submit(
                "magnet:?xt=urn:btih:aaaa",
                "/downloads/movies",
                path=NetworkPath.ROUTED,
            )

        assert gid == "2089b05ecca3d829"
        body = _sent(route)
        assert body["method"] == "aria2.addUri"
        token, uris, options = body["params"]
        assert token == "token:s3cret"
        assert uris == ["magnet:?xt=urn:btih:aaaa"]
        assert options["dir"] == "/downloads/movies"
        assert options["seed-time"] == "0"

    @respx.mock
    async def test_no_token_without_secret(self) -> None:
        route = respx.post(_DIRECT).respond(200, json={"result": "abc"})
        async with httpx.AsyncClient() as http:
            await _client(http, secret="").submit(
                "magnet:?x", "/d", path=NetworkPath.DIRECT
            )

        params = _sent(route)["params"]
        assert params[0] == ["magnet:?x"]


class TestStatus:
    @respx.mock
    async def test_maps_tell_status(self) -> None:
        respx.post(_DIRECT).respond(
            200,
            json={
                "result": {
                    "gid": "abc",
                    "status": "active",
                    "totalLength": "1000",
                    "completedLength": "250",
                    "downloadSpeed": "50",
                    "dir": "/downloads/movies",
                    "files": [{"path": "/downloads/movies/Dune/dune.mkv"}],
                }
            },
        )
        async with httpx.AsyncClient() as http:
            job = await _client(http).status("abc", path=NetworkPath.DIRECT)

        assert job.state == DownloadState.ACTIVE
        assert job.progress == 25.0
        assert job.is_active is True
        assert job.files == ["/downloads/movies/Dune/dune.mkv"]

    @respx.mock
    async def test_complete_job(self) -> None:
        respx.post(_DIRECT).respond(
            200,
            json={
                "result": {
                    "gid": "abc",
                    "status": "complete",
                    "totalLength": "10",
                    "completedLength": "10",
                }
            },
        )
        async with httpx.AsyncClient() as http:
            job = await _client(http).status("abc", path=NetworkPath.DIRECT)

        assert job.state == DownloadState.COMPLETE
        assert job.progress == 100.0
        assert job.is_active is False


class TestErrors:
    @respx.mock
    async def test_not_found(self) -> None:
        respx.post(_DIRECT).respond(
            400,
            json={"error": {"code": 1, "message": "GID abc is not found"}},
        )
        async with httpx.AsyncClient() as http:
            with pytest.raises(NotFoundError):
                await _client(http).cancel("abc", path=NetworkPath.DIRECT)

    @respx.mock
    async def test_unauthorized(self) -> None:
        respx.post(_DIRECT).respond(
            400, json={"error": {"code": 1, "message": "Unauthorized"}}
        )
        async with httpx.AsyncClient() as http:
            with pytest.raises(AuthenticationError):
                await _client(http).pause("abc", path=NetworkPath.DIRECT)

    @respx.mock
    async def test_other_rpc_error_is_unknown(self) -> None:
        respx.post(_DIRECT).respond(
            400, json={"error": {"code": 1, "message": "No URI to download."}}
        )
        async with httpx.AsyncClient() as http:
            with pytest.raises(UnknownExternalError):
                await _client(http).submit("", "/d", path=NetworkPath.DIRECT)

    @respx.mock
    async def test_connection_refused_is_transient(self) -> None:
        respx.post(_ROUTED).mock(side_effect=httpx.ConnectError("refused"))
        async with httpx.AsyncClient() as http:
            with pytest.raises(TransientNetworkError):
                await _client(http).resume("abc", path=NetworkPath.ROUTED)

    @respx.mock
    async def test_version(self) -> None:
        respx.post(_DIRECT).respond(200, json={"result": {"version": "1.37.0"}})
        async with httpx.AsyncClient() as http:
            assert await _client(http).version(path=NetworkPath.DIRECT) == "1.37.0"
