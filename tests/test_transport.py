from __future__ import annotations

from collections.abc import Callable
from typing import Any

import aiohttp
import pytest
from aiohttp import test_utils, web

from stratlive._transport import StrategyApi
from stratlive.client import DashboardClient
from stratlive.exceptions import StratLiveTransportError


async def _strategy_state(_request: web.Request) -> web.Response:
    return web.json_response({"instrument": "ES", "marketData": {"current_price": 4500.5}, "position": "Flat"})


async def _health(_request: web.Request) -> web.Response:
    return web.json_response({"status": "ok", "uptime": 12})


async def _broken(_request: web.Request) -> web.Response:
    return web.Response(status=503, text="engine warming up")


async def _serve(routes: dict[str, Any]) -> test_utils.TestServer:
    app = web.Application()
    for path, handler in routes.items():
        app.router.add_get(path, handler)
    server = test_utils.TestServer(app)
    await server.start_server()
    return server


def _base_url(server: test_utils.TestServer) -> str:
    return str(server.make_url("/")).rstrip("/")


@pytest.mark.asyncio
async def test_strategy_api_fetches_state_and_health() -> None:
    server = await _serve({"/api/strategy-state": _strategy_state, "/health": _health})
    try:
        async with aiohttp.ClientSession() as session:
            api = StrategyApi(_base_url(server) + "/", session)

            state = await api.get_strategy_state()
            health = await api.get_health()

        assert state["instrument"] == "ES"
        assert health == {"status": "ok", "uptime": 12}
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_strategy_api_raises_transport_error_on_http_failure() -> None:
    server = await _serve({"/health": _broken})
    try:
        async with aiohttp.ClientSession() as session:
            api = StrategyApi(_base_url(server), session)

            with pytest.raises(StratLiveTransportError) as excinfo:
                await api.get_health()

        assert excinfo.value.status_code == 503
        assert excinfo.value.endpoint == "/health"
    finally:
        await server.close()


class _StubApi:
    def __init__(self, state: dict[str, Any] | None = None, error: Exception | None = None) -> None:
        self._state = state or {}
        self._error = error

    async def get_strategy_state(self) -> dict[str, Any]:
        if self._error is not None:
            raise self._error
        return self._state

    async def get_health(self) -> dict[str, Any]:
        if self._error is not None:
            raise self._error
        return {"status": "ok"}


@pytest.mark.asyncio
async def test_bootstrap_commits_fetched_state_on_start(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = DashboardClient(
        make_client(bootstrap_enabled=True).config,
        transport=transport,
        api=_StubApi({"instrument": "ES", "marketData": {"current_price": 4500.5}, "position": "Flat"}),
    )
    try:
        await client.start()

        assert client.state.version == 1
        assert client.state["price"] == 4500.5
        assert await client.engine_health() == {"status": "ok"}
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_bootstrap_failure_becomes_warning(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = DashboardClient(
        make_client(bootstrap_enabled=True).config,
        transport=transport,
        api=_StubApi(error=StratLiveTransportError("HTTP 503 from /api/strategy-state", status_code=503)),
    )
    try:
        await client.start()

        assert client.state.version == 0
        assert client.notifications[-1].message == "Could not load current strategy state"
        assert await client.engine_health() is None
    finally:
        await client.close()
