from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any

import pytest

from stratlive._mqtt import MqttEvent
from stratlive.client import DashboardClient
from stratlive.exceptions import StratLiveTransportError
from stratlive.models.commands import EngineSettings
from stratlive.models.health import TransportEvent
from stratlive.models.notification import Severity


async def _live(client: DashboardClient) -> DashboardClient:
    await client.start()
    client.handle_transport_event(TransportEvent.OPEN)
    return client


def _replying(client: DashboardClient, transport: Any, **reply: Any) -> None:
    """Answer every published command on the reply topic, one loop turn later."""
    loop = asyncio.get_running_loop()

    def on_publish(topic: str, payload: dict[str, Any]) -> None:
        event = MqttEvent(
            event="reply",
            topic="strategy/replies/test-client",
            payload={"request_id": payload["request_id"], **reply},
        )
        loop.call_soon(client._on_mqtt_event, event)  # type: ignore[attr-defined]

    transport.on_publish = on_publish


@pytest.mark.asyncio
async def test_manual_trade_round_trip(make_client: Callable[..., DashboardClient], transport: Any) -> None:
    client = await _live(make_client())
    _replying(client, transport, success=True, message="Long order placed")
    try:
        result = await client.enter_long(2, instrument="ES")

        assert result.success is True
        assert result.command == "manual_trade"
        assert result.data == {"message": "Long order placed"}

        topic, payload = transport.published[0]
        assert topic == "strategy/commands/manual_trade"
        assert payload["command"] == "go_long"
        assert payload["quantity"] == 2
        assert payload["instrument"] == "ES"
        assert payload["reply_to"] == "strategy/replies/test-client"
        assert client._waiters == {}  # type: ignore[attr-defined]
        assert client.notifications[-1].severity == Severity.SUCCESS
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_rejected_command_returns_failed_result_and_notifies(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = await _live(make_client())
    _replying(client, transport, success=False, error="Trading disabled")
    try:
        result = await client.close_position()

        assert result.success is False
        assert result.error == "Trading disabled"
        assert transport.published[0][1]["command"] == "close_position"
        last = client.notifications[-1]
        assert last.severity == Severity.ERROR
        assert "Trading disabled" in last.message
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_command_times_out_without_retry(make_client: Callable[..., DashboardClient], transport: Any) -> None:
    client = await _live(make_client(command_timeout=0.05))
    try:
        result = await client.enter_short()

        assert result.success is False
        assert result.error is not None
        assert "timed out" in result.error
        assert len(transport.published) == 1
        assert client._waiters == {}  # type: ignore[attr-defined]
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_command_fails_fast_when_not_connected(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = make_client()
    await client.start()
    try:
        result = await client.enter_long()

        assert result.success is False
        assert "not connected" in (result.error or "")
        assert transport.published == []
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_publish_failure_becomes_failed_result(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = await _live(make_client())
    transport.error = StratLiveTransportError("MQTT publish failed rc=4", endpoint="strategy/commands/manual_trade")
    try:
        result = await client.enter_long()

        assert result.success is False
        assert "MQTT publish failed" in (result.error or "")
        assert client._waiters == {}  # type: ignore[attr-defined]
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_malformed_reply_becomes_failed_result(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = await _live(make_client())
    _replying(client, transport, success=True, data="not-an-object")
    try:
        result = await client.enter_long()

        assert result.success is False
        assert "Malformed reply" in (result.error or "")
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_get_settings_updates_cached_settings(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = await _live(make_client())
    _replying(client, transport, minConfidence=0.7, maxDailyRisk=500)
    try:
        result = await client.get_settings()

        assert result.success is True
        assert transport.published[0][0] == "strategy/commands/get_settings"
        assert client.settings is not None
        assert client.settings.min_confidence == 0.7
        assert client.settings.max_daily_risk == 500
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_update_settings_sends_camel_case_partial_payload(
    make_client: Callable[..., DashboardClient],
    transport: Any,
) -> None:
    client = await _live(make_client())
    _replying(client, transport, minConfidence=0.6)
    try:
        result = await client.update_settings({"min_confidence": 0.6})
        second = await client.update_settings(EngineSettings(trading_disabled=True))

        assert result.success is True
        assert second.success is True
        first_payload = transport.published[0][1]
        assert first_payload["minConfidence"] == 0.6
        assert "maxDailyRisk" not in first_payload
        assert transport.published[1][1]["tradingDisabled"] is True
    finally:
        await client.close()


@pytest.mark.asyncio
async def test_close_fails_pending_command(make_client: Callable[..., DashboardClient]) -> None:
    client = await _live(make_client(command_timeout=5.0))

    task = asyncio.create_task(client.enter_long())
    await asyncio.sleep(0.01)
    await client.close()
    result = await task

    assert result.success is False
    assert result.error is not None
    assert "Client closed" in result.error


@pytest.mark.asyncio
async def test_reply_without_pending_command_is_ignored(make_client: Callable[..., DashboardClient]) -> None:
    client = await _live(make_client())
    try:
        assert client.handle_reply({"request_id": "unknown", "success": True}) is False
        assert client.handle_reply({"success": True}) is False
    finally:
        await client.close()
