from __future__ import annotations

from collections.abc import Callable
from typing import Any

import pytest

from stratlive.client import DashboardClient
from stratlive.config import DashboardConfig


class FakeTransport:
    """In-memory stand-in for the MQTT runtime."""

    def __init__(self) -> None:
        self.running = False
        self.published: list[tuple[str, dict[str, Any]]] = []
        self.on_publish: Callable[[str, dict[str, Any]], None] | None = None
        self.error: Exception | None = None

    @property
    def is_running(self) -> bool:
        return self.running

    def start(self) -> None:
        self.running = True

    def stop(self) -> None:
        self.running = False

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        if self.error is not None:
            raise self.error
        self.published.append((topic, payload))
        if self.on_publish is not None:
            self.on_publish(topic, payload)


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def make_client(transport: FakeTransport) -> Callable[..., DashboardClient]:
    """Build a client on the fake transport with short timings."""

    def _make(*, clock: Callable[[], float] | None = None, **overrides: Any) -> DashboardClient:
        values: dict[str, Any] = {
            "client_id": "test-client",
            "settle_delay": 0.02,
            "debounce_delay": 0.01,
            "command_timeout": 0.5,
            "bootstrap_enabled": False,
        }
        values.update(overrides)
        kwargs: dict[str, Any] = {"transport": transport}
        if clock is not None:
            kwargs["clock"] = clock
        return DashboardClient(DashboardConfig(**values), **kwargs)

    return _make
