"""Change events published to the rendering layer.

The rendering layer never polls components directly for changes; it
subscribes to these events through :class:`EventBus` and reads the
read-only views (``state``, ``health``, ``notifications``) on the client.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from stratlive.models.commands import EngineSettings
from stratlive.models.health import ConnectionHealth, HeartbeatRecord
from stratlive.models.notification import Notification
from stratlive.state.store import AppliedState

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StateCommitted:
    """A new AppliedState was swapped in."""

    state: AppliedState


@dataclass(frozen=True)
class HealthChanged:
    previous: ConnectionHealth
    current: ConnectionHealth


@dataclass(frozen=True)
class NotificationsChanged:
    notifications: tuple[Notification, ...]


@dataclass(frozen=True)
class HeartbeatReceived:
    record: HeartbeatRecord


@dataclass(frozen=True)
class SettingsChanged:
    settings: EngineSettings


DashboardEvent = StateCommitted | HealthChanged | NotificationsChanged | HeartbeatReceived | SettingsChanged
EventCallback = Callable[[DashboardEvent], None]


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`.

    ``unsubscribe()`` is idempotent; using the handle as a context manager
    unsubscribes on exit.
    """

    def __init__(self, bus: EventBus, callback: EventCallback, event_types: tuple[type, ...]) -> None:
        self._bus = bus
        self.callback = callback
        self.event_types = event_types
        self._active = True

    @property
    def active(self) -> bool:
        return self._active

    def accepts(self, event: DashboardEvent) -> bool:
        return not self.event_types or isinstance(event, self.event_types)

    def unsubscribe(self) -> None:
        if not self._active:
            return
        self._active = False
        self._bus._discard(self)  # noqa: SLF001

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc: Any) -> None:
        self.unsubscribe()


class EventBus:
    """Synchronous fan-out of dashboard events, in subscription order."""

    def __init__(self) -> None:
        self._subscriptions: list[Subscription] = []

    def subscribe(self, callback: EventCallback, *event_types: type) -> Subscription:
        """Register *callback* for *event_types* (all events when none given)."""
        subscription = Subscription(self, callback, tuple(event_types))
        self._subscriptions.append(subscription)
        return subscription

    def publish(self, event: DashboardEvent) -> None:
        # Snapshot the list: callbacks may unsubscribe while we iterate.
        for subscription in list(self._subscriptions):
            if not subscription.active or not subscription.accepts(event):
                continue
            try:
                subscription.callback(event)
            except Exception:
                _logger.warning("Subscriber callback failed for %s", type(event).__name__, exc_info=True)

    def clear(self) -> None:
        for subscription in list(self._subscriptions):
            subscription.unsubscribe()

    def __len__(self) -> int:
        return len(self._subscriptions)

    def _discard(self, subscription: Subscription) -> None:
        try:
            self._subscriptions.remove(subscription)
        except ValueError:
            pass
