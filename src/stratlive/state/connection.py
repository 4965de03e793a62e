"""Connection health state machine.

Transport tier edges::

    DISCONNECTED --CONNECT--> CONNECTING --OPEN--> LIVE --CLOSE--> DISCONNECTED
                              CONNECTING --CLOSE--> DISCONNECTED

An ``OPEN`` while ``DISCONNECTED`` (the transport library reconnected on
its own) is walked through ``CONNECTING`` so ``LIVE`` is never entered
directly.  Staleness overlays (``DEGRADED``/``INACTIVE``) sit on top of
``LIVE`` and are cleared whenever the transport opens again.

The manager never retries; reconnects belong to the transport library.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any, Protocol

from stratlive.models.health import ConnectionHealth, TransportEvent
from stratlive.models.notification import Severity

_logger = logging.getLogger(__name__)

_TRANSITIONS: dict[tuple[ConnectionHealth, TransportEvent], ConnectionHealth] = {
    (ConnectionHealth.DISCONNECTED, TransportEvent.CONNECT): ConnectionHealth.CONNECTING,
    (ConnectionHealth.CONNECTING, TransportEvent.OPEN): ConnectionHealth.LIVE,
    (ConnectionHealth.CONNECTING, TransportEvent.CLOSE): ConnectionHealth.DISCONNECTED,
    (ConnectionHealth.LIVE, TransportEvent.CLOSE): ConnectionHealth.DISCONNECTED,
}

_OVERLAYS = frozenset({ConnectionHealth.DEGRADED, ConnectionHealth.INACTIVE})


class PushTransport(Protocol):
    """The persistent connection owned by :class:`ConnectionManager`."""

    @property
    def is_running(self) -> bool: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def publish(self, topic: str, payload: dict[str, Any]) -> None: ...


class ConnectionManager:
    """Reflects transport signals into a :class:`ConnectionHealth` tier."""

    def __init__(
        self,
        transport: PushTransport | None = None,
        *,
        on_health_change: Callable[[ConnectionHealth, ConnectionHealth], None] | None = None,
        notify: Callable[[str, Severity], Any] | None = None,
    ) -> None:
        self._transport = transport
        self._on_health_change = on_health_change
        self._notify = notify
        self._transport_state = ConnectionHealth.DISCONNECTED
        self._overlay: ConnectionHealth | None = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def transport(self) -> PushTransport | None:
        return self._transport

    @property
    def transport_state(self) -> ConnectionHealth:
        return self._transport_state

    @property
    def overlay(self) -> ConnectionHealth | None:
        return self._overlay

    @property
    def is_live(self) -> bool:
        return self._transport_state == ConnectionHealth.LIVE

    @property
    def health(self) -> ConnectionHealth:
        """Effective tier: the overlay while live, the transport state otherwise."""
        if self._transport_state == ConnectionHealth.LIVE and self._overlay is not None:
            return self._overlay
        return self._transport_state

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def attach(self, transport: PushTransport) -> None:
        self._transport = transport

    def connect(self) -> None:
        """Start the transport and enter ``CONNECTING``."""
        transport = self._transport
        if transport is None:
            raise RuntimeError("No transport attached")
        self.on_transport_event(TransportEvent.CONNECT)
        if not transport.is_running:
            transport.start()

    def disconnect(self) -> None:
        """Stop the transport and reflect the close."""
        transport = self._transport
        if transport is not None and transport.is_running:
            transport.stop()
        self.on_transport_event(TransportEvent.CLOSE)

    # ------------------------------------------------------------------
    # Signals
    # ------------------------------------------------------------------

    def on_transport_event(self, event: TransportEvent) -> ConnectionHealth:
        """Apply one transport signal and return the effective health."""
        if event == TransportEvent.OPEN and self._transport_state == ConnectionHealth.DISCONNECTED:
            self._transition(ConnectionHealth.CONNECTING)

        target = _TRANSITIONS.get((self._transport_state, event))
        if target is None:
            _logger.debug("Ignoring %s while %s", event, self._transport_state)
            return self.health

        if target == ConnectionHealth.LIVE:
            self._overlay = None
        self._transition(target)
        return self.health

    def set_overlay(self, overlay: ConnectionHealth | None) -> ConnectionHealth:
        """Raise or clear a staleness overlay."""
        if overlay is not None and overlay not in _OVERLAYS:
            raise ValueError(f"{overlay} is not a staleness overlay")
        if overlay == self._overlay:
            return self.health
        previous = self.health
        self._overlay = overlay
        self._publish(previous)
        return self.health

    def _transition(self, target: ConnectionHealth) -> None:
        previous_health = self.health
        previous_state = self._transport_state
        self._transport_state = target
        _logger.info("Connection %s -> %s", previous_state, target)
        self._publish(previous_health)

        # Announce arrivals only; duplicates never reach here.
        if self._notify is None:
            return
        if target == ConnectionHealth.LIVE:
            self._notify("Connected to strategy engine", Severity.SUCCESS)
        elif target == ConnectionHealth.DISCONNECTED and previous_state == ConnectionHealth.LIVE:
            self._notify("Connection to strategy engine lost", Severity.ERROR)
        elif target == ConnectionHealth.DISCONNECTED:
            self._notify("Could not connect to strategy engine", Severity.WARNING)

    def _publish(self, previous: ConnectionHealth) -> None:
        current = self.health
        if current != previous and self._on_health_change is not None:
            self._on_health_change(previous, current)
