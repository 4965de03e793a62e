"""High-level async client for a live strategy dashboard."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Callable, Mapping
from types import MappingProxyType
from typing import Any

import aiohttp
from pydantic import ValidationError

from stratlive._mqtt import MqttEvent, MqttTopics, StrategyMqttRuntime
from stratlive._redact import redact_for_log
from stratlive._transport import StrategyApi, StrategyApiProtocol
from stratlive.config import DashboardConfig
from stratlive.exceptions import CommandDispatchError, MalformedSnapshotError, StratLiveTransportError
from stratlive.ingestion.payloads import (
    parse_connection_status,
    parse_heartbeat,
    parse_settings,
    parse_strategy_data,
    parse_system_alert,
)
from stratlive.models.commands import CommandName, CommandResult, EngineSettings, ManualTradeParams, TradeAction
from stratlive.models.health import ConnectionHealth, HeartbeatRecord, TransportEvent
from stratlive.models.notification import Notification, Severity
from stratlive.models.snapshot import Scalar
from stratlive.state.connection import ConnectionManager, PushTransport
from stratlive.state.events import (
    EventBus,
    EventCallback,
    HealthChanged,
    HeartbeatReceived,
    NotificationsChanged,
    SettingsChanged,
    StateCommitted,
    Subscription,
)
from stratlive.state.notifications import NotificationQueue
from stratlive.state.policy import ChangeDetector
from stratlive.state.smoothing import SmoothingPipeline
from stratlive.state.staleness import StalenessMonitor
from stratlive.state.store import AppliedState, StateStore

_logger = logging.getLogger(__name__)


class DashboardClient:
    """Reconciles a live strategy feed into a consistent presented state.

    Usage::

        async with DashboardClient(DashboardConfig.from_env()) as client:
            client.subscribe(render, StateCommitted, HealthChanged)
            await client.enter_long(quantity=1)

    The client owns the transport, the applied state and every timer.  No
    exception raised while handling inbound traffic reaches the caller;
    failures become health transitions, notifications or failed
    :class:`CommandResult` values.
    """

    def __init__(
        self,
        config: DashboardConfig | None = None,
        *,
        transport: PushTransport | None = None,
        api: StrategyApiProtocol | None = None,
        session: aiohttp.ClientSession | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._config = config or DashboardConfig()
        self._clock = clock
        self._api = api
        self._external_session = session is not None
        self._http_session = session
        self._topics = MqttTopics(prefix=self._config.topic_prefix, client_id=self._config.client_id)

        self._bus = EventBus()
        self._store = StateStore(clock=clock)
        self._detector = ChangeDetector(
            regular_tolerance=self._config.regular_tolerance,
            high_tolerance=self._config.high_tolerance,
            field_classes=self._config.field_classes,
        )
        self._pipeline = SmoothingPipeline(
            self._commit,
            settle_delay=self._config.settle_delay,
            debounce_delay=self._config.debounce_delay,
        )
        self._notifications = NotificationQueue(
            capacity=self._config.notification_capacity,
            lifetime=self._config.notification_lifetime,
            on_change=self._on_notifications_changed,
        )
        self._connection = ConnectionManager(
            transport,
            on_health_change=self._on_health_changed,
            notify=self._notify,
        )
        self._monitor = StalenessMonitor(
            set_overlay=self._connection.set_overlay,
            notify=self._notify,
            dismiss=self._notifications.remove,
            is_transport_open=lambda: self._connection.is_live,
            clock=clock,
            check_interval=self._config.staleness_check_interval,
            soft_threshold=self._config.staleness_soft_threshold,
            hard_threshold=self._config.staleness_hard_threshold,
        )

        self._heartbeat: HeartbeatRecord | None = None
        self._settings: EngineSettings | None = None
        self._waiters: dict[str, asyncio.Future[dict[str, Any]]] = {}
        self._event_handlers: dict[str, Callable[[Any], Any]] = {
            "strategy_data": self.handle_strategy_data,
            "connection_status": self.handle_connection_status,
            "strategy_connected": lambda _payload: self.handle_transport_event(TransportEvent.OPEN),
            "strategy_disconnected": lambda _payload: self.handle_transport_event(TransportEvent.CLOSE),
            "heartbeat": self.handle_heartbeat,
            "current_settings": self.handle_settings,
            "system_alert": self.handle_system_alert,
        }
        self._started = False
        self._closed = False

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> DashboardClient:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def start(self) -> None:
        """Open the push connection, start staleness checks and bootstrap state."""
        if self._closed:
            raise RuntimeError("DashboardClient is closed")
        if self._started:
            return
        self._started = True
        loop = asyncio.get_running_loop()

        if self._connection.transport is None:
            self._connection.attach(
                StrategyMqttRuntime(
                    self._config,
                    loop=loop,
                    on_event=self._on_mqtt_event,
                    on_transport_event=self.handle_transport_event,
                    logger=_logger,
                )
            )

        self._monitor.start()
        try:
            self._connection.connect()
        except (OSError, ValueError) as exc:
            _logger.warning("Transport start failed: %s", exc)
            self.handle_transport_event(TransportEvent.CLOSE)

        if self._config.bootstrap_enabled and (self._api is not None or self._config.api_base_url):
            await self._bootstrap()

    async def close(self) -> None:
        """Release every timer, fail pending commands and stop the transport."""
        if self._closed:
            return
        self._closed = True

        self._pipeline.close()
        self._monitor.close()
        self._notifications.close()

        waiters = list(self._waiters.values())
        self._waiters.clear()
        for future in waiters:
            if not future.done():
                future.set_exception(CommandDispatchError("Client closed before a reply arrived"))

        self._connection.disconnect()
        self._bus.clear()

        if not self._external_session and self._http_session is not None:
            await self._http_session.close()
        self._http_session = None

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def config(self) -> DashboardConfig:
        return self._config

    @property
    def state(self) -> AppliedState:
        """The presented snapshot; replaced wholesale on each commit."""
        return self._store.state

    @property
    def health(self) -> ConnectionHealth:
        return self._connection.health

    @property
    def notifications(self) -> tuple[Notification, ...]:
        return self._notifications.items

    @property
    def heartbeat(self) -> HeartbeatRecord | None:
        return self._heartbeat

    @property
    def settings(self) -> EngineSettings | None:
        """Latest settings broadcast by the engine, if any."""
        return self._settings

    @property
    def pending(self) -> Mapping[str, Scalar] | None:
        """The candidate waiting in the smoothing pipeline, if any."""
        return self._pipeline.pending

    def subscribe(self, callback: EventCallback, *event_types: type) -> Subscription:
        """Receive dashboard events; see :mod:`stratlive.state.events`."""
        return self._bus.subscribe(callback, *event_types)

    def dismiss_notification(self, notification_id: str) -> bool:
        return self._notifications.remove(notification_id)

    # ------------------------------------------------------------------
    # Inbound handlers
    # ------------------------------------------------------------------

    def handle_strategy_data(self, payload: Any) -> bool:
        """Validate one ``strategy_data`` push and hand it to the pipeline.

        Returns ``True`` if the snapshot passed change detection.  A malformed
        push is dropped whole.  A push within tolerance of the applied state
        is discarded, unless a candidate is pending: it is then folded into
        that candidate so the commit carries the newest values.
        """
        try:
            snapshot = parse_strategy_data(payload)
        except MalformedSnapshotError as exc:
            self._reject(exc)
            return False

        incoming = snapshot.state_fields()
        applied = self._store.state
        pending = self._pipeline.pending
        if not self._detector.should_apply(incoming, applied):
            if pending is not None:
                self._pipeline.accept(MappingProxyType({**pending, **incoming}))
            return False

        # Absent fields are unchanged: build on the newest full state.
        if pending is None:
            candidate = applied.compose(incoming)
        else:
            candidate = {**pending, **incoming}
        self._pipeline.accept(MappingProxyType(candidate))
        return True

    def handle_heartbeat(self, payload: Any) -> HeartbeatRecord | None:
        try:
            heartbeat = parse_heartbeat(payload)
        except MalformedSnapshotError as exc:
            self._reject(exc)
            return None

        record = HeartbeatRecord(
            received_at=self._clock(),
            remote_active=heartbeat.is_active,
            remote_timestamp=heartbeat.timestamp,
        )
        self._heartbeat = record
        self._monitor.note_heartbeat(record)
        self._bus.publish(HeartbeatReceived(record))
        return record

    def handle_connection_status(self, payload: Any) -> ConnectionHealth:
        try:
            status = parse_connection_status(payload)
        except MalformedSnapshotError as exc:
            self._reject(exc)
            return self.health
        return self.handle_transport_event(status.transport_event)

    def handle_transport_event(self, event: TransportEvent) -> ConnectionHealth:
        """Feed one transport signal to the health state machine."""
        was_live = self._connection.is_live
        health = self._connection.on_transport_event(event)
        if not was_live and self._connection.is_live:
            self._monitor.reset()
        return health

    def handle_system_alert(self, payload: Any) -> Notification | None:
        try:
            alert = parse_system_alert(payload)
        except MalformedSnapshotError as exc:
            self._reject(exc)
            return None
        _logger.debug("System alert id=%s type=%s severity=%s", alert.id, alert.type, alert.severity)
        return self._notify(alert.message, alert.local_severity)

    def handle_settings(self, payload: Any) -> EngineSettings | None:
        try:
            settings = parse_settings(payload)
        except MalformedSnapshotError as exc:
            self._reject(exc)
            return None
        self._settings = settings
        self._bus.publish(SettingsChanged(settings))
        return settings

    def handle_reply(self, payload: Mapping[str, Any]) -> bool:
        """Resolve the pending command whose ``request_id`` matches *payload*."""
        request_id = payload.get("request_id")
        future = self._waiters.get(request_id) if isinstance(request_id, str) else None
        if future is None or future.done():
            _logger.debug("Reply without a pending command request_id=%s", request_id)
            return False
        future.set_result(dict(payload))
        return True

    def _on_mqtt_event(self, event: MqttEvent) -> None:
        """Dispatch one decoded message (runs on the loop thread)."""
        if self._closed:
            return
        if event.event == "reply":
            self.handle_reply(event.payload)
            return
        handler = self._event_handlers.get(event.event)
        if handler is None:
            _logger.debug("Ignoring unknown event=%s", event.event)
            return
        handler(event.payload)

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def send_command(
        self,
        command: CommandName | str,
        params: Mapping[str, Any] | None = None,
    ) -> CommandResult:
        """Publish *command* and wait for its reply.

        Never raises for dispatch problems: no connection, timeout, a
        malformed reply or a rejection all return a failed result and
        raise an error notification.  Commands are not retried.
        """
        name = str(command)
        try:
            return await self._dispatch(name, dict(params or {}))
        except CommandDispatchError as exc:
            _logger.warning("Command %s failed: %s", name, exc)
            self._notify(str(exc), Severity.ERROR)
            return CommandResult.failed(name, exc.remote_error or str(exc))

    async def _dispatch(self, name: str, params: dict[str, Any]) -> CommandResult:
        transport = self._connection.transport
        if self._closed or transport is None or not self._connection.is_live:
            raise CommandDispatchError(f"Cannot send {name}: not connected to strategy engine", command=name)

        request_id = uuid.uuid4().hex
        future: asyncio.Future[dict[str, Any]] = asyncio.get_running_loop().create_future()
        self._waiters[request_id] = future
        body = {**params, "request_id": request_id, "reply_to": self._topics.replies}
        timeout = self._config.command_timeout
        _logger.debug("Sending command=%s payload=%s", name, redact_for_log(body))
        try:
            transport.publish(self._topics.command(name), body)
            reply = await asyncio.wait_for(future, timeout)
        except StratLiveTransportError as exc:
            raise CommandDispatchError(f"Could not send {name}: {exc}", command=name) from exc
        except TimeoutError as exc:
            raise CommandDispatchError(f"{name} timed out after {timeout:g}s", command=name) from exc
        except CommandDispatchError as exc:
            raise CommandDispatchError(f"{name} aborted: {exc}", command=name) from exc
        finally:
            self._waiters.pop(request_id, None)

        try:
            result = CommandResult.model_validate({**reply, "command": name})
        except ValidationError as exc:
            raise CommandDispatchError(f"Malformed reply to {name}", command=name) from exc
        if not result.success:
            raise CommandDispatchError(
                f"{name} rejected by strategy engine: {result.error or 'no reason given'}",
                command=name,
                remote_error=result.error,
            )
        return result

    async def _trade(self, action: TradeAction, quantity: int, instrument: str | None) -> CommandResult:
        params = ManualTradeParams(command=action, quantity=quantity, instrument=instrument)
        result = await self.send_command(CommandName.MANUAL_TRADE, params.to_payload())
        if result.success:
            self._notify(f"Manual {action.replace('_', ' ')} sent", Severity.SUCCESS)
        return result

    async def enter_long(self, quantity: int = 1, *, instrument: str | None = None) -> CommandResult:
        return await self._trade(TradeAction.GO_LONG, quantity, instrument)

    async def enter_short(self, quantity: int = 1, *, instrument: str | None = None) -> CommandResult:
        return await self._trade(TradeAction.GO_SHORT, quantity, instrument)

    async def close_position(self, *, instrument: str | None = None) -> CommandResult:
        return await self._trade(TradeAction.CLOSE_POSITION, 1, instrument)

    async def update_settings(self, settings: EngineSettings | Mapping[str, Any]) -> CommandResult:
        """Send a (partial) settings update; unset fields are left alone."""
        if not isinstance(settings, EngineSettings):
            settings = EngineSettings.model_validate(dict(settings))
        return await self.send_command(CommandName.UPDATE_SETTINGS, settings.to_payload())

    async def get_settings(self) -> CommandResult:
        """Request the engine's current settings.

        A successful reply also updates :attr:`settings`.
        """
        result = await self.send_command(CommandName.GET_SETTINGS)
        if result.success:
            self.handle_settings(result.data)
        return result

    # ------------------------------------------------------------------
    # HTTP API
    # ------------------------------------------------------------------

    def _require_api(self) -> StrategyApiProtocol:
        if self._api is None:
            if not self._config.api_base_url:
                raise RuntimeError("No api_base_url configured")
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession()
            self._api = StrategyApi(self._config.api_base_url, self._http_session)
        return self._api

    async def _bootstrap(self) -> None:
        """Seed the state from the HTTP API (best effort)."""
        api = self._require_api()
        try:
            payload = await api.get_strategy_state()
        except StratLiveTransportError as exc:
            _logger.warning("Bootstrap fetch failed: %s", exc)
            self._notify("Could not load current strategy state", Severity.WARNING)
            return
        if self.handle_strategy_data(payload):
            self._pipeline.flush()

    async def engine_health(self) -> dict[str, Any] | None:
        """Probe the engine's ``/health`` endpoint; ``None`` when unreachable."""
        api = self._require_api()
        try:
            return await api.get_health()
        except StratLiveTransportError as exc:
            _logger.warning("Health probe failed: %s", exc)
            self._notify("Strategy engine health check failed", Severity.WARNING)
            return None

    # ------------------------------------------------------------------
    # Internal plumbing
    # ------------------------------------------------------------------

    def _commit(self, candidate: Mapping[str, Scalar]) -> None:
        state = self._store.replace(candidate)
        self._monitor.mark_fresh(state.committed_at)
        self._bus.publish(StateCommitted(state))

    def _notify(self, message: str, severity: Severity = Severity.INFO) -> Notification:
        return self._notifications.enqueue(message, severity)

    def _reject(self, exc: MalformedSnapshotError) -> None:
        _logger.warning("Dropping malformed %s payload: %s", exc.event or "inbound", exc)
        self._notify(f"Ignored malformed {exc.event or 'engine'} update", Severity.ERROR)

    def _on_notifications_changed(self, items: tuple[Notification, ...]) -> None:
        self._bus.publish(NotificationsChanged(items))

    def _on_health_changed(self, previous: ConnectionHealth, current: ConnectionHealth) -> None:
        self._bus.publish(HealthChanged(previous, current))
