"""MQTT runtime: the persistent push connection to the strategy engine."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, cast

import paho.mqtt.client as mqtt

from stratlive._redact import redact_for_log
from stratlive.config import DashboardConfig
from stratlive.exceptions import StratLiveTransportError
from stratlive.ingestion.normalize import decode_json_object
from stratlive.models.health import TransportEvent


@dataclass(frozen=True)
class MqttTopics:
    """Topic layout under one prefix."""

    prefix: str
    client_id: str

    @property
    def events(self) -> str:
        return f"{self.prefix}/events/+"

    @property
    def replies(self) -> str:
        return f"{self.prefix}/replies/{self.client_id}"

    def command(self, name: str) -> str:
        return f"{self.prefix}/commands/{name}"

    def event_name(self, topic: str) -> str | None:
        """Return the event name for an events topic, else ``None``."""
        head = f"{self.prefix}/events/"
        if not topic.startswith(head):
            return None
        name = topic[len(head) :]
        return name if name and "/" not in name else None


@dataclass(frozen=True)
class MqttEvent:
    """A decoded inbound message."""

    event: str
    topic: str
    payload: dict[str, Any]


def parse_mqtt_message(topics: MqttTopics, topic: str, payload: bytes) -> MqttEvent | None:
    """Decode one PUBLISH into an :class:`MqttEvent`.

    Replies on this client's reply topic come back as event ``"reply"``.
    Returns ``None`` for topics outside the layout.  Raises
    :class:`ValueError` when the body is not a JSON object.
    """
    if topic == topics.replies:
        return MqttEvent(event="reply", topic=topic, payload=decode_json_object(payload))
    name = topics.event_name(topic)
    if name is None:
        return None
    return MqttEvent(event=name, topic=topic, payload=decode_json_object(payload))


class StrategyMqttRuntime:
    """Threaded paho-mqtt runtime that emits events onto an asyncio loop.

    paho owns reconnects (``connect_async`` + ``reconnect_delay_set``); this
    class only forwards what happens.  Every callback is marshalled onto
    *loop* with ``call_soon_threadsafe`` so handlers run on the loop thread.
    """

    def __init__(
        self,
        config: DashboardConfig,
        *,
        loop: asyncio.AbstractEventLoop,
        on_event: Callable[[MqttEvent], None],
        on_transport_event: Callable[[TransportEvent], None],
        logger: logging.Logger | None = None,
    ) -> None:
        self._config = config
        self._loop = loop
        self._on_event = on_event
        self._on_transport_event = on_transport_event
        self._logger = logger or logging.getLogger(__name__)
        self._topics = MqttTopics(prefix=config.topic_prefix, client_id=config.client_id)
        self._client: mqtt.Client | None = None
        self._running = False

    @property
    def is_running(self) -> bool:
        """Whether the MQTT runtime is actively running."""
        return self._running

    @property
    def topics(self) -> MqttTopics:
        return self._topics

    def _emit(self, callback: Callable[[Any], None], value: Any) -> None:
        if self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(callback, value)

    def start(self) -> None:
        """Begin connecting; paho keeps reconnecting until :meth:`stop`."""
        self.stop()
        config = self._config
        self._logger.debug(
            "MQTT runtime start requested host=%s port=%s prefix=%s client_id=%s",
            config.broker_host,
            config.broker_port,
            config.topic_prefix,
            config.client_id,
        )

        client = mqtt.Client(
            callback_api_version=cast(Any, mqtt).CallbackAPIVersion.VERSION2,
            client_id=config.client_id,
            protocol=mqtt.MQTTv5,
        )
        client.enable_logger(self._logger)
        if config.broker_username:
            client.username_pw_set(config.broker_username, config.broker_password)
        if config.broker_tls:
            client.tls_set()
        client.reconnect_delay_set(
            min_delay=config.reconnect_min_delay,
            max_delay=config.reconnect_max_delay,
        )

        topics = self._topics

        def on_connect(
            c: mqtt.Client,
            _userdata: Any,
            _flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            if reason_code.value != 0:
                self._logger.warning("MQTT connect failed: %s", reason_code)
                self._emit(self._on_transport_event, TransportEvent.CLOSE)
                return
            self._logger.debug("MQTT connected reason=%s; subscribing", reason_code)
            c.subscribe([(topics.events, 1), (topics.replies, 1)])
            self._emit(self._on_transport_event, TransportEvent.OPEN)

        def on_message(_c: mqtt.Client, _userdata: Any, msg: mqtt.MQTTMessage) -> None:
            try:
                event = parse_mqtt_message(topics, msg.topic, msg.payload)
            except ValueError:
                self._logger.warning("Undecodable MQTT payload on topic=%s", msg.topic, exc_info=True)
                return
            if event is None:
                self._logger.debug("Ignoring message on unexpected topic=%s", msg.topic)
                return
            self._logger.debug("Received event=%s payload=%s", event.event, redact_for_log(event.payload))
            self._emit(self._on_event, event)

        def on_disconnect(
            _client: mqtt.Client,
            _userdata: Any,
            _disconnect_flags: Any,
            reason_code: Any,
            _properties: Any,
        ) -> None:
            self._logger.debug("MQTT disconnected: %s", reason_code)
            self._emit(self._on_transport_event, TransportEvent.CLOSE)

        client.on_connect = on_connect
        client.on_message = on_message
        client.on_disconnect = on_disconnect

        client.connect_async(config.broker_host, config.broker_port, keepalive=config.mqtt_keepalive)
        client.loop_start()

        self._client = client
        self._running = True
        self._logger.debug("MQTT network loop started")

    def stop(self) -> None:
        """Stop and disconnect current MQTT client if running."""
        client = self._client
        self._client = None
        was_running = self._running
        self._running = False

        if client is None:
            return
        try:
            if was_running:
                self._logger.debug("MQTT disconnect requested")
                client.disconnect()
        finally:
            client.loop_stop()
            self._logger.debug("MQTT network loop stopped")

    def publish(self, topic: str, payload: dict[str, Any]) -> None:
        """Publish a JSON payload; raises :class:`StratLiveTransportError` when not possible."""
        client = self._client
        if client is None or not self._running:
            raise StratLiveTransportError("MQTT runtime not running", endpoint=topic)
        info = client.publish(topic, json.dumps(payload, separators=(",", ":")), qos=1)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise StratLiveTransportError(f"MQTT publish failed rc={info.rc}", endpoint=topic)
