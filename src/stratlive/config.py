"""Client configuration for stratlive."""

from __future__ import annotations

import dataclasses
import os
import uuid
from collections.abc import Mapping
from typing import Any

from stratlive._constants import (
    COMMAND_TIMEOUT_SECONDS,
    DEBOUNCE_DELAY_SECONDS,
    DEFAULT_TOPIC_PREFIX,
    HIGH_TOLERANCE,
    MQTT_KEEPALIVE_SECONDS,
    MQTT_PORT,
    NOTIFICATION_CAPACITY,
    NOTIFICATION_LIFETIME_SECONDS,
    RECONNECT_MAX_DELAY_SECONDS,
    RECONNECT_MIN_DELAY_SECONDS,
    REGULAR_TOLERANCE,
    SETTLE_DELAY_SECONDS,
    STALENESS_CHECK_INTERVAL_SECONDS,
    STALENESS_HARD_THRESHOLD_SECONDS,
    STALENESS_SOFT_THRESHOLD_SECONDS,
)
from stratlive.exceptions import StratLiveConfigError
from stratlive.models.snapshot import FieldClass


def _env_bool(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _default_client_id() -> str:
    return f"stratlive-{uuid.uuid4().hex[:12]}"


@dataclasses.dataclass(frozen=True)
class DashboardConfig:
    """Client configuration.

    Parameters
    ----------
    broker_host : str
        MQTT broker the strategy engine publishes to.
    broker_port : int
        MQTT broker port.
    broker_tls : bool
        Connect with TLS.
    broker_username, broker_password : str or None
        MQTT credentials, if the broker requires them.
    topic_prefix : str
        Root of the engine's topic tree (``<prefix>/events/...``).
    client_id : str
        MQTT client id; also names this client's reply topic.
    mqtt_keepalive : int
        MQTT keepalive in seconds.
    reconnect_min_delay, reconnect_max_delay : int
        Bounds for paho's own reconnect backoff, in seconds.
    command_timeout : float
        Seconds to wait for a command reply before reporting failure.
    api_base_url : str or None
        Base URL of the engine's HTTP API (``/api/strategy-state``).
    bootstrap_enabled : bool
        Fetch the current snapshot over HTTP on start.
    regular_tolerance, high_tolerance : float
        Change-detection deltas for ``REGULAR``/``HIGH_TOLERANCE`` fields.
    settle_delay, debounce_delay : float
        Smoothing pipeline stage delays, in seconds.
    staleness_check_interval : float
        Seconds between staleness checks.
    staleness_soft_threshold, staleness_hard_threshold : float
        Feed ages (seconds) that raise ``DEGRADED`` / ``INACTIVE``.
    notification_capacity : int
        Maximum number of live notifications.
    notification_lifetime : float
        Seconds each notification lives.
    field_classes : Mapping[str, FieldClass]
        Per-field overrides of the default tolerance classes.
    """

    broker_host: str = "localhost"
    broker_port: int = MQTT_PORT
    broker_tls: bool = False
    broker_username: str | None = None
    broker_password: str | None = None
    topic_prefix: str = DEFAULT_TOPIC_PREFIX
    client_id: str = dataclasses.field(default_factory=_default_client_id)
    mqtt_keepalive: int = MQTT_KEEPALIVE_SECONDS
    reconnect_min_delay: int = RECONNECT_MIN_DELAY_SECONDS
    reconnect_max_delay: int = RECONNECT_MAX_DELAY_SECONDS
    command_timeout: float = COMMAND_TIMEOUT_SECONDS
    api_base_url: str | None = None
    bootstrap_enabled: bool = True
    regular_tolerance: float = REGULAR_TOLERANCE
    high_tolerance: float = HIGH_TOLERANCE
    settle_delay: float = SETTLE_DELAY_SECONDS
    debounce_delay: float = DEBOUNCE_DELAY_SECONDS
    staleness_check_interval: float = STALENESS_CHECK_INTERVAL_SECONDS
    staleness_soft_threshold: float = STALENESS_SOFT_THRESHOLD_SECONDS
    staleness_hard_threshold: float = STALENESS_HARD_THRESHOLD_SECONDS
    notification_capacity: int = NOTIFICATION_CAPACITY
    notification_lifetime: float = NOTIFICATION_LIFETIME_SECONDS
    field_classes: Mapping[str, FieldClass] = dataclasses.field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.topic_prefix.strip("/"):
            raise StratLiveConfigError("topic_prefix must be non-empty")
        if self.regular_tolerance < 0 or self.high_tolerance < 0:
            raise StratLiveConfigError("tolerances must be non-negative")
        if self.settle_delay < 0 or self.debounce_delay < 0:
            raise StratLiveConfigError("smoothing delays must be non-negative")
        if self.staleness_check_interval <= 0:
            raise StratLiveConfigError("staleness_check_interval must be positive")
        if self.staleness_soft_threshold <= 0 or self.staleness_hard_threshold < self.staleness_soft_threshold:
            raise StratLiveConfigError("staleness thresholds must satisfy 0 < soft <= hard")
        if self.notification_capacity < 1:
            raise StratLiveConfigError("notification_capacity must be at least 1")
        if self.notification_lifetime <= 0:
            raise StratLiveConfigError("notification_lifetime must be positive")
        if self.command_timeout <= 0:
            raise StratLiveConfigError("command_timeout must be positive")
        if self.reconnect_min_delay < 1 or self.reconnect_max_delay < self.reconnect_min_delay:
            raise StratLiveConfigError("reconnect delays must satisfy 1 <= min <= max")
        try:
            normalized = {name: FieldClass(value) for name, value in self.field_classes.items()}
        except ValueError as exc:
            raise StratLiveConfigError(f"invalid field class: {exc}") from exc
        object.__setattr__(self, "topic_prefix", self.topic_prefix.strip("/"))
        object.__setattr__(self, "field_classes", normalized)

    @classmethod
    def from_env(cls, **overrides: Any) -> DashboardConfig:
        """Create configuration from ``STRATLIVE_*`` environment variables.

        Explicit keyword arguments override environment values.

        ``STRATLIVE_FIELD_CLASSES`` takes comma-separated ``name=class``
        pairs, e.g. ``"rsi=high_tolerance,volume=critical"``.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "STRATLIVE_BROKER_HOST": "broker_host",
            "STRATLIVE_BROKER_USERNAME": "broker_username",
            "STRATLIVE_BROKER_PASSWORD": "broker_password",
            "STRATLIVE_TOPIC_PREFIX": "topic_prefix",
            "STRATLIVE_CLIENT_ID": "client_id",
            "STRATLIVE_API_BASE_URL": "api_base_url",
        }
        _ENV_INT_MAP = {
            "STRATLIVE_BROKER_PORT": "broker_port",
            "STRATLIVE_MQTT_KEEPALIVE": "mqtt_keepalive",
            "STRATLIVE_RECONNECT_MIN_DELAY": "reconnect_min_delay",
            "STRATLIVE_RECONNECT_MAX_DELAY": "reconnect_max_delay",
            "STRATLIVE_NOTIFICATION_CAPACITY": "notification_capacity",
        }
        _ENV_FLOAT_MAP = {
            "STRATLIVE_COMMAND_TIMEOUT": "command_timeout",
            "STRATLIVE_REGULAR_TOLERANCE": "regular_tolerance",
            "STRATLIVE_HIGH_TOLERANCE": "high_tolerance",
            "STRATLIVE_SETTLE_DELAY": "settle_delay",
            "STRATLIVE_DEBOUNCE_DELAY": "debounce_delay",
            "STRATLIVE_STALENESS_CHECK_INTERVAL": "staleness_check_interval",
            "STRATLIVE_STALENESS_SOFT_THRESHOLD": "staleness_soft_threshold",
            "STRATLIVE_STALENESS_HARD_THRESHOLD": "staleness_hard_threshold",
            "STRATLIVE_NOTIFICATION_LIFETIME": "notification_lifetime",
        }
        _ENV_BOOL_MAP = {
            "STRATLIVE_BROKER_TLS": ("broker_tls", False),
            "STRATLIVE_BOOTSTRAP_ENABLED": ("bootstrap_enabled", True),
        }

        config_kwargs: dict[str, Any] = {}
        try:
            for env_key, field_name in _ENV_STR_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = val
            for env_key, field_name in _ENV_INT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = int(val)
            for env_key, field_name in _ENV_FLOAT_MAP.items():
                val = env.get(env_key)
                if val is not None and field_name not in overrides:
                    config_kwargs[field_name] = float(val)
        except ValueError as exc:
            raise StratLiveConfigError(f"invalid numeric environment value: {exc}") from exc

        for env_key, (field_name, default) in _ENV_BOOL_MAP.items():
            if field_name not in overrides:
                config_kwargs[field_name] = _env_bool(env.get(env_key), default)

        classes_env = env.get("STRATLIVE_FIELD_CLASSES")
        if classes_env and "field_classes" not in overrides:
            field_classes: dict[str, str] = {}
            for pair in classes_env.split(","):
                name, sep, value = pair.partition("=")
                if not sep or not name.strip():
                    raise StratLiveConfigError(f"invalid STRATLIVE_FIELD_CLASSES entry {pair!r}")
                field_classes[name.strip()] = value.strip().lower()
            config_kwargs["field_classes"] = field_classes

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
