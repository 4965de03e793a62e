"""Connection health, transport signals, and liveness payloads."""

from __future__ import annotations

import enum
import time
from datetime import datetime

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from stratlive.models._base import EngineTimestamp, Flag, StratBaseModel, Text


class ConnectionHealth(enum.StrEnum):
    """Coarse health tier shown to the rendering layer.

    ``DISCONNECTED``/``CONNECTING``/``LIVE`` reflect the transport.
    ``DEGRADED``/``INACTIVE`` are staleness overlays on top of it.
    """

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    LIVE = "live"
    DEGRADED = "degraded"
    INACTIVE = "inactive"


class TransportEvent(enum.StrEnum):
    """Signals that drive the connection state machine."""

    CONNECT = "connect"
    OPEN = "open"
    CLOSE = "close"


class HeartbeatRecord(BaseModel):
    """Most recent explicit liveness signal from the engine.

    ``received_at`` is on the client's monotonic clock, so it can be
    compared with snapshot commit times.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    received_at: float = Field(default_factory=time.monotonic)
    remote_active: bool
    remote_timestamp: datetime | None = None


class HeartbeatPayload(StratBaseModel):
    """Inbound ``heartbeat`` event."""

    remote_active: Flag = Field(
        default=True,
        validation_alias=AliasChoices("remote_active", "remoteActive"),
    )
    ml_server_status: Text | None = None
    timestamp: EngineTimestamp = None

    @property
    def is_active(self) -> bool:
        if self.ml_server_status is not None and self.ml_server_status != "active":
            return False
        return self.remote_active


class ConnectionStatusPayload(StratBaseModel):
    """Inbound ``connection_status`` event."""

    status: Text
    timestamp: EngineTimestamp = None

    @field_validator("status")
    @classmethod
    def _normalize_status(cls, value: str) -> str:
        normalized = value.strip().lower()
        if normalized not in {"connected", "disconnected"}:
            raise ValueError(f"unknown connection status {value!r}")
        return normalized

    @property
    def transport_event(self) -> TransportEvent:
        return TransportEvent.OPEN if self.status == "connected" else TransportEvent.CLOSE
