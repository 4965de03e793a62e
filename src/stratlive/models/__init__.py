"""Data models for engine payloads, health and notifications."""

from stratlive.models._base import StratBaseModel, parse_engine_timestamp
from stratlive.models.commands import (
    CommandName,
    CommandResult,
    EngineSettings,
    EnsembleWeights,
    ManualTradeParams,
    TradeAction,
)
from stratlive.models.health import (
    ConnectionHealth,
    ConnectionStatusPayload,
    HeartbeatPayload,
    HeartbeatRecord,
    TransportEvent,
)
from stratlive.models.notification import Notification, Severity, SystemAlertPayload
from stratlive.models.snapshot import (
    CRITICAL_FIELDS,
    DEFAULT_FIELD_CLASSES,
    HIGH_TOLERANCE_FIELDS,
    FieldClass,
    PositionSide,
    Scalar,
    Snapshot,
    StrategySnapshot,
    field_class_for,
)

__all__ = [
    "CRITICAL_FIELDS",
    "CommandName",
    "CommandResult",
    "ConnectionHealth",
    "ConnectionStatusPayload",
    "DEFAULT_FIELD_CLASSES",
    "EngineSettings",
    "EnsembleWeights",
    "FieldClass",
    "HIGH_TOLERANCE_FIELDS",
    "HeartbeatPayload",
    "HeartbeatRecord",
    "ManualTradeParams",
    "Notification",
    "PositionSide",
    "Scalar",
    "Severity",
    "Snapshot",
    "StratBaseModel",
    "StrategySnapshot",
    "SystemAlertPayload",
    "TradeAction",
    "TransportEvent",
    "field_class_for",
    "parse_engine_timestamp",
]
