"""Validation boundary for inbound engine events."""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from stratlive.exceptions import MalformedSnapshotError
from stratlive.ingestion.normalize import flatten_strategy_payload
from stratlive.models.commands import EngineSettings
from stratlive.models.health import ConnectionStatusPayload, HeartbeatPayload
from stratlive.models.notification import SystemAlertPayload
from stratlive.models.snapshot import StrategySnapshot

TModel = TypeVar("TModel", bound=BaseModel)


def _error_fields(exc: ValidationError) -> list[str]:
    fields: list[str] = []
    for error in exc.errors():
        loc = error.get("loc") or ()
        name = str(loc[0]) if loc else "__root__"
        if name not in fields:
            fields.append(name)
    return fields


def validate_payload(model: type[TModel], payload: Any, *, event: str) -> TModel:
    """Validate *payload* as *model*, or raise :class:`MalformedSnapshotError`."""
    if not isinstance(payload, dict):
        raise MalformedSnapshotError(
            f"{event} payload is not an object ({type(payload).__name__})",
            event=event,
        )
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        fields = _error_fields(exc)
        raise MalformedSnapshotError(
            f"{event} payload rejected; invalid fields: {', '.join(fields)}",
            event=event,
            fields=fields,
        ) from exc


def parse_strategy_data(payload: Any) -> StrategySnapshot:
    if isinstance(payload, dict):
        payload = flatten_strategy_payload(payload)
    return validate_payload(StrategySnapshot, payload, event="strategy_data")


def parse_heartbeat(payload: Any) -> HeartbeatPayload:
    return validate_payload(HeartbeatPayload, payload, event="heartbeat")


def parse_connection_status(payload: Any) -> ConnectionStatusPayload:
    return validate_payload(ConnectionStatusPayload, payload, event="connection_status")


def parse_system_alert(payload: Any) -> SystemAlertPayload:
    return validate_payload(SystemAlertPayload, payload, event="system_alert")


def parse_settings(payload: Any) -> EngineSettings:
    return validate_payload(EngineSettings, payload, event="current_settings")
