"""Outbound command payloads and their results."""

from __future__ import annotations

import enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class CommandName(enum.StrEnum):
    """Command topics understood by the engine."""

    MANUAL_TRADE = "manual_trade"
    UPDATE_SETTINGS = "update_settings"
    GET_SETTINGS = "get_settings"


class TradeAction(enum.StrEnum):
    """``manual_trade`` ``command`` values."""

    GO_LONG = "go_long"
    GO_SHORT = "go_short"
    CLOSE_POSITION = "close_position"


class ManualTradeParams(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")

    command: TradeAction
    quantity: int = Field(default=1, ge=1)
    instrument: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class EnsembleWeights(BaseModel):
    model_config = ConfigDict(frozen=True, extra="allow", populate_by_name=True, alias_generator=to_camel)

    lstm: float | None = None
    transformer: float | None = None
    random_forest: float | None = None
    xgboost: float | None = None
    dqn: float | None = None


class EngineSettings(BaseModel):
    """Engine settings, as sent by ``update_settings`` and echoed by ``current_settings``.

    The engine speaks camelCase on this channel; fields are snake_case here
    and serialised with :meth:`to_payload`.  Unset fields are not sent, so
    a partial update leaves the engine's other settings alone.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="allow",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    min_confidence: float | None = None
    strong_confidence: float | None = None
    min_strength: float | None = None
    auto_trading_enabled: bool | None = None
    ensemble_weights: EnsembleWeights | None = None
    trailing_confidence_threshold: float | None = None
    trailing_update_interval: float | None = None
    max_stop_movement_atr: float | None = None
    min_profit_target: float | None = None
    max_position_size: float | None = None
    max_daily_risk: float | None = None
    volatility_adjustment: float | None = None
    pattern_confidence_threshold: float | None = None
    regime_change_threshold: float | None = None
    momentum_threshold: float | None = None
    breakout_strength: float | None = None
    trading_disabled: bool | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


_ENVELOPE_KEYS: frozenset[str] = frozenset({"command", "request_id", "reply_to"})


class CommandResult(BaseModel):
    """Outcome of one command round-trip.

    Accepts both reply shapes the engine produces: ``{"success": bool, ...}``
    for trade commands and a bare settings object (or ``{"error": ...}``) for
    settings commands.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    command: str = ""
    success: bool
    error: str | None = None
    data: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def _normalize_shapes(cls, values: Any) -> Any:
        if not isinstance(values, dict):
            return values

        body = {key: value for key, value in values.items() if key not in _ENVELOPE_KEYS}
        error = body.pop("error", None)
        success = body.pop("success", None)
        if success is None:
            success = error is None
        merged: dict[str, Any] = {
            "success": success if error is None else False,
            "error": str(error) if error is not None else None,
            # An explicit data member wins; otherwise the rest of the body is the data.
            "data": body["data"] if "data" in body else body,
        }
        if "command" in values:
            merged["command"] = values["command"]
        return merged

    @classmethod
    def failed(cls, command: str, error: str) -> CommandResult:
        return cls(command=command, success=False, error=error, data={})
