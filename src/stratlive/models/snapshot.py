"""Strategy snapshot schema and per-field tolerance classes."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from typing import Any, Literal

from pydantic import AliasChoices, Field, field_validator

from stratlive._constants import SNAPSHOT_SCHEMA_VERSION
from stratlive.models._base import EngineTimestamp, Flag, Number, StratBaseModel, Text

Scalar = float | str | bool
"""A single snapshot field value."""

Snapshot = Mapping[str, Scalar]
"""A (possibly partial) mapping from field name to value."""

PositionSide = Literal["Long", "Short", "Flat"]

# Envelope keys that describe the message rather than the strategy state.
_ENVELOPE_FIELDS: frozenset[str] = frozenset({"raw", "schema_version", "sent_at"})


class FieldClass(enum.StrEnum):
    """Tolerance category of a snapshot field."""

    CRITICAL = "critical"
    REGULAR = "regular"
    HIGH_TOLERANCE = "high_tolerance"


#: Fields that must never be smoothed away.
CRITICAL_FIELDS: frozenset[str] = frozenset(
    {
        "instrument",
        "position",
        "position_size",
        "realized_pnl",
        "daily_pnl",
        "entry_price",
        "stop_loss",
        "target1",
        "target2",
        "auto_trading_enabled",
        "trading_disabled",
    }
)

#: Probabilistic model outputs whose small oscillations are noise.
HIGH_TOLERANCE_FIELDS: frozenset[str] = frozenset(
    {
        "signal_probability_long",
        "signal_probability_short",
        "ml_confidence_level",
        "ml_long_probability",
        "ml_short_probability",
        "long_entry_quality",
        "short_entry_quality",
    }
)

DEFAULT_FIELD_CLASSES: dict[str, FieldClass] = {
    **{name: FieldClass.CRITICAL for name in CRITICAL_FIELDS},
    **{name: FieldClass.HIGH_TOLERANCE for name in HIGH_TOLERANCE_FIELDS},
}
"""Static field-class table; fields not listed are ``REGULAR``."""


class StrategySnapshot(StratBaseModel):
    """One validated ``strategy_data`` push.

    Every state field is optional: a snapshot carries only the fields the
    engine sent.  :meth:`state_fields` returns exactly those, which is what the
    change detector and the state composer operate on.
    """

    schema_version: int = SNAPSHOT_SCHEMA_VERSION
    sent_at: EngineTimestamp = Field(default=None, validation_alias=AliasChoices("sent_at", "timestamp"))

    # Identity
    instrument: Text | None = None
    strategy_name: Text | None = None
    strategy_state: Text | None = Field(default=None, validation_alias=AliasChoices("strategy_state", "state"))

    # Position
    position: PositionSide | None = None
    position_size: Number | None = None
    entry_price: Number | None = None
    stop_loss: Number | None = None
    target1: Number | None = None
    target2: Number | None = None
    unrealized_pnl: Number | None = Field(default=None, validation_alias=AliasChoices("unrealized_pnl", "pnl"))
    realized_pnl: Number | None = None
    daily_pnl: Number | None = None

    # Market
    price: Number | None = Field(default=None, validation_alias=AliasChoices("price", "current_price"))
    bid: Number | None = None
    ask: Number | None = None
    spread: Number | None = None
    volume: Number | None = None
    rsi: Number | None = None
    atr: Number | None = None
    adx: Number | None = None
    ema_alignment_score: Number | None = None
    market_regime: Text | None = None
    volatility_state: Text | None = None
    htf_bias: Text | None = None

    # Signals / model output
    signal_strength: Number | None = None
    signal_probability_long: Number | None = None
    signal_probability_short: Number | None = None
    ml_confidence_level: Number | None = None
    ml_long_probability: Number | None = None
    ml_short_probability: Number | None = None
    long_entry_quality: Number | None = None
    short_entry_quality: Number | None = None
    next_long_entry_level: Number | None = None
    next_short_entry_level: Number | None = None

    # Risk / automation
    auto_trading_enabled: Flag | None = None
    trading_disabled: Flag | None = None
    consecutive_losses: Number | None = None
    smart_trailing_active: Flag | None = None
    current_smart_stop: Number | None = None

    @field_validator("schema_version", mode="before")
    @classmethod
    def _known_version(cls, value: Any) -> Any:
        if isinstance(value, bool) or value != SNAPSHOT_SCHEMA_VERSION:
            raise ValueError(f"unsupported schema_version {value!r}")
        return value

    @field_validator("rsi")
    @classmethod
    def _rsi_range(cls, value: float | None) -> float | None:
        if value is not None and not 0.0 <= value <= 100.0:
            raise ValueError("rsi must be between 0 and 100")
        return value

    @field_validator(*sorted(HIGH_TOLERANCE_FIELDS))
    @classmethod
    def _probability_range(cls, value: float | None) -> float | None:
        if value is not None and not 0.0 <= value <= 1.0:
            raise ValueError("probability must be between 0 and 1")
        return value

    @field_validator("position_size", "volume", "price", "bid", "ask", "spread", "consecutive_losses")
    @classmethod
    def _non_negative(cls, value: float | None) -> float | None:
        if value is not None and value < 0:
            raise ValueError("must be non-negative")
        return value

    def state_fields(self) -> dict[str, Scalar]:
        """Return the state fields present in this push, keyed by field name."""
        present = self.model_fields_set - _ENVELOPE_FIELDS
        return {name: getattr(self, name) for name in sorted(present)}


def field_class_for(name: str, overrides: Mapping[str, FieldClass] | None = None) -> FieldClass:
    """Look up the tolerance class of *name* (``REGULAR`` when unlisted)."""
    if overrides and name in overrides:
        return overrides[name]
    return DEFAULT_FIELD_CLASSES.get(name, FieldClass.REGULAR)
