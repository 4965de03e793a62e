"""Base model and strict scalar types for engine payloads.

Every inbound payload model inherits from :class:`StratBaseModel` which
provides:

* frozen instances, so a validated payload is immutable once received.
* A ``model_validator(mode="before")`` that drops keys whose value is
  ``None`` so they count as *absent* rather than as an explicit value.
* A ``raw`` dict that captures the original payload.

The ``Number``/``Flag``/``Text`` annotated types reject values of the wrong
JSON type instead of coercing them.  ``"100"`` for a price, or ``true`` for
a size, is a malformed payload, not a value to be guessed at.
"""

from __future__ import annotations

import math
from datetime import UTC, datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

# Threshold to distinguish seconds from milliseconds.
_MS_THRESHOLD = 1_000_000_000_000


def _strict_number(value: Any) -> Any:
    # bool is an int subclass; a flag is never a valid number.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"expected a number, got {type(value).__name__}")
    result = float(value)
    if not math.isfinite(result):
        raise ValueError("number must be finite")
    return result


def _strict_flag(value: Any) -> Any:
    if not isinstance(value, bool):
        raise ValueError(f"expected a boolean, got {type(value).__name__}")
    return value


def _strict_text(value: Any) -> Any:
    if not isinstance(value, str):
        raise ValueError(f"expected a string, got {type(value).__name__}")
    return value


def parse_engine_timestamp(value: Any) -> datetime | None:
    """Convert an engine timestamp to a UTC datetime.

    The engine sends ISO-8601 strings; epoch seconds or milliseconds are
    accepted as well.  Returns ``None`` for ``None``.
    """
    if value is None or isinstance(value, datetime):
        return value
    if isinstance(value, bool):
        raise ValueError("expected a timestamp, got bool")
    if isinstance(value, (int, float)):
        ts = float(value)
        if ts >= _MS_THRESHOLD:
            ts /= 1000.0
        try:
            return datetime.fromtimestamp(ts, tz=UTC)
        except (OverflowError, OSError) as exc:
            raise ValueError(f"timestamp out of range: {value!r}") from exc
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=UTC)
    raise ValueError(f"expected a timestamp, got {type(value).__name__}")


Number = Annotated[float, BeforeValidator(_strict_number)]
"""Finite int/float; strings, bools and NaN are rejected."""

Flag = Annotated[bool, BeforeValidator(_strict_flag)]
Text = Annotated[str, BeforeValidator(_strict_text)]

EngineTimestamp = Annotated[datetime | None, BeforeValidator(parse_engine_timestamp)]
"""Annotated type that coerces ISO strings or epoch values to UTC datetimes."""


class StratBaseModel(BaseModel):
    """Base for engine payload models."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    raw: dict[str, Any] = Field(default_factory=dict, exclude=True)
    """Original payload dict."""

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, values: Any) -> Any:
        """Drop ``None`` values and stash the raw payload."""
        if not isinstance(values, dict):
            return values
        cleaned = {key: value for key, value in values.items() if value is not None}
        # Only auto-stash raw when the caller did not pass one explicitly.
        if "raw" not in values:
            cleaned["raw"] = dict(values)
        return cleaned
