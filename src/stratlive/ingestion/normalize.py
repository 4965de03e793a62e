"""Normalization helpers applied before schema validation."""

from __future__ import annotations

import json
from typing import Any

# The engine sometimes wraps state under these keys instead of sending it flat.
_NESTED_SECTIONS: tuple[str, ...] = ("marketData", "strategyStatus", "riskManagement")


def flatten_strategy_payload(payload: dict[str, Any]) -> dict[str, Any]:
    """Lift known nested sections into one flat dict.

    Top-level keys win over nested ones; later sections do not overwrite
    earlier ones.  Section keys whose value is not an object are dropped.
    """
    flat = {key: value for key, value in payload.items() if key not in _NESTED_SECTIONS}
    for section in _NESTED_SECTIONS:
        nested = payload.get(section)
        if not isinstance(nested, dict):
            continue
        for key, value in nested.items():
            flat.setdefault(key, value)
    return flat


def decode_json_object(payload: bytes | str) -> dict[str, Any]:
    """Decode a wire payload into a JSON object.

    Raises :class:`ValueError` when the payload is not UTF-8 JSON or not an object.
    """
    text = payload.decode("utf-8") if isinstance(payload, bytes) else payload
    parsed = json.loads(text) if text.strip() else {}
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed
