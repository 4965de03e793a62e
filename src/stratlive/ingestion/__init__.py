"""Ingestion layer.

Validates raw engine payloads at the ingress boundary and turns them into
typed models.  Nothing past this layer ever sees an unvalidated payload.
"""

from stratlive.ingestion.normalize import decode_json_object, flatten_strategy_payload
from stratlive.ingestion.payloads import (
    parse_connection_status,
    parse_heartbeat,
    parse_settings,
    parse_strategy_data,
    parse_system_alert,
    validate_payload,
)

__all__ = [
    "decode_json_object",
    "flatten_strategy_payload",
    "parse_connection_status",
    "parse_heartbeat",
    "parse_settings",
    "parse_strategy_data",
    "parse_system_alert",
    "validate_payload",
]
