"""Transient notification models."""

from __future__ import annotations

import enum
import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from stratlive.models._base import StratBaseModel, Text


class Severity(enum.StrEnum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


class Notification(BaseModel):
    """A self-expiring alert shown by the rendering layer."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    message: str
    severity: Severity = Severity.INFO
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


# Engine alert levels → local severity.
_ALERT_SEVERITY: dict[str, Severity] = {
    "critical": Severity.ERROR,
    "high": Severity.ERROR,
    "medium": Severity.WARNING,
    "low": Severity.INFO,
}


class SystemAlertPayload(StratBaseModel):
    """Inbound ``system_alert`` event pushed by the engine."""

    id: Text | None = None
    type: Text | None = None
    severity: Text = "low"
    message: Text

    @field_validator("severity")
    @classmethod
    def _normalize_severity(cls, value: str) -> str:
        return value.strip().lower()

    @property
    def local_severity(self) -> Severity:
        return _ALERT_SEVERITY.get(self.severity, Severity.INFO)
