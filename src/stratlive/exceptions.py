"""Custom exception hierarchy for stratlive.

None of these escape :class:`stratlive.client.DashboardClient`; the client
turns them into health transitions, notifications and failed command results.
"""

from __future__ import annotations

from collections.abc import Sequence


class StratLiveError(Exception):
    """Base exception for all stratlive errors."""


class StratLiveConfigError(StratLiveError):
    """Invalid or missing configuration."""


class StratLiveTransportError(StratLiveError):
    """Connection-level failure (broker drop, HTTP error, invalid JSON)."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        endpoint: str = "",
    ) -> None:
        self.status_code = status_code
        self.endpoint = endpoint
        super().__init__(message)


class StaleFeedError(StratLiveError):
    """No fresh data within a staleness threshold while the transport is open."""

    def __init__(self, message: str, *, age_seconds: float) -> None:
        self.age_seconds = age_seconds
        super().__init__(message)


class MalformedSnapshotError(StratLiveError):
    """Inbound payload failed schema validation at ingress.

    The whole payload is dropped; ``fields`` names the offending keys when
    the validator could attribute the failure to specific fields.
    """

    def __init__(self, message: str, *, event: str = "", fields: Sequence[str] = ()) -> None:
        self.event = event
        self.fields = tuple(fields)
        super().__init__(message)


class CommandDispatchError(StratLiveError):
    """Outbound command was rejected by the engine or timed out."""

    def __init__(self, message: str, *, command: str = "", remote_error: str | None = None) -> None:
        self.command = command
        self.remote_error = remote_error
        super().__init__(message)
