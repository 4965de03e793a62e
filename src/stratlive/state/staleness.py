"""Silent-feed detection.

The transport can report an open connection while the engine has stopped
publishing.  :class:`StalenessMonitor` compares the age of the newest fresh
signal (an applied commit, or an active heartbeat) with two thresholds and
raises a ``DEGRADED`` or ``INACTIVE`` overlay.  Each escalation notifies once
and replaces the previous stale notice, so a silent feed shows one stale
notification at a time; repeated checks at the same level stay silent.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from typing import Any

from stratlive._constants import (
    STALENESS_CHECK_INTERVAL_SECONDS,
    STALENESS_HARD_THRESHOLD_SECONDS,
    STALENESS_SOFT_THRESHOLD_SECONDS,
)
from stratlive._timers import IntervalTimer
from stratlive.exceptions import StaleFeedError
from stratlive.models.health import ConnectionHealth, HeartbeatRecord
from stratlive.models.notification import Notification, Severity

_logger = logging.getLogger(__name__)

_RANK: dict[ConnectionHealth | None, int] = {
    None: 0,
    ConnectionHealth.DEGRADED: 1,
    ConnectionHealth.INACTIVE: 2,
}


class StalenessMonitor:
    def __init__(
        self,
        *,
        set_overlay: Callable[[ConnectionHealth | None], Any],
        notify: Callable[[str, Severity], Notification | None] | None = None,
        dismiss: Callable[[str], Any] | None = None,
        is_transport_open: Callable[[], bool] = lambda: True,
        clock: Callable[[], float] = time.monotonic,
        check_interval: float = STALENESS_CHECK_INTERVAL_SECONDS,
        soft_threshold: float = STALENESS_SOFT_THRESHOLD_SECONDS,
        hard_threshold: float = STALENESS_HARD_THRESHOLD_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if soft_threshold <= 0 or hard_threshold < soft_threshold:
            raise ValueError("staleness thresholds must satisfy 0 < soft <= hard")
        self._set_overlay = set_overlay
        self._notify = notify
        self._dismiss = dismiss
        self._is_transport_open = is_transport_open
        self._clock = clock
        self._soft = soft_threshold
        self._hard = hard_threshold
        self._interval = IntervalTimer(check_interval, self.check, name="staleness", loop=loop)
        self._last_fresh_at: float | None = None
        self._level: ConnectionHealth | None = None
        self._notice: Notification | None = None

    @property
    def level(self) -> ConnectionHealth | None:
        """Current overlay raised by this monitor (``None`` when fresh)."""
        return self._level

    @property
    def last_fresh_at(self) -> float | None:
        return self._last_fresh_at

    @property
    def running(self) -> bool:
        return self._interval.running

    def age(self) -> float:
        """Seconds since the last fresh signal (or since :meth:`start`)."""
        if self._last_fresh_at is None:
            return 0.0
        return max(0.0, self._clock() - self._last_fresh_at)

    def start(self) -> None:
        if self._last_fresh_at is None:
            self._last_fresh_at = self._clock()
        self._interval.start()

    def stop(self) -> None:
        self._interval.cancel()

    def close(self) -> None:
        self._interval.close()

    def mark_fresh(self, at: float | None = None) -> None:
        """Record fresh data and clear any overlay immediately."""
        self._last_fresh_at = self._clock() if at is None else at
        self._clear()

    def note_heartbeat(self, record: HeartbeatRecord) -> None:
        """An active heartbeat resets the staleness counters."""
        if not record.remote_active:
            _logger.debug("Heartbeat reports remote inactive; counters unchanged")
            return
        self.mark_fresh(record.received_at)

    def reset(self) -> None:
        """Restart the window (used when the transport reconnects)."""
        self._last_fresh_at = self._clock()
        self._clear()

    def check(self) -> ConnectionHealth | None:
        """Evaluate staleness once and escalate the overlay if needed."""
        if not self._is_transport_open():
            return self._level
        try:
            self._evaluate()
        except StaleFeedError as exc:
            self._escalate(exc)
        return self._level

    def _evaluate(self) -> None:
        age = self.age()
        if age >= self._hard:
            raise StaleFeedError(f"No data from strategy for {age:.0f}s; feed inactive", age_seconds=age)
        if age >= self._soft:
            raise StaleFeedError(f"No data from strategy for {age:.0f}s; feed degraded", age_seconds=age)

    def _escalate(self, exc: StaleFeedError) -> None:
        level = ConnectionHealth.INACTIVE if exc.age_seconds >= self._hard else ConnectionHealth.DEGRADED
        if _RANK[level] <= _RANK[self._level]:
            return
        self._level = level
        _logger.warning("%s", exc)
        self._set_overlay(level)
        if self._notify is None:
            return
        if self._notice is not None and self._dismiss is not None:
            self._dismiss(self._notice.id)
        severity = Severity.ERROR if level == ConnectionHealth.INACTIVE else Severity.WARNING
        self._notice = self._notify(str(exc), severity)

    def _clear(self) -> None:
        self._notice = None
        if self._level is None:
            return
        _logger.info("Feed fresh again; clearing %s overlay", self._level)
        self._level = None
        self._set_overlay(None)
