"""Cancellable event-loop timers.

Every delay in the subsystem (settle, debounce, staleness interval,
notification expiry) goes through :class:`Timer`.  Arming a timer always
cancels its previous handle first, and ``cancel()`` is safe to call at any
time, so owners can release every timer on teardown without tracking
whether it already fired.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

_logger = logging.getLogger(__name__)


class Timer:
    """A single re-armable one-shot timer bound to an event loop."""

    def __init__(self, *, name: str = "", loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._name = name
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None
        self._closed = False

    @property
    def armed(self) -> bool:
        return self._handle is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def arm(self, delay: float, callback: Callable[..., Any], *args: Any) -> None:
        """Schedule *callback* after *delay* seconds, replacing any pending fire."""
        if self._closed:
            _logger.debug("Timer %s is closed; ignoring arm", self._name)
            return
        self.cancel()
        loop = self._loop or asyncio.get_running_loop()
        self._loop = loop
        self._handle = loop.call_later(max(0.0, delay), self._fire, callback, args)

    def cancel(self) -> bool:
        """Cancel the pending fire. Returns ``True`` if one was pending."""
        handle = self._handle
        self._handle = None
        if handle is None:
            return False
        handle.cancel()
        return True

    def close(self) -> None:
        """Cancel and refuse any further ``arm`` calls."""
        self.cancel()
        self._closed = True

    def _fire(self, callback: Callable[..., Any], args: tuple[Any, ...]) -> None:
        self._handle = None
        callback(*args)


class IntervalTimer:
    """Fires *callback* every *interval* seconds until cancelled."""

    def __init__(
        self,
        interval: float,
        callback: Callable[[], Any],
        *,
        name: str = "",
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._interval = interval
        self._callback = callback
        self._timer = Timer(name=name, loop=loop)

    @property
    def running(self) -> bool:
        return self._timer.armed

    def start(self) -> None:
        self._timer.arm(self._interval, self._tick)

    def cancel(self) -> None:
        self._timer.cancel()

    def close(self) -> None:
        self._timer.close()

    def _tick(self) -> None:
        # Re-arm first so a failing callback cannot stop the interval.
        self._timer.arm(self._interval, self._tick)
        self._callback()
