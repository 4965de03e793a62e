"""Bounded, self-expiring notification queue.

Two independent removal paths exist: eviction of the oldest entry when the
queue is full, and per-entry expiry after a fixed lifetime.  Both go
through :meth:`NotificationQueue.remove`, which is idempotent, so an entry
evicted before its timer fires (or expired before eviction) is removed once.
"""

from __future__ import annotations

import asyncio
import logging
from collections import OrderedDict
from collections.abc import Callable

from stratlive._constants import NOTIFICATION_CAPACITY, NOTIFICATION_LIFETIME_SECONDS
from stratlive._timers import Timer
from stratlive.models.notification import Notification, Severity

_logger = logging.getLogger(__name__)


class NotificationQueue:
    """FIFO of at most ``capacity`` live notifications."""

    def __init__(
        self,
        *,
        capacity: int = NOTIFICATION_CAPACITY,
        lifetime: float = NOTIFICATION_LIFETIME_SECONDS,
        on_change: Callable[[tuple[Notification, ...]], None] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if capacity < 1:
            raise ValueError("capacity must be at least 1")
        if lifetime <= 0:
            raise ValueError("lifetime must be positive")
        self._capacity = capacity
        self._lifetime = lifetime
        self._on_change = on_change
        self._loop = loop
        self._entries: OrderedDict[str, tuple[Notification, Timer]] = OrderedDict()
        self._closed = False

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def items(self) -> tuple[Notification, ...]:
        """Live notifications, oldest first."""
        return tuple(notification for notification, _timer in self._entries.values())

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, notification_id: object) -> bool:
        return notification_id in self._entries

    def enqueue(self, message: str, severity: Severity = Severity.INFO) -> Notification:
        """Append a notification, evicting the oldest one when full."""
        notification = Notification(message=message, severity=severity)
        if self._closed:
            _logger.debug("Notification queue closed; dropping %r", message)
            return notification

        while len(self._entries) >= self._capacity:
            oldest_id = next(iter(self._entries))
            _logger.debug("Evicting notification id=%s", oldest_id)
            self._discard(oldest_id)

        timer = Timer(name=f"notification-{notification.id}", loop=self._loop)
        self._entries[notification.id] = (notification, timer)
        timer.arm(self._lifetime, self._expire, notification.id)
        _logger.debug("Notification queued id=%s severity=%s", notification.id, severity)
        self._changed()
        return notification

    def remove(self, notification_id: str) -> bool:
        """Remove one notification. Returns ``False`` if it was already gone."""
        if not self._discard(notification_id):
            return False
        self._changed()
        return True

    def clear(self) -> None:
        if not self._entries:
            return
        for notification_id in list(self._entries):
            self._discard(notification_id)
        self._changed()

    def close(self) -> None:
        """Cancel every expiry timer and stop accepting notifications."""
        for _notification, timer in self._entries.values():
            timer.close()
        self._entries.clear()
        self._closed = True

    def _expire(self, notification_id: str) -> None:
        if self.remove(notification_id):
            _logger.debug("Notification expired id=%s", notification_id)

    def _discard(self, notification_id: str) -> bool:
        entry = self._entries.pop(notification_id, None)
        if entry is None:
            return False
        entry[1].cancel()
        return True

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change(self.items)
