"""Timed commit of accepted snapshots.

Each accepted candidate restarts a two-stage timer: a settle delay, then a
trailing debounce.  Only when both elapse without a newer candidate does
the pending candidate commit.  There is never more than one candidate in
flight; a newer one silently supersedes the older.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping

from stratlive._constants import DEBOUNCE_DELAY_SECONDS, SETTLE_DELAY_SECONDS
from stratlive._timers import Timer
from stratlive.models.snapshot import Scalar

_logger = logging.getLogger(__name__)


class SmoothingPipeline:
    def __init__(
        self,
        on_commit: Callable[[Mapping[str, Scalar]], None],
        *,
        settle_delay: float = SETTLE_DELAY_SECONDS,
        debounce_delay: float = DEBOUNCE_DELAY_SECONDS,
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if settle_delay < 0 or debounce_delay < 0:
            raise ValueError("smoothing delays must be non-negative")
        self._on_commit = on_commit
        self._settle_delay = settle_delay
        self._debounce_delay = debounce_delay
        self._timer = Timer(name="smoothing", loop=loop)
        self._pending: Mapping[str, Scalar] | None = None
        self._settled = False

    @property
    def pending(self) -> Mapping[str, Scalar] | None:
        """The candidate waiting to commit, if any."""
        return self._pending

    @property
    def settled(self) -> bool:
        """Whether the pending candidate is past the settle stage."""
        return self._settled

    def accept(self, candidate: Mapping[str, Scalar]) -> None:
        """Make *candidate* the single pending commit and restart both stages."""
        if self._timer.closed:
            _logger.debug("Smoothing pipeline closed; dropping candidate")
            return
        superseded = self._pending is not None
        self._pending = candidate
        self._settled = False
        self._timer.arm(self._settle_delay, self._on_settled)
        if superseded:
            _logger.debug("Pending candidate superseded")

    def flush(self) -> bool:
        """Commit the pending candidate now. Returns ``False`` if none."""
        self._timer.cancel()
        return self._commit()

    def cancel(self) -> None:
        """Drop the pending candidate without committing it."""
        self._timer.cancel()
        self._pending = None
        self._settled = False

    def close(self) -> None:
        self.cancel()
        self._timer.close()

    def _on_settled(self) -> None:
        self._settled = True
        self._timer.arm(self._debounce_delay, self._commit)

    def _commit(self) -> bool:
        candidate = self._pending
        self._pending = None
        self._settled = False
        if candidate is None:
            return False
        self._on_commit(candidate)
        return True
