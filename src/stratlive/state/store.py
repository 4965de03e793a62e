"""Authoritative applied-state holder.

This is the only component allowed to replace the presented snapshot.
Replacement is a single reference swap of an immutable :class:`AppliedState`,
so readers always see values from exactly one commit.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from stratlive.models.snapshot import Scalar

_logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AppliedState(Mapping[str, Scalar]):
    """The fully-committed snapshot currently presented.

    ``committed_at`` is on the store clock (monotonic by default) and is
    ``None`` until the first commit.
    """

    data: Mapping[str, Scalar] = field(default_factory=lambda: MappingProxyType({}))
    version: int = 0
    committed_at: float | None = None

    def __getitem__(self, key: str) -> Scalar:
        return self.data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self.data)

    def __len__(self) -> int:
        return len(self.data)

    def compose(self, update: Mapping[str, Scalar]) -> dict[str, Scalar]:
        """Return a new full value dict: these values overlaid with *update*.

        Fields absent from *update* keep their current value.
        """
        composed = dict(self.data)
        composed.update(update)
        return composed


class StateStore:
    """Holds the single :class:`AppliedState` for a session."""

    def __init__(self, *, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._state = AppliedState()

    @property
    def state(self) -> AppliedState:
        return self._state

    def replace(self, values: Mapping[str, Scalar]) -> AppliedState:
        """Swap in a new state built from *values* (copied, never merged)."""
        state = AppliedState(
            data=MappingProxyType(dict(values)),
            version=self._state.version + 1,
            committed_at=self._clock(),
        )
        self._state = state
        _logger.debug("Committed state version=%d fields=%d", state.version, len(state))
        return state
