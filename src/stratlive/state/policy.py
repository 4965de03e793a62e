"""Change-significance policy.

Decides whether an incoming snapshot differs enough from the applied state
to be worth a redraw.  Tolerance depends on the field's class:

- ``CRITICAL``: any difference counts, including presence and type.
- ``REGULAR``: numeric deltas must exceed ``regular_tolerance``.
- ``HIGH_TOLERANCE``: numeric deltas must exceed ``high_tolerance``.

Non-numeric values of non-critical fields compare by strict equality.
Fields present in the applied state but absent from the incoming snapshot
are treated as unchanged; they never trigger on their own.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from stratlive._constants import HIGH_TOLERANCE, REGULAR_TOLERANCE
from stratlive.models.snapshot import FieldClass, Snapshot, field_class_for

_logger = logging.getLogger(__name__)

_MISSING = object()


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _strictly_differs(new: Any, old: Any) -> bool:
    if old is _MISSING:
        return True
    # Numbers compare by value whatever their type, so 2 and 2.0 are equal
    # even when a caller bypasses ingress coercion.
    if _is_number(new) and _is_number(old):
        return bool(new != old)
    return type(new) is not type(old) or new != old


class ChangeDetector:
    """Per-field tolerance comparison between snapshots."""

    def __init__(
        self,
        *,
        regular_tolerance: float = REGULAR_TOLERANCE,
        high_tolerance: float = HIGH_TOLERANCE,
        field_classes: Mapping[str, FieldClass] | None = None,
    ) -> None:
        self.regular_tolerance = regular_tolerance
        self.high_tolerance = high_tolerance
        self._field_classes = dict(field_classes or {})

    def field_class(self, name: str) -> FieldClass:
        return field_class_for(name, self._field_classes)

    def tolerance_for(self, field_class: FieldClass) -> float:
        if field_class == FieldClass.HIGH_TOLERANCE:
            return self.high_tolerance
        if field_class == FieldClass.REGULAR:
            return self.regular_tolerance
        return 0.0

    def first_significant_change(self, incoming: Snapshot, last_applied: Snapshot) -> str | None:
        """Return the name of the first field that changed meaningfully, if any."""
        for name, new in incoming.items():
            old = last_applied.get(name, _MISSING)
            field_class = self.field_class(name)

            if field_class == FieldClass.CRITICAL:
                if _strictly_differs(new, old):
                    return name
                continue

            if old is not _MISSING and _is_number(new) and _is_number(old):
                if abs(float(new) - float(old)) > self.tolerance_for(field_class):
                    return name
                continue

            if _strictly_differs(new, old):
                return name
        return None

    def should_apply(self, incoming: Snapshot, last_applied: Snapshot) -> bool:
        """Whether *incoming* should replace *last_applied*."""
        changed = self.first_significant_change(incoming, last_applied)
        if changed is None:
            _logger.debug("Snapshot within tolerance; discarding (%d fields)", len(incoming))
            return False
        _logger.debug("Snapshot accepted; first significant field=%s", changed)
        return True
