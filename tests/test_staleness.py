from __future__ import annotations

import asyncio

import pytest

from stratlive.exceptions import StaleFeedError
from stratlive.models.health import ConnectionHealth, HeartbeatRecord
from stratlive.models.notification import Notification, Severity
from stratlive.state.staleness import StalenessMonitor


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _Sink:
    def __init__(self) -> None:
        self.overlays: list[ConnectionHealth | None] = []
        self.posted: list[Notification] = []
        self.history: list[tuple[str, Severity]] = []
        self.transport_open = True

    @property
    def notices(self) -> list[tuple[str, Severity]]:
        return [(item.message, item.severity) for item in self.posted]

    def set_overlay(self, overlay: ConnectionHealth | None) -> None:
        self.overlays.append(overlay)

    def notify(self, message: str, severity: Severity) -> Notification:
        notification = Notification(message=message, severity=severity)
        self.posted.append(notification)
        self.history.append((message, severity))
        return notification

    def dismiss(self, notification_id: str) -> bool:
        kept = [item for item in self.posted if item.id != notification_id]
        removed = len(kept) != len(self.posted)
        self.posted = kept
        return removed


def _monitor(clock: _Clock, sink: _Sink, **kwargs: float) -> StalenessMonitor:
    monitor = StalenessMonitor(
        set_overlay=sink.set_overlay,
        notify=sink.notify,
        dismiss=sink.dismiss,
        is_transport_open=lambda: sink.transport_open,
        clock=clock,
        **kwargs,
    )
    monitor.reset()
    return monitor


def test_silent_feed_for_130_seconds_is_inactive_with_one_notification() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)

    clock.advance(130)
    assert monitor.check() == ConnectionHealth.INACTIVE
    clock.advance(60)
    monitor.check()
    clock.advance(60)
    monitor.check()

    assert sink.overlays == [ConnectionHealth.INACTIVE]
    assert len(sink.notices) == 1
    assert sink.notices[0][1] == Severity.ERROR


def test_silent_feed_checked_every_minute_leaves_one_stale_notification() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)

    clock.advance(60)
    assert monitor.check() == ConnectionHealth.DEGRADED
    clock.advance(60)
    assert monitor.check() == ConnectionHealth.INACTIVE
    clock.advance(10)
    monitor.check()

    assert monitor.level == ConnectionHealth.INACTIVE
    assert sink.overlays == [ConnectionHealth.DEGRADED, ConnectionHealth.INACTIVE]
    assert len(sink.notices) == 1
    assert sink.notices[0] == ("No data from strategy for 120s; feed inactive", Severity.ERROR)


def test_new_stale_episode_keeps_notice_from_previous_episode() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)
    clock.advance(60)
    monitor.check()
    monitor.mark_fresh()

    clock.advance(120)
    monitor.check()

    assert [severity for _message, severity in sink.notices] == [Severity.WARNING, Severity.ERROR]


def test_escalation_notifies_once_per_level() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)

    for _ in range(4):
        clock.advance(60)
        monitor.check()

    assert sink.overlays == [ConnectionHealth.DEGRADED, ConnectionHealth.INACTIVE]
    assert [severity for _message, severity in sink.history] == [Severity.WARNING, Severity.ERROR]
    assert [severity for _message, severity in sink.notices] == [Severity.ERROR]


def test_fresh_feed_raises_nothing() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)

    clock.advance(59.9)

    assert monitor.check() is None
    assert sink.overlays == []
    assert sink.notices == []


def test_fresh_data_clears_overlay_immediately() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)
    clock.advance(70)
    monitor.check()

    monitor.mark_fresh()

    assert monitor.level is None
    assert sink.overlays == [ConnectionHealth.DEGRADED, None]
    assert monitor.age() == 0.0


def test_active_heartbeat_resets_counters() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)
    clock.advance(100)
    monitor.check()

    monitor.note_heartbeat(HeartbeatRecord(received_at=clock(), remote_active=True))
    clock.advance(30)

    assert monitor.check() is None
    assert sink.overlays == [ConnectionHealth.DEGRADED, None]


def test_inactive_heartbeat_does_not_reset_counters() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)
    clock.advance(100)

    monitor.note_heartbeat(HeartbeatRecord(received_at=clock(), remote_active=False))
    clock.advance(30)

    assert monitor.check() == ConnectionHealth.INACTIVE


def test_check_is_skipped_while_transport_closed() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)
    sink.transport_open = False
    clock.advance(500)

    assert monitor.check() is None
    assert sink.notices == []


def test_evaluate_raises_stale_feed_error_with_age() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink)
    clock.advance(75)

    with pytest.raises(StaleFeedError) as excinfo:
        monitor._evaluate()  # type: ignore[attr-defined]

    assert excinfo.value.age_seconds == pytest.approx(75)


def test_invalid_thresholds_are_rejected() -> None:
    with pytest.raises(ValueError):
        StalenessMonitor(set_overlay=lambda _overlay: None, soft_threshold=120, hard_threshold=60)


@pytest.mark.asyncio
async def test_interval_timer_drives_checks_until_closed() -> None:
    clock, sink = _Clock(), _Sink()
    monitor = _monitor(clock, sink, check_interval=0.02)
    monitor.start()
    clock.advance(200)

    await asyncio.sleep(0.15)
    assert monitor.running is True
    monitor.close()

    assert monitor.running is False
    assert monitor.level == ConnectionHealth.INACTIVE
    assert len(sink.notices) == 1
