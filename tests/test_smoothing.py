from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing import Any

import pytest

from stratlive.state.smoothing import SmoothingPipeline


@pytest.mark.asyncio
async def test_burst_within_window_commits_only_the_last_candidate() -> None:
    commits: list[Mapping[str, Any]] = []
    pipeline = SmoothingPipeline(commits.append, settle_delay=0.2, debounce_delay=0.05)

    for index in range(5):
        pipeline.accept({"price": float(index)})
        await asyncio.sleep(0.01)

    assert commits == []
    assert pipeline.pending == {"price": 4.0}

    await asyncio.sleep(0.5)

    assert commits == [{"price": 4.0}]
    assert pipeline.pending is None


@pytest.mark.asyncio
async def test_isolated_update_waits_for_settle_then_commits() -> None:
    commits: list[Mapping[str, Any]] = []
    pipeline = SmoothingPipeline(commits.append, settle_delay=0.1, debounce_delay=0.05)

    pipeline.accept({"position": "Long"})
    await asyncio.sleep(0.05)
    assert commits == []
    assert pipeline.settled is False

    await asyncio.sleep(0.3)
    assert commits == [{"position": "Long"}]


@pytest.mark.asyncio
async def test_new_candidate_during_debounce_restarts_both_stages() -> None:
    commits: list[Mapping[str, Any]] = []
    pipeline = SmoothingPipeline(commits.append, settle_delay=0.05, debounce_delay=0.2)

    pipeline.accept({"price": 1.0})
    await asyncio.sleep(0.1)
    assert pipeline.settled is True

    pipeline.accept({"price": 2.0})
    assert pipeline.settled is False
    await asyncio.sleep(0.1)
    assert commits == []

    await asyncio.sleep(0.4)
    assert commits == [{"price": 2.0}]


@pytest.mark.asyncio
async def test_flush_commits_pending_immediately() -> None:
    commits: list[Mapping[str, Any]] = []
    pipeline = SmoothingPipeline(commits.append, settle_delay=10.0, debounce_delay=10.0)

    pipeline.accept({"price": 1.0})
    assert pipeline.flush() is True
    assert commits == [{"price": 1.0}]
    assert pipeline.flush() is False


@pytest.mark.asyncio
async def test_close_drops_pending_and_ignores_new_candidates() -> None:
    commits: list[Mapping[str, Any]] = []
    pipeline = SmoothingPipeline(commits.append, settle_delay=0.02, debounce_delay=0.01)

    pipeline.accept({"price": 1.0})
    pipeline.close()
    pipeline.accept({"price": 2.0})
    await asyncio.sleep(0.1)

    assert commits == []
    assert pipeline.pending is None


def test_negative_delays_are_rejected() -> None:
    with pytest.raises(ValueError):
        SmoothingPipeline(lambda _candidate: None, settle_delay=-1.0)
