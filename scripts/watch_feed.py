#!/usr/bin/env python3
"""Watch a live strategy feed from the terminal.

Connects with ``DashboardConfig.from_env()`` (``STRATLIVE_*`` variables)
and prints every committed state, health change and notification until
interrupted.  Useful to check tolerance and staleness settings against a
real engine before wiring up a dashboard.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import signal
import sys
import time
from dataclasses import dataclass
from pathlib import Path

# Allow running from repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from stratlive import (  # noqa: E402
    DashboardClient,
    DashboardConfig,
    HealthChanged,
    HeartbeatReceived,
    NotificationsChanged,
    StateCommitted,
    StratLiveConfigError,
)
from stratlive.state.events import DashboardEvent  # noqa: E402

_LOG = logging.getLogger("watch_feed")


@dataclass
class WatchStats:
    started_at: float
    commits: int = 0
    health_changes: int = 0
    heartbeats: int = 0
    last_commit_at: float | None = None


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Print reconciled strategy state and connection health.",
    )
    parser.add_argument(
        "--duration",
        type=int,
        default=0,
        help="Maximum runtime in seconds (0 = run until Ctrl+C).",
    )
    parser.add_argument(
        "--fields",
        default="",
        help="Comma-separated state fields to print (default: all).",
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Pretty-print committed state as JSON.",
    )
    parser.add_argument(
        "--no-bootstrap",
        action="store_true",
        help="Skip the HTTP state fetch on start.",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logs.",
    )
    return parser.parse_args()


def _print_summary(stats: WatchStats) -> None:
    runtime = time.time() - stats.started_at
    print("[watch] Summary")
    print(f"[watch]   runtime_s      : {runtime:.1f}")
    print(f"[watch]   commits        : {stats.commits}")
    print(f"[watch]   health_changes : {stats.health_changes}")
    print(f"[watch]   heartbeats     : {stats.heartbeats}")


async def _watch(config: DashboardConfig, args: argparse.Namespace, stats: WatchStats) -> None:
    fields = [name.strip() for name in args.fields.split(",") if name.strip()]
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    def on_event(event: DashboardEvent) -> None:
        if isinstance(event, StateCommitted):
            stats.commits += 1
            stats.last_commit_at = time.time()
            state = event.state
            values = {name: state[name] for name in fields if name in state} if fields else dict(state)
            indent = 2 if args.json else None
            print(f"[watch] commit v{state.version}: {json.dumps(values, indent=indent, sort_keys=True)}")
        elif isinstance(event, HealthChanged):
            stats.health_changes += 1
            print(f"[watch] health {event.previous} -> {event.current}")
        elif isinstance(event, HeartbeatReceived):
            stats.heartbeats += 1
            _LOG.debug("heartbeat remote_active=%s", event.record.remote_active)
        elif isinstance(event, NotificationsChanged) and event.notifications:
            newest = event.notifications[-1]
            print(f"[watch] {newest.severity.upper()}: {newest.message}")

    async with DashboardClient(config) as client:
        client.subscribe(on_event)
        print(f"[watch] Connecting to {config.broker_host}:{config.broker_port} prefix={config.topic_prefix}")
        try:
            timeout = args.duration if args.duration > 0 else None
            await asyncio.wait_for(stop.wait(), timeout)
        except TimeoutError:
            print(f"[watch] Reached --duration={args.duration}s, stopping.")


def _main() -> int:
    args = _parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    overrides = {"bootstrap_enabled": False} if args.no_bootstrap else {}
    try:
        config = DashboardConfig.from_env(**overrides)
    except StratLiveConfigError as exc:
        print(f"[watch] Invalid configuration: {exc}", file=sys.stderr)
        return 2

    stats = WatchStats(started_at=time.time())
    asyncio.run(_watch(config, args, stats))
    _print_summary(stats)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
