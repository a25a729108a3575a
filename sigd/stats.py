"""Statistics tracking and reporting for the signaling hub."""

from __future__ import annotations

import logging
import time
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .service import HubService


class StatsManager:
    """
    Lifetime counters for the hub plus a one-line report.

    Counters only ever increase; live gauges (sessions, rooms) are read
    from the registry and directory when the report is built.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("sigd.stats")

        self.started_monotonic: float | None = None

        self._counters: dict[str, int] = {
            "connects": 0,
            "disconnects": 0,
            "frames_in": 0,
            "frames_bad": 0,
            "bytes_in": 0,
            "bytes_out": 0,
            "joins": 0,
            "leaves": 0,
            "signals_forwarded": 0,
            "signals_dropped": 0,
            "ignored": 0,
            "send_failures": 0,
        }

    def set_start_time(self) -> None:
        self.started_monotonic = time.monotonic()

    def inc(self, key: str, delta: int = 1) -> None:
        with self.hub._state_lock:
            self._counters[key] = int(self._counters.get(key, 0)) + int(delta)

    def get(self, key: str) -> int:
        with self.hub._state_lock:
            return int(self._counters.get(key, 0))

    def snapshot(self) -> dict[str, int]:
        with self.hub._state_lock:
            return dict(self._counters)

    def format_stats(self) -> str:
        from . import __version__

        started = self.started_monotonic
        uptime_s = (time.monotonic() - started) if started is not None else 0.0

        with self.hub._state_lock:
            session_stats = self.hub.session_manager.get_stats()
            room_stats = self.hub.room_manager.get_stats()
            c = dict(self._counters)

        parts: list[str] = [
            f"sigd {__version__}",
            f"uptime_s={uptime_s:.1f}",
            f"sessions={session_stats['total']} in_room={session_stats['in_room']}",
            f"rooms={room_stats['rooms_total']} memberships={room_stats['memberships']}",
        ]
        top_rooms = room_stats["top_rooms"]
        if top_rooms:
            parts.append("top_rooms=" + ",".join(f"{r}:{n}" for r, n in top_rooms))

        parts.append(
            "io: frames_in={} frames_bad={} bytes_in={} bytes_out={} send_failures={}".format(
                c.get("frames_in", 0),
                c.get("frames_bad", 0),
                c.get("bytes_in", 0),
                c.get("bytes_out", 0),
                c.get("send_failures", 0),
            )
        )
        parts.append(
            "events: connects={} disconnects={} joins={} leaves={} "
            "signals_fwd={} signals_dropped={} ignored={}".format(
                c.get("connects", 0),
                c.get("disconnects", 0),
                c.get("joins", 0),
                c.get("leaves", 0),
                c.get("signals_forwarded", 0),
                c.get("signals_dropped", 0),
                c.get("ignored", 0),
            )
        )
        return " ".join(parts)

    def log_stats(self) -> None:
        self.log.info("%s", self.format_stats())
