from __future__ import annotations

import asyncio
import logging
import signal
import threading
from collections.abc import Hashable
from typing import Any

from .config import HubRuntimeConfig
from .constants import T_USER_LEFT, T_YOUR_ID
from .envelope import make_envelope
from .messages import MessageHelper, Outgoing
from .rooms import RoomManager
from .router import MessageRouter
from .session import SessionManager
from .stats import StatsManager
from .util import fmt_remote, payload_size


class HubService:
    def __init__(self, config: HubRuntimeConfig, transport: Any = None) -> None:
        self.config = config
        self.log = logging.getLogger("sigd.hub")

        # Sessions and rooms are mutated by every connection handler. All
        # join/leave/close sequences run under this one lock so a session's
        # room and the room's member set always change together.
        self._state_lock = threading.RLock()

        self.stats_manager = StatsManager(self)
        self.session_manager = SessionManager(self)
        self.room_manager = RoomManager(self)
        self.message_helper = MessageHelper(self)
        self.router = MessageRouter(self)

        if transport is None:
            from .transport import WebSocketTransport

            transport = WebSocketTransport(self)
        self.transport = transport

        self._shutdown = asyncio.Event()
        self._ready = asyncio.Event()
        self.bound_addresses: list[tuple[str, int]] = []

    def fmt_conn(self, conn: Hashable) -> str:
        sess = self.session_manager.lookup(conn)
        if sess is not None:
            return sess.identity
        return fmt_remote(conn)

    def on_connect(self, conn: Hashable) -> str:
        """Register a new connection and tell it its identity."""
        outgoing: Outgoing = []
        with self._state_lock:
            identity = self.session_manager.register(conn)
            self.stats_manager.inc("connects")
            self.message_helper.queue_env(
                outgoing, conn, make_envelope(T_YOUR_ID, user_id=identity)
            )

        self.log.info("Client connected id=%s remote=%s", identity, fmt_remote(conn))
        self._flush(outgoing)
        return identity

    def on_message(self, conn: Hashable, data: str | bytes) -> None:
        # Mutations happen under the lock; sends happen after it is released.
        outgoing: Outgoing = []
        with self._state_lock:
            self.router.route_message(conn, data, outgoing)

        if self.log.isEnabledFor(logging.DEBUG) and outgoing:
            self.log.debug("Sending %d message(s) for %s", len(outgoing), self.fmt_conn(conn))

        self._flush(outgoing)

    def on_close(self, conn: Hashable) -> bool:
        """
        Tear down a connection's session and room membership.

        Safe to call more than once; only the first call has any effect.
        Returns True if a session was removed.
        """
        outgoing: Outgoing = []
        with self._state_lock:
            sess = self.session_manager.deregister(conn)
            if sess is None:
                return False
            self.stats_manager.inc("disconnects")
            if sess.room is not None:
                self.part_room(conn, sess.identity, sess.room, outgoing)

        self.log.info("Client disconnected id=%s room=%r", sess.identity, sess.room)
        self._flush(outgoing)
        return True

    def part_room(
        self, conn: Hashable, identity: str, room: str, outgoing: Outgoing
    ) -> None:
        """
        Remove `conn` from `room` and queue `user-left` for those who remain.

        Must be called with state lock held.
        """
        if not self.room_manager.leave(room, conn):
            return
        self.stats_manager.inc("leaves")
        self.log.info("%s left room %r", identity, room)
        self.message_helper.queue_broadcast(
            outgoing,
            room,
            make_envelope(T_USER_LEFT, user_id=identity),
            exclude=conn,
        )

    def _flush(self, outgoing: Outgoing) -> None:
        for conn, payload in outgoing:
            try:
                self.transport.send(conn, payload)
            except Exception as e:
                self.stats_manager.inc("send_failures")
                self.log.debug("Send failed to %s: %s", self.fmt_conn(conn), e)
                continue
            self.stats_manager.inc("bytes_out", payload_size(payload))

    async def run(self, *, install_signal_handlers: bool = True) -> None:
        self.stats_manager.set_start_time()

        loop = asyncio.get_running_loop()
        installed: list[signal.Signals] = []
        if install_signal_handlers:
            for sig in (signal.SIGINT, signal.SIGTERM):
                try:
                    loop.add_signal_handler(sig, self.stop)
                    installed.append(sig)
                except (NotImplementedError, RuntimeError):
                    pass

        stats_task: asyncio.Task | None = None
        try:
            async with self.transport.start_server() as server:
                self.bound_addresses = self.transport.bound_addresses(server)
                self.log.info(
                    "Signaling hub listening on %s",
                    ", ".join(f"{h}:{p}" for h, p in self.bound_addresses) or "-",
                )
                if self.config.stats_interval_s and self.config.stats_interval_s > 0:
                    stats_task = asyncio.create_task(self._stats_loop())
                self._ready.set()
                await self._shutdown.wait()
                self.log.info("Shutting down")
        finally:
            if stats_task is not None:
                stats_task.cancel()
            for sig in installed:
                loop.remove_signal_handler(sig)
            self._clear_state()
            self.stats_manager.log_stats()

    async def wait_ready(self) -> None:
        await self._ready.wait()

    def stop(self) -> None:
        self._shutdown.set()

    async def _stats_loop(self) -> None:
        interval = float(self.config.stats_interval_s)
        while True:
            await asyncio.sleep(interval)
            self.stats_manager.log_stats()

    def _clear_state(self) -> None:
        with self._state_lock:
            conns = self.session_manager.clear_all()
            self.room_manager.clear_all()
        if conns:
            self.log.debug("Dropped %d session(s) at shutdown", len(conns))
