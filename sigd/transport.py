"""WebSocket transport: accepts connections and feeds frames to the hub."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from websockets.asyncio.server import Server, ServerConnection, broadcast, serve
from websockets.exceptions import ConnectionClosed
from websockets.protocol import State

from .util import fmt_remote

if TYPE_CHECKING:
    from .service import HubService


class WebSocketTransport:
    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("sigd.transport")

    def is_open(self, conn: ServerConnection) -> bool:
        return getattr(conn, "state", None) is State.OPEN

    def send(self, conn: ServerConnection, payload: str | bytes) -> None:
        # Fire-and-forget: broadcast() never waits for the peer to drain.
        broadcast([conn], payload)

    async def handler(self, conn: ServerConnection) -> None:
        self.hub.on_connect(conn)
        try:
            async for message in conn:
                self.hub.on_message(conn, message)
        except ConnectionClosed as e:
            self.log.debug("Connection from %s closed: %s", fmt_remote(conn), e)
        finally:
            self.hub.on_close(conn)

    def start_server(self) -> serve:
        cfg = self.hub.config
        ping_interval = cfg.ws_ping_interval_s if cfg.ws_ping_interval_s > 0 else None
        ping_timeout = cfg.ws_ping_timeout_s if cfg.ws_ping_timeout_s > 0 else None
        return serve(
            self.handler,
            cfg.host,
            cfg.port,
            ping_interval=ping_interval,
            ping_timeout=ping_timeout,
            max_size=None,
        )

    @staticmethod
    def bound_addresses(server: Server) -> list[tuple[str, int]]:
        out: list[tuple[str, int]] = []
        for sock in server.sockets:
            name = sock.getsockname()
            out.append((str(name[0]), int(name[1])))
        return out
