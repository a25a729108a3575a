from __future__ import annotations

import logging
from collections.abc import Hashable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from .constants import WIRE_JSON
from .util import new_identity

if TYPE_CHECKING:
    from .service import HubService


@dataclass
class Session:
    """Mutable per-connection state owned by the registry."""

    identity: str
    room: str | None = None
    wire: str = WIRE_JSON


class SessionManager:
    """
    Connection registry: live connection handle -> session state.

    Every method that reads or mutates state must be called with the hub's
    state lock held, together with the matching RoomManager calls, so that
    `Session.room` and room membership are never observed out of step.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("sigd.session")
        self.sessions: dict[Hashable, Session] = {}
        self._index_by_identity: dict[str, Hashable] = {}

    def allocate(self) -> str:
        """Draw an identity that is not held by any live session."""
        nbytes = self.hub.config.identity_bytes
        identity = new_identity(nbytes)
        while identity in self._index_by_identity:
            identity = new_identity(nbytes)
        return identity

    def register(self, conn: Hashable) -> str:
        """
        Create a fresh session for `conn` and return its identity.

        Registering a handle twice keeps the first identity.
        """
        existing = self.sessions.get(conn)
        if existing is not None:
            return existing.identity

        identity = self.allocate()
        self.sessions[conn] = Session(identity=identity)
        self._index_by_identity[identity] = conn
        return identity

    def lookup(self, conn: Hashable) -> Session | None:
        return self.sessions.get(conn)

    def set_room(self, conn: Hashable, room: str | None) -> None:
        sess = self.sessions.get(conn)
        if sess is None:
            raise KeyError("connection is not registered")
        sess.room = room

    def deregister(self, conn: Hashable) -> Session | None:
        """Remove and return the session; None if it was already gone."""
        sess = self.sessions.pop(conn, None)
        if sess is None:
            return None
        if self._index_by_identity.get(sess.identity) is conn:
            self._index_by_identity.pop(sess.identity, None)
        return sess

    def get_conn_by_identity(self, identity: str) -> Hashable | None:
        return self._index_by_identity.get(identity)

    def clear_all(self) -> list[Hashable]:
        """Drop every session and return the handles that were live."""
        conns = list(self.sessions.keys())
        self.sessions.clear()
        self._index_by_identity.clear()
        return conns

    def get_stats(self) -> dict[str, Any]:
        total = len(self.sessions)
        in_room = sum(1 for s in self.sessions.values() if s.room is not None)
        return {"total": total, "in_room": in_room}
