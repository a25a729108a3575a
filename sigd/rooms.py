"""Room directory for the signaling hub.

Rooms exist only while they have members: they are created by the first
join and removed as soon as the last member leaves.
"""

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .service import HubService


class RoomManager:
    """Tracks room membership. Callers hold the hub state lock."""

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("sigd.rooms")
        self.rooms: dict[str, set[Hashable]] = {}

    def join(self, room: str, conn: Hashable) -> None:
        """Add a connection to a room, creating the room if needed."""
        if room not in self.rooms:
            self.rooms[room] = set()
            self.log.debug("Room created room=%r", room)
        self.rooms[room].add(conn)

    def members(self, room: str) -> set[Hashable]:
        """Snapshot of the connections currently in a room."""
        return set(self.rooms.get(room, ()))

    def is_member(self, room: str, conn: Hashable) -> bool:
        return conn in self.rooms.get(room, ())

    def leave(self, room: str, conn: Hashable) -> bool:
        """
        Remove a connection from a room, deleting the room once empty.

        Returns True if the connection was a member.
        """
        links = self.rooms.get(room)
        if links is None or conn not in links:
            return False
        links.discard(conn)
        if not links:
            self.rooms.pop(room, None)
            self.log.info("Room %r is empty, deleted", room)
        return True

    def clear_all(self) -> None:
        self.rooms.clear()

    def get_stats(self) -> dict[str, Any]:
        rooms_total = len(self.rooms)
        memberships = sum(len(v) for v in self.rooms.values())
        top_rooms = sorted(
            ((room, len(links)) for room, links in self.rooms.items()),
            key=lambda x: (-x[1], x[0]),
        )[:5]
        return {
            "rooms_total": rooms_total,
            "memberships": memberships,
            "top_rooms": top_rooms,
        }
