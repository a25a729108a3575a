"""Outbound message queueing for the signaling hub."""

from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import TYPE_CHECKING

from .codec import ENCODE_ERRORS, encode
from .constants import F_TYPE, WIRE_JSON

if TYPE_CHECKING:
    from .service import HubService

Outgoing = list[tuple[Hashable, "str | bytes"]]


class MessageHelper:
    """
    Builds the outgoing queue while the state lock is held.

    Nothing here touches the network: the hub flushes the queue after the
    lock is released.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("sigd.hub")

    def queue_payload(self, outgoing: Outgoing, conn: Hashable, payload: str | bytes) -> None:
        outgoing.append((conn, payload))

    def queue_env(self, outgoing: Outgoing, conn: Hashable, env: dict) -> bool:
        """Encode `env` in the recipient's wire format and queue it."""
        sess = self.hub.session_manager.lookup(conn)
        wire = sess.wire if sess is not None else WIRE_JSON
        try:
            payload = encode(env, wire)
        except ENCODE_ERRORS as e:
            self.hub.stats_manager.inc("send_failures")
            self.log.debug(
                "Cannot encode type=%r for %s wire=%s: %s",
                env.get(F_TYPE),
                self.hub.fmt_conn(conn),
                wire,
                e,
            )
            return False
        self.queue_payload(outgoing, conn, payload)
        return True

    def queue_broadcast(
        self,
        outgoing: Outgoing,
        room: str,
        env: dict,
        *,
        exclude: Hashable | None = None,
    ) -> int:
        """
        Queue `env` for every writable member of `room` except `exclude`.

        Members whose channel is already closing are skipped silently.
        Returns the number of recipients queued.
        """
        count = 0
        for member in self.hub.room_manager.members(room):
            if member is exclude:
                continue
            if not self.hub.transport.is_open(member):
                continue
            if self.queue_env(outgoing, member, env):
                count += 1
        return count
