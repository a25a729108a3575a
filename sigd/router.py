from __future__ import annotations

import logging
from collections.abc import Hashable
from typing import TYPE_CHECKING

from .codec import DECODE_ERRORS, decode
from .constants import (
    F_ROOM_ID,
    F_TO,
    F_TYPE,
    SIGNAL_TYPES,
    T_JOIN,
    T_USER_JOINED,
)
from .envelope import make_envelope, make_forward, validate_envelope
from .messages import Outgoing
from .session import Session
from .util import payload_size

if TYPE_CHECKING:
    from .service import HubService


class MessageRouter:
    """
    Interprets inbound frames and drives registry/directory updates.

    Recognized types are `join` and the signaling types (`offer`, `answer`,
    `candidate`). Everything else is ignored. Nothing is ever sent back to
    a sender whose message was dropped.
    """

    def __init__(self, hub: HubService) -> None:
        self.hub = hub
        self.log = logging.getLogger("sigd.router")

    def route_message(self, conn: Hashable, data: str | bytes, outgoing: Outgoing) -> None:
        """
        Main entry point for one inbound frame.

        This method must be called with the state lock held.
        """
        sess = self.hub.session_manager.lookup(conn)
        if sess is None:
            return

        stats = self.hub.stats_manager
        stats.inc("frames_in")
        stats.inc("bytes_in", payload_size(data))

        try:
            env, wire = decode(data)
        except DECODE_ERRORS as e:
            stats.inc("frames_bad")
            self.log.debug(
                "Malformed frame from %s bytes=%s err=%s",
                sess.identity,
                len(data),
                e,
            )
            return

        try:
            validate_envelope(env)
        except (TypeError, ValueError) as e:
            stats.inc("frames_bad")
            self.log.debug("Dropped message from %s: %s", sess.identity, e)
            return

        sess.wire = wire
        t = env[F_TYPE]

        if self.log.isEnabledFor(logging.DEBUG):
            self.log.debug(
                "RX from=%s room=%r type=%s wire=%s bytes=%s",
                sess.identity,
                sess.room,
                t,
                wire,
                len(data),
            )

        if t == T_JOIN:
            self._handle_join(conn, sess, env, outgoing)
        elif t in SIGNAL_TYPES:
            self._handle_signal(conn, sess, env, outgoing)
        else:
            stats.inc("ignored")
            self.log.debug("Unknown message type %r from %s", t, sess.identity)

    def _handle_join(
        self, conn: Hashable, sess: Session, env: dict, outgoing: Outgoing
    ) -> None:
        hub = self.hub
        room = env[F_ROOM_ID]

        if sess.room is not None and sess.room != room:
            hub.part_room(conn, sess.identity, sess.room, outgoing)

        hub.session_manager.set_room(conn, room)
        hub.room_manager.join(room, conn)
        hub.stats_manager.inc("joins")
        self.log.info("%s joined room %r", sess.identity, room)

        hub.message_helper.queue_broadcast(
            outgoing,
            room,
            make_envelope(T_USER_JOINED, user_id=sess.identity),
            exclude=conn,
        )

        # One notification per existing peer, not a batched list.
        for member in hub.room_manager.members(room):
            if member is conn:
                continue
            other = hub.session_manager.lookup(member)
            if other is None:
                continue
            hub.message_helper.queue_env(
                outgoing, conn, make_envelope(T_USER_JOINED, user_id=other.identity)
            )

    def _handle_signal(
        self, conn: Hashable, sess: Session, env: dict, outgoing: Outgoing
    ) -> None:
        hub = self.hub
        t = env[F_TYPE]
        to = env[F_TO]

        if sess.room is None:
            hub.stats_manager.inc("signals_dropped")
            self.log.debug("Dropped %s from %s: not in a room", t, sess.identity)
            return

        target = hub.session_manager.get_conn_by_identity(to)
        if (
            target is None
            or target is conn
            or not hub.room_manager.is_member(sess.room, target)
        ):
            hub.stats_manager.inc("signals_dropped")
            self.log.debug(
                "Dropped %s from %s: no peer %r in room %r",
                t,
                sess.identity,
                to,
                sess.room,
            )
            return

        if hub.message_helper.queue_env(outgoing, target, make_forward(env, src=sess.identity)):
            hub.stats_manager.inc("signals_forwarded")
            self.log.debug(
                "Forwarding %s from %s to %s in room %r", t, sess.identity, to, sess.room
            )
