import json

import cbor2

from fakes import FakeConn


def send(hub, conn, msg) -> None:
    hub.on_message(conn, json.dumps(msg))


def test_connect_sends_your_id(hub) -> None:
    conn = FakeConn("a")
    identity = hub.on_connect(conn)
    assert conn.received() == [{"type": "your-id", "userId": identity}]


def test_second_joiner_discovers_first_and_first_is_told(hub, connect) -> None:
    a, a_id = connect("a")
    b, b_id = connect("b")

    send(hub, a, {"type": "join", "roomId": "r1"})
    assert a.take() == []

    send(hub, b, {"type": "join", "roomId": "r1"})
    assert b.take() == [{"type": "user-joined", "userId": a_id}]
    assert a.take() == [{"type": "user-joined", "userId": b_id}]

    assert hub.room_manager.members("r1") == {a, b}
    assert hub.session_manager.lookup(a).room == "r1"
    assert hub.session_manager.lookup(b).room == "r1"


def test_joiner_gets_one_notification_per_existing_peer(hub, connect) -> None:
    peers = [connect(str(i)) for i in range(3)]
    for conn, _ in peers:
        send(hub, conn, {"type": "join", "roomId": "r1"})
        conn.take()
    for conn, _ in peers:
        conn.take()

    d, d_id = connect("d")
    send(hub, d, {"type": "join", "roomId": "r1"})

    got = d.take()
    assert len(got) == 3
    assert all(m["type"] == "user-joined" for m in got)
    assert {m["userId"] for m in got} == {ident for _, ident in peers}
    for conn, _ in peers:
        assert conn.take() == [{"type": "user-joined", "userId": d_id}]


def test_offer_is_forwarded_without_to(hub, connect) -> None:
    a, a_id = connect("a")
    b, b_id = connect("b")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    a.take()
    b.take()

    send(hub, a, {"type": "offer", "to": b_id, "sdp": "v=0..."})
    assert b.take() == [{"type": "offer", "from": a_id, "sdp": "v=0..."}]
    assert a.take() == []


def test_answer_and_candidate_keep_their_type(hub, connect) -> None:
    a, a_id = connect("a")
    b, b_id = connect("b")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    a.take()
    b.take()

    send(hub, b, {"type": "answer", "to": a_id, "sdp": "ans"})
    send(hub, b, {"type": "candidate", "to": a_id, "candidate": {"sdpMid": "0"}})
    assert a.take() == [
        {"type": "answer", "from": b_id, "sdp": "ans"},
        {"type": "candidate", "from": b_id, "candidate": {"sdpMid": "0"}},
    ]


def test_offer_to_unknown_identity_is_dropped(hub, connect) -> None:
    a, _ = connect("a")
    b, _ = connect("b")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    a.take()
    b.take()

    send(hub, a, {"type": "offer", "to": "nonexistent"})
    assert a.take() == []
    assert b.take() == []
    assert hub.stats_manager.get("signals_dropped") == 1


def test_offer_never_crosses_rooms(hub, connect) -> None:
    a, _ = connect("a")
    b, _ = connect("b")
    c, c_id = connect("c")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    send(hub, c, {"type": "join", "roomId": "r2"})
    for conn in (a, b, c):
        conn.take()

    send(hub, a, {"type": "offer", "to": c_id, "sdp": "x"})
    assert c.take() == []
    assert b.take() == []


def test_offer_to_self_is_dropped(hub, connect) -> None:
    a, a_id = connect("a")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, a, {"type": "offer", "to": a_id})
    assert a.take() == []


def test_offer_without_room_is_dropped(hub, connect) -> None:
    a, _ = connect("a")
    b, b_id = connect("b")
    send(hub, b, {"type": "join", "roomId": "r1"})
    b.take()

    send(hub, a, {"type": "offer", "to": b_id})
    assert b.take() == []
    assert a.take() == []


def test_unknown_type_changes_nothing(hub, connect) -> None:
    a, _ = connect("a")
    b, _ = connect("b")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    a.take()
    b.take()
    before = {r: set(m) for r, m in hub.room_manager.rooms.items()}

    send(hub, a, {"type": "ping"})
    assert a.take() == []
    assert b.take() == []
    assert hub.room_manager.rooms == before
    assert hub.session_manager.lookup(a).room == "r1"
    assert hub.stats_manager.get("ignored") == 1


def test_malformed_frames_are_dropped(hub, connect) -> None:
    a, a_id = connect("a")
    b, b_id = connect("b")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    a.take()
    b.take()

    deep = '{"type":"ping","x":' + "[" * 200000 + "]" * 200000 + "}"
    for frame in ("{oops", "[1, 2]", "null", '{"no": "type"}', b"\x1c", deep):
        hub.on_message(a, frame)
    assert a.take() == []
    assert b.take() == []
    assert hub.stats_manager.get("frames_bad") == 6
    assert hub.session_manager.lookup(a).room == "r1"

    # The sender is still registered and can keep signaling.
    send(hub, a, {"type": "offer", "to": b_id})
    assert b.take() == [{"type": "offer", "from": a_id}]


def test_protocol_violations_are_dropped_silently(hub, connect) -> None:
    a, _ = connect("a")
    send(hub, a, {"type": "join"})
    send(hub, a, {"type": "join", "roomId": ""})
    send(hub, a, {"type": "join", "roomId": 12})
    assert a.take() == []
    assert hub.room_manager.rooms == {}
    assert hub.session_manager.lookup(a).room is None

    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, a, {"type": "offer", "sdp": "no target"})
    assert a.take() == []


def test_messages_from_unregistered_connections_are_ignored(hub) -> None:
    ghost = FakeConn("ghost")
    send(hub, ghost, {"type": "join", "roomId": "r1"})
    assert hub.room_manager.rooms == {}
    assert hub.stats_manager.get("frames_in") == 0


def test_rejoin_other_room_leaves_old_room(hub, connect) -> None:
    a, a_id = connect("a")
    b, _ = connect("b")
    c, c_id = connect("c")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    send(hub, c, {"type": "join", "roomId": "r2"})
    for conn in (a, b, c):
        conn.take()

    send(hub, a, {"type": "join", "roomId": "r2"})

    assert b.take() == [{"type": "user-left", "userId": a_id}]
    assert c.take() == [{"type": "user-joined", "userId": a_id}]
    assert a.take() == [{"type": "user-joined", "userId": c_id}]
    assert hub.room_manager.members("r1") == {b}
    assert hub.room_manager.members("r2") == {a, c}
    assert hub.session_manager.lookup(a).room == "r2"


def test_rejoin_from_sole_member_room_deletes_it(hub, connect) -> None:
    a, _ = connect("a")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, a, {"type": "join", "roomId": "r2"})
    assert set(hub.room_manager.rooms) == {"r2"}


def test_rejoin_same_room_repeats_discovery(hub, connect) -> None:
    a, a_id = connect("a")
    b, b_id = connect("b")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    a.take()
    b.take()

    send(hub, b, {"type": "join", "roomId": "r1"})
    assert b.take() == [{"type": "user-joined", "userId": a_id}]
    assert a.take() == [{"type": "user-joined", "userId": b_id}]
    assert hub.room_manager.members("r1") == {a, b}


def test_cbor_client_gets_cbor_replies(hub, connect) -> None:
    a, a_id = connect("a")
    b, b_id = connect("b")
    hub.on_message(a, cbor2.dumps({"type": "join", "roomId": "r1"}))
    send(hub, b, {"type": "join", "roomId": "r1"})

    (notice,) = a.sent
    assert isinstance(notice, bytes)
    assert cbor2.loads(notice) == {"type": "user-joined", "userId": b_id}

    (joined,) = b.sent
    assert isinstance(joined, str)
    b.sent.clear()

    hub.on_message(a, cbor2.dumps({"type": "offer", "to": b_id, "sdp": "v=0"}))
    assert b.take() == [{"type": "offer", "from": a_id, "sdp": "v=0"}]


def test_unencodable_forward_is_dropped_for_that_recipient(hub, connect) -> None:
    a, _ = connect("a")
    b, b_id = connect("b")
    send(hub, a, {"type": "join", "roomId": "r1"})
    send(hub, b, {"type": "join", "roomId": "r1"})
    a.take()
    b.take()

    # b speaks JSON, so raw bytes cannot reach it.
    hub.on_message(a, cbor2.dumps({"type": "offer", "to": b_id, "blob": b"\x00"}))
    assert b.take() == []
    assert hub.stats_manager.get("send_failures") == 1


def test_json_in_binary_frame_is_accepted(hub, connect) -> None:
    a, a_id = connect("a")
    b, b_id = connect("b")
    hub.on_message(a, json.dumps({"type": "join", "roomId": "r1"}).encode("utf-8"))
    assert hub.session_manager.lookup(a).room == "r1"

    send(hub, b, {"type": "join", "roomId": "r1"})
    assert b.take() == [{"type": "user-joined", "userId": a_id}]

    # Replies to a client sending JSON in binary frames stay JSON text.
    (notice,) = a.sent
    assert isinstance(notice, str)
    assert json.loads(notice) == {"type": "user-joined", "userId": b_id}
