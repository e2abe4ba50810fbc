"""WebSocket protocol end to end against an in-memory store."""
from __future__ import annotations

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from chat_relay.app import create_app
from tests.conftest import FakeUoW, make_message


@pytest.fixture
def uow():
    return FakeUoW()


@pytest.fixture
def client(uow):
    return TestClient(create_app(uow_factory=uow.factory()))


def receive_until(ws, event_type: str, limit: int = 20) -> tuple[dict, list[dict]]:
    """Read frames until one of ``event_type``; returns it and everything before it."""
    skipped: list[dict] = []
    for _ in range(limit):
        frame = ws.receive_json()
        if frame["type"] == event_type:
            return frame, skipped
        skipped.append(frame)
    raise AssertionError(f"no {event_type} frame within {limit} frames: {skipped}")


def connect_and_join(ws, username: str) -> str:
    connected = ws.receive_json()
    assert connected["type"] == "connected"
    ws.send_json({"type": "user_join", "data": {"username": username}})
    receive_until(ws, "user_joined")
    return connected["data"]["id"]


def test_connect_announces_identity(client):
    with client.websocket_connect("/ws") as ws:
        frame = ws.receive_json()
        assert frame["type"] == "connected"
        assert frame["data"]["id"]


def test_join_broadcasts_roster_then_joined(client):
    with client.websocket_connect("/ws") as ws:
        cid = ws.receive_json()["data"]["id"]
        ws.send_json({"type": "user_join", "data": {"username": "alice"}})

        roster = ws.receive_json()
        joined = ws.receive_json()

        assert roster == {
            "type": "user_list",
            "data": [{"id": cid, "username": "alice", "avatar": None}],
            "ack_id": None,
        }
        assert joined["type"] == "user_joined"
        assert joined["data"] == {"username": "alice", "id": cid}


def test_send_message_flow(client, uow):
    with client.websocket_connect("/ws") as alice, client.websocket_connect("/ws") as bob:
        connect_and_join(alice, "alice")
        connect_and_join(bob, "bob")
        receive_until(alice, "user_joined")

        alice.send_json({
            "type": "send_message",
            "data": {"message": "hi all", "client_temp_id": "t-1"},
            "ack_id": "a-1",
        })

        echo = alice.receive_json()
        ack = alice.receive_json()
        delivered = alice.receive_json()
        seen_by_bob, _ = receive_until(bob, "receive_message")

    assert echo["type"] == "receive_message"
    assert echo["data"]["body"] == "hi all"
    assert echo["data"]["sender_name"] == "alice"
    assert echo["data"]["client_temp_id"] == "t-1"
    assert ack["type"] == "ack"
    assert ack["ack_id"] == "a-1"
    assert ack["data"]["status"] == "ok"
    assert ack["data"]["id"] == echo["data"]["id"]
    assert delivered["type"] == "message_delivered"
    assert delivered["data"]["id"] == echo["data"]["id"]
    assert seen_by_bob["data"]["id"] == echo["data"]["id"]
    assert [m.body for m in uow.stored()] == ["hi all"]


def test_private_message_reaches_only_the_pair(client, uow):
    with client.websocket_connect("/ws") as alice, \
         client.websocket_connect("/ws") as bob, \
         client.websocket_connect("/ws") as carol:
        connect_and_join(alice, "alice")
        bob_id = connect_and_join(bob, "bob")
        connect_and_join(carol, "carol")

        alice.send_json({"type": "private_message", "data": {"to": bob_id, "message": "psst"}})
        for_bob, _ = receive_until(bob, "private_message")
        for_alice, _ = receive_until(alice, "private_message")

        # carol's next event after the private message must be the typing update
        alice.send_json({"type": "typing", "data": {"is_typing": True}})
        typing, skipped = receive_until(carol, "typing_users")

    assert for_bob["data"]["body"] == "psst"
    assert for_alice["data"]["id"] == for_bob["data"]["id"]
    assert all(f["type"] != "private_message" for f in skipped)
    assert typing["data"] == ["alice"]
    assert uow.stored() == []


def test_message_read_broadcast_once(client, uow):
    uow.seed(make_message(message_id=7, sender_id="someone-else"))
    with client.websocket_connect("/ws") as bob:
        connect_and_join(bob, "bob")

        bob.send_json({"type": "message_read", "data": {"message_id": 7}})
        bob.send_json({"type": "message_read", "data": {"message_id": 7}})
        bob.send_json({"type": "ping"})

        read, _ = receive_until(bob, "message_read")
        _, between = receive_until(bob, "pong")

    assert read["data"]["message_id"] == 7
    assert read["data"]["reader"] == "bob"
    assert all(f["type"] != "message_read" for f in between)
    assert len(uow.stored()[0].read_by) == 1


def test_disconnect_updates_roster_and_typing(client):
    with client.websocket_connect("/ws") as alice:
        connect_and_join(alice, "alice")
        with client.websocket_connect("/ws") as bob:
            connect_and_join(bob, "bob")
            bob.send_json({"type": "typing", "data": {"is_typing": True}})
            typing, _ = receive_until(alice, "typing_users")
            assert typing["data"] == ["bob"]

        left, _ = receive_until(alice, "user_left")
        roster = alice.receive_json()
        typing_after = alice.receive_json()

    assert left["data"]["username"] == "bob"
    assert roster["type"] == "user_list"
    assert [u["username"] for u in roster["data"]] == ["alice"]
    assert typing_after == {"type": "typing_users", "data": [], "ack_id": None}


def test_logout_is_acknowledged_and_closes(client):
    with client.websocket_connect("/ws") as ws:
        connect_and_join(ws, "alice")
        ws.send_json({"type": "logout", "data": {}, "ack_id": "bye"})

        ack, before = receive_until(ws, "ack")

        assert ack["ack_id"] == "bye"
        assert ack["data"] == {"ok": True}
        assert [f["type"] for f in before] == ["user_left", "user_list"]
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_peer_sees_one_roster_update_for_a_logout(client):
    with client.websocket_connect("/ws") as alice:
        connect_and_join(alice, "alice")
        with client.websocket_connect("/ws") as bob:
            connect_and_join(bob, "bob")
            bob.send_json({"type": "logout", "data": {}, "ack_id": "bye"})
            receive_until(bob, "ack")

        receive_until(alice, "user_left")
        roster = alice.receive_json()
        alice.send_json({"type": "ping"})
        after = alice.receive_json()

    assert roster["type"] == "user_list"
    assert after["type"] == "pong"


def test_malformed_and_unknown_frames_get_errors(client):
    with client.websocket_connect("/ws") as ws:
        ws.receive_json()

        ws.send_text("not json")
        assert ws.receive_json()["data"]["code"] == "invalid_payload"

        ws.send_json({"type": "dance"})
        unknown = ws.receive_json()
        assert unknown["data"] == {"code": "unknown_type", "type": "dance"}

        ws.send_json({"type": "user_join", "data": {"username": "  "}})
        assert ws.receive_json()["data"]["code"] == "invalid_username"


def test_empty_message_rejected_through_ack(client, uow):
    with client.websocket_connect("/ws") as ws:
        connect_and_join(ws, "alice")
        ws.send_json({"type": "send_message", "data": {"message": ""}, "ack_id": "m-1"})

        ack = ws.receive_json()

    assert ack["type"] == "ack"
    assert ack["data"]["status"] == "error"
    assert ack["data"]["code"] == "empty_message"
    assert uow.stored() == []


def test_empty_message_without_ack_gets_error_event(client):
    with client.websocket_connect("/ws") as ws:
        connect_and_join(ws, "alice")
        ws.send_json({"type": "send_message", "data": {"attachment": None}})

        error = ws.receive_json()

    assert error["type"] == "error"
    assert error["data"]["code"] == "empty_message"
    assert error["data"]["type"] == "send_message"
