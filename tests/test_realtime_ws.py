"""Realtime WebSocket: session and feed events, add/delete commands."""

import pytest
from starlette.websockets import WebSocketDisconnect

from app.crud.item import ItemCRUD

CATEGORIES = ["diaries", "memories", "events", "letters"]


def connect(client, token):
    return client.websocket_connect(f"/api/v1/realtime/ws?token={token}")


def receive_until(ws, event_type):
    events = []
    while True:
        event = ws.receive_json()
        events.append(event)
        if event["type"] == event_type:
            return events


def test_rejects_missing_or_bad_token(client):
    with client.websocket_connect("/api/v1/realtime/ws") as ws:
        with pytest.raises(WebSocketDisconnect) as exc_info:
            ws.receive_json()
    assert exc_info.value.code == 4401

    with connect(client, "garbage") as ws:
        with pytest.raises(WebSocketDisconnect):
            ws.receive_json()


def test_initial_session_and_feed_events(client, couple):
    with connect(client, couple["alice"]["token"]) as ws:
        session = ws.receive_json()
        feeds = [ws.receive_json() for _ in CATEGORIES]

    assert session["type"] == "session"
    assert session["loading"] is False
    assert session["is_locked"] is False
    assert session["couple_data"]["id"] == couple["couple"]["id"]
    assert session["partner_data"]["name"] == "Bob"

    assert [event["category"] for event in feeds] == CATEGORIES
    assert all(event["type"] == "feed" and event["items"] == [] for event in feeds)
    assert feeds[-1]["loading"] is False


def test_add_command_is_shown_optimistically_then_acknowledged(client, store, couple):
    with connect(client, couple["alice"]["token"]) as ws:
        receive_until(ws, "session")
        for _ in CATEGORIES:
            ws.receive_json()

        ws.send_json({
            "action": "add",
            "category": "diaries",
            "item": {"id": "d-1", "title": "Picnic", "date": "2024-05-05"},
        })
        events = receive_until(ws, "ack")

    feed_events = [event for event in events if event["type"] == "feed"]
    assert feed_events[0]["category"] == "diaries"
    assert [item["id"] for item in feed_events[0]["items"]] == ["d-1"]
    assert feed_events[-1]["items"][0]["author"] == "Alice"
    assert events[-1] == {"type": "ack", "action": "add", "category": "diaries", "id": "d-1"}
    assert store.document(f"couples/{couple['couple']['id']}/diaries/d-1").get().exists
    assert store._watches == []


def test_partner_receives_items_written_elsewhere(client, couple):
    with connect(client, couple["bob"]["token"]) as ws:
        receive_until(ws, "session")
        for _ in CATEGORIES:
            ws.receive_json()

        client.post(
            "/api/v1/items/letters",
            json={"content": "Miss you", "date": "2024-05-05"},
            headers={"Authorization": f"Bearer {couple['alice']['token']}"},
        )
        event = ws.receive_json()

    assert event["type"] == "feed"
    assert event["category"] == "letters"
    assert event["items"][0]["content"] == "Miss you"


def test_delete_command_and_errors(client, couple):
    with connect(client, couple["alice"]["token"]) as ws:
        receive_until(ws, "session")
        for _ in CATEGORIES:
            ws.receive_json()

        ws.send_text("not json")
        assert receive_until(ws, "error")[-1]["code"] == "VALIDATION_ERROR"

        ws.send_json({"action": "add", "category": "photos", "item": {}})
        assert receive_until(ws, "error")[-1]["code"] == "VALIDATION_ERROR"

        ws.send_json({"action": "delete", "category": "events", "id": "ghost"})
        assert receive_until(ws, "error")[-1]["code"] == "NOT_FOUND"

        ws.send_json({"action": "add", "category": "events", "item": {"title": "Concert", "date": "2024-08-01"}})
        added = receive_until(ws, "ack")[-1]

        ws.send_json({"action": "delete", "category": "events", "id": added["id"]})
        events = receive_until(ws, "ack")

    assert events[-1]["action"] == "delete"
    assert events[-2]["items"] == []


def test_commands_need_a_couple(client, alice):
    with connect(client, alice["token"]) as ws:
        session = ws.receive_json()
        ws.send_json({"action": "add", "category": "diaries", "item": {"title": "alone"}})
        error = receive_until(ws, "error")[-1]

    assert session["couple_data"] is None
    assert error["code"] == "COUPLE_REQUIRED"


def test_add_with_a_taken_id_keeps_the_stored_item(client, store, couple):
    created = client.post(
        "/api/v1/items/diaries",
        json={"id": "d-1", "title": "Bob's day", "date": "2024-05-05"},
        headers={"Authorization": f"Bearer {couple['bob']['token']}"},
    )
    assert created.status_code == 201

    with connect(client, couple["alice"]["token"]) as ws:
        receive_until(ws, "session")
        for _ in CATEGORIES:
            ws.receive_json()

        ws.send_json({"action": "add", "category": "diaries", "item": {"id": "d-1", "title": "Alice over"}})
        events = receive_until(ws, "error")

    assert events[-1]["code"] == "CONFLICT"
    assert all(event["type"] != "ack" for event in events)
    stored = store.document(f"couples/{couple['couple']['id']}/diaries/d-1").get().to_dict()
    assert stored["title"] == "Bob's day"
    assert stored["authorId"] == couple["bob"]["uid"]


def test_unexpected_command_failure_is_reported(client, couple, monkeypatch):
    def broken_add(self, *args, **kwargs):
        raise RuntimeError("backend unavailable")

    monkeypatch.setattr(ItemCRUD, "add", broken_add)

    with connect(client, couple["alice"]["token"]) as ws:
        receive_until(ws, "session")
        for _ in CATEGORIES:
            ws.receive_json()

        ws.send_json({"action": "add", "category": "diaries", "item": {"id": "d-2", "title": "Lost"}})
        events = receive_until(ws, "error")

        # The connection keeps serving commands afterwards.
        ws.send_json({"action": "delete", "category": "events", "id": "ghost"})
        followup = receive_until(ws, "error")[-1]

    assert events[-1]["code"] == "INTERNAL_SERVER_ERROR"
    assert events[-2]["type"] == "feed" and events[-2]["items"] == []
    assert followup["code"] == "NOT_FOUND"
