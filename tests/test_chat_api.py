"""Chat messages, reactions, notice, typing, presence and link previews."""

import httpx
import pytest

from app.services.link_preview_service import parse_preview
from conftest import auth_header


@pytest.fixture
def alice_headers(couple):
    return auth_header(couple["alice"]["token"])


@pytest.fixture
def bob_headers(couple):
    return auth_header(couple["bob"]["token"])


def send(client, headers, **payload):
    return client.post("/api/v1/chat/messages", json=payload, headers=headers)


def me(client, headers):
    return client.get("/api/v1/users/me", headers=headers).json()["data"]


def test_send_and_list_oldest_first(client, alice_headers, bob_headers):
    send(client, alice_headers, text="hi")
    send(client, bob_headers, text="hello")
    send(client, alice_headers, text="  how are you  ")

    messages = client.get("/api/v1/chat/messages", headers=bob_headers).json()["data"]

    assert [m["text"] for m in messages] == ["hi", "hello", "how are you"]
    latest = client.get("/api/v1/chat/messages?limit=2", headers=bob_headers).json()["data"]
    assert [m["text"] for m in latest] == ["hello", "how are you"]


def test_send_validation(client, alice_headers):
    assert send(client, alice_headers, text="   ").status_code == 422
    assert send(client, alice_headers, type="image").status_code == 422
    assert send(client, alice_headers, text="x", reply_to_id="missing").status_code == 404

    image = send(client, alice_headers, type="image", image_url="http://testserver/media/a.jpg")
    assert image.status_code == 201
    assert image.json()["data"]["type"] == "image"


def test_reply_carries_a_preview(client, alice_headers, bob_headers):
    photo = send(client, alice_headers, type="image", image_url="http://img/1.jpg").json()["data"]
    text = send(client, alice_headers, text="y" * 150).json()["data"]

    photo_reply = send(client, bob_headers, text="cute", reply_to_id=photo["id"]).json()["data"]
    text_reply = send(client, bob_headers, text="long", reply_to_id=text["id"]).json()["data"]

    assert photo_reply["replyTo"] == {"id": photo["id"], "text": "Photo", "senderName": "Alice"}
    assert text_reply["replyTo"]["text"] == "y" * 100


def test_send_bumps_unread_and_pushes(client, push_service, alice_headers, bob_headers):
    client.post("/api/v1/users/me/fcm-tokens", json={"token": "bob-phone"}, headers=bob_headers)

    send(client, alice_headers, text="dinner?")

    assert me(client, bob_headers)["unreadCount"] == 1
    assert me(client, alice_headers)["unreadCount"] == 0
    assert push_service.sent == [
        {"tokens": ["bob-phone"], "title": "Alice", "body": "dinner?", "link": "/chat", "badge": 1}
    ]


def test_no_push_while_partner_is_in_chat(client, push_service, alice_headers, bob_headers):
    client.post("/api/v1/users/me/fcm-tokens", json={"token": "bob-phone"}, headers=bob_headers)
    client.put("/api/v1/chat/presence", json={"active": True}, headers=bob_headers)

    send(client, alice_headers, text="hi")

    assert push_service.sent == []
    assert me(client, bob_headers)["isChatActive"] is True


def test_no_push_when_disabled_or_without_devices(client, push_service, alice_headers, bob_headers):
    send(client, alice_headers, text="no devices yet")

    client.post("/api/v1/users/me/fcm-tokens", json={"token": "bob-phone"}, headers=bob_headers)
    client.put("/api/v1/users/me/push", json={"enabled": False}, headers=bob_headers)
    send(client, alice_headers, text="push is off")

    assert push_service.sent == []
    assert me(client, bob_headers)["unreadCount"] == 2


def test_presence_clears_unread(client, alice_headers, bob_headers):
    send(client, alice_headers, text="one")
    send(client, alice_headers, text="two")

    client.put("/api/v1/chat/presence", json={"active": True}, headers=bob_headers)

    assert me(client, bob_headers)["unreadCount"] == 0


def test_soft_delete_only_by_sender(client, alice_headers, bob_headers):
    message = send(client, alice_headers, type="image", image_url="http://img/1.jpg").json()["data"]

    forbidden = client.delete(f"/api/v1/chat/messages/{message['id']}", headers=bob_headers)
    deleted = client.delete(f"/api/v1/chat/messages/{message['id']}", headers=alice_headers)

    assert forbidden.status_code == 403
    data = deleted.json()["data"]
    assert data["isDeleted"] is True
    assert data["text"] == ""
    assert data["type"] == "text"
    assert data["imageUrl"] is None
    assert client.get("/api/v1/chat/recent", headers=bob_headers).json()["data"] is None


def test_reactions_toggle_per_user(client, alice_headers, bob_headers):
    message = send(client, alice_headers, text="good news").json()["data"]
    url = f"/api/v1/chat/messages/{message['id']}/reactions"

    client.post(url, json={"emoji": "❤️"}, headers=bob_headers)
    both = client.post(url, json={"emoji": "❤️"}, headers=alice_headers).json()["data"]
    assert sorted(both["reactions"]["❤️"]) == sorted([me(client, alice_headers)["uid"], me(client, bob_headers)["uid"]])

    client.post(url, json={"emoji": "❤️"}, headers=bob_headers)
    cleared = client.post(url, json={"emoji": "❤️"}, headers=alice_headers).json()["data"]
    assert cleared["reactions"] == {}


def test_cannot_react_to_deleted_message(client, alice_headers, bob_headers):
    message = send(client, alice_headers, text="oops").json()["data"]
    client.delete(f"/api/v1/chat/messages/{message['id']}", headers=alice_headers)

    response = client.post(
        f"/api/v1/chat/messages/{message['id']}/reactions", json={"emoji": "👍"}, headers=bob_headers
    )

    assert response.status_code == 422


def test_notice_pin_and_clear(client, alice_headers, bob_headers):
    message = send(client, alice_headers, text="Anniversary dinner at 7").json()["data"]

    pinned = client.put("/api/v1/chat/notice", json={"message_id": message["id"]}, headers=bob_headers)
    assert pinned.json()["data"]["text"] == "Anniversary dinner at 7"
    assert client.get("/api/v1/couples/me", headers=alice_headers).json()["data"]["notice"]["id"] == message["id"]

    client.delete("/api/v1/chat/notice", headers=alice_headers)
    assert client.get("/api/v1/couples/me", headers=alice_headers).json()["data"]["notice"] is None


def test_typing_is_cleared_by_sending(client, couple, alice_headers):
    uid = couple["alice"]["uid"]

    client.put("/api/v1/chat/typing", json={"is_typing": True}, headers=alice_headers)
    assert client.get("/api/v1/couples/me", headers=alice_headers).json()["data"]["typing"][uid] is True

    send(client, alice_headers, text="done typing")
    assert client.get("/api/v1/couples/me", headers=alice_headers).json()["data"]["typing"][uid] is False


def test_recent_skips_deleted_messages(client, alice_headers, bob_headers):
    send(client, bob_headers, text="first")
    last = send(client, alice_headers, text="second").json()["data"]
    client.delete(f"/api/v1/chat/messages/{last['id']}", headers=alice_headers)

    assert client.get("/api/v1/chat/recent", headers=alice_headers).json()["data"]["text"] == "first"


def test_chat_needs_a_couple(client, alice):
    response = client.get("/api/v1/chat/messages", headers=auth_header(alice["token"]))

    assert response.status_code == 409


def test_link_preview_reads_open_graph_tags(client, upstream, alice_headers):
    page = (
        "<html><head><title>Fallback</title>"
        '<meta property="og:title" content="Cafe &amp; Bakery">'
        '<meta content="Best croissants" property="og:description">'
        '<meta property="og:image" content="https://example.com/c.jpg">'
        "</head></html>"
    )
    upstream.handler = lambda request: httpx.Response(200, text=page)

    response = client.get("/api/v1/chat/link-preview?url=https://example.com/cafe", headers=alice_headers)

    assert response.json()["data"] == {
        "title": "Cafe & Bakery",
        "description": "Best croissants",
        "image": "https://example.com/c.jpg",
        "url": "https://example.com/cafe",
    }
    assert upstream.requests[0].headers["User-Agent"].startswith("Mozilla/5.0")


def test_link_preview_errors(client, alice_headers):
    assert client.get("/api/v1/chat/link-preview?url=ftp://x", headers=alice_headers).status_code == 422

    failed = client.get("/api/v1/chat/link-preview?url=https://example.com/404", headers=alice_headers)
    assert failed.status_code == 502
    assert failed.json()["error"]["code"] == "EXTERNAL_SERVICE_ERROR"


def test_link_preview_keeps_quotes_inside_attribute_values():
    page = (
        "<html><head><title> Plain title </title>"
        "<meta property=\"og:title\" content=\"Don't panic\">"
        "<meta name='description' content='She said \"hi\"'>"
        "</head></html>"
    )

    preview = parse_preview(page, "https://example.com/guide")

    assert preview == {
        "title": "Don't panic",
        "description": 'She said "hi"',
        "image": "",
        "url": "https://example.com/guide",
    }


def test_link_preview_falls_back_to_title_then_url():
    assert parse_preview("<title>Only a title</title>", "https://a.example")["title"] == "Only a title"
    assert parse_preview("<p>nothing</p>", "https://a.example")["title"] == "https://a.example"
