"""Signup, login, logout, session and passcode endpoints."""

import pytest

from conftest import PASSWORD, auth_header, signup


def login(client, email, password=PASSWORD):
    return client.post("/api/v1/auth/login", json={"email": email, "password": password})


def test_signup_returns_token_and_public_profile(client):
    data = signup(client, "Alice", "Alice")

    assert data["email"] == "alice@dear23.app"
    assert data["token"]
    user = data["user"]
    assert user["uid"] == data["uid"]
    assert user["name"] == "Alice"
    assert user["coupleId"] is None
    assert len(user["inviteCode"]) == 6
    assert user["hasPasscode"] is False
    assert "passcode" not in user
    assert "fcmTokens" not in user


def test_signup_rejects_duplicate_email(client, alice):
    response = client.post(
        "/api/v1/auth/signup",
        json={"email": "alice@dear23.app", "password": PASSWORD, "name": "Other"},
    )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT"


def test_signup_validates_passwords(client):
    short = client.post("/api/v1/auth/signup", json={"email": "carol", "password": "123", "name": "Carol"})
    mismatch = client.post(
        "/api/v1/auth/signup",
        json={"email": "carol", "password": PASSWORD, "confirm_password": "other1", "name": "Carol"},
    )

    assert short.status_code == 422
    assert mismatch.status_code == 422


def test_login_with_login_id_and_wrong_password(client, alice):
    ok = login(client, "ALICE")
    bad = login(client, "alice", "wrong-password")

    assert ok.status_code == 200
    assert ok.json()["data"]["uid"] == alice["uid"]
    assert bad.status_code == 401
    assert bad.json()["error"]["code"] == "AUTHENTICATION_ERROR"


def test_protected_routes_need_a_valid_token(client):
    assert client.get("/api/v1/users/me").status_code == 401
    assert client.get("/api/v1/users/me", headers={"Authorization": "Token abc"}).status_code == 401
    assert client.get("/api/v1/users/me", headers=auth_header("not-a-jwt")).status_code == 401


def test_logout_revokes_the_token(client, alice):
    headers = auth_header(alice["token"])

    assert client.post("/api/v1/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/v1/users/me", headers=headers).status_code == 401


def test_session_without_partner(client, alice):
    response = client.get("/api/v1/auth/session", headers=auth_header(alice["token"]))

    data = response.json()["data"]
    assert data["uid"] == alice["uid"]
    assert data["loading"] is False
    assert data["is_locked"] is False
    assert data["user_data"]["name"] == "Alice"
    assert data["couple_data"] is None
    assert data["partner_data"] is None


def test_session_with_partner(client, couple):
    response = client.get("/api/v1/auth/session", headers=auth_header(couple["alice"]["token"]))

    data = response.json()["data"]
    assert data["couple_data"]["id"] == couple["couple"]["id"]
    assert data["couple_data"]["daysTogether"] == 1
    assert data["partner_data"]["name"] == "Bob"


def test_passcode_locks_new_sessions_until_unlocked(client, couple):
    first = auth_header(couple["alice"]["token"])
    set_response = client.post("/api/v1/users/me/passcode", json={"pin": "1234", "confirm_pin": "1234"}, headers=first)
    assert set_response.status_code == 200

    # The session that set the passcode stays usable.
    assert client.get("/api/v1/couples/me", headers=first).status_code == 200

    second = auth_header(login(client, "alice").json()["data"]["token"])
    locked = client.get("/api/v1/couples/me", headers=second)
    assert locked.status_code == 403
    assert locked.json()["error"]["code"] == "PASSCODE_ERROR"
    assert client.get("/api/v1/auth/session", headers=second).json()["data"]["is_locked"] is True

    wrong = client.post("/api/v1/auth/unlock", json={"pin": "9999"}, headers=second)
    assert wrong.status_code == 403

    right = client.post("/api/v1/auth/unlock", json={"pin": "1234"}, headers=second)
    assert right.status_code == 200
    assert client.get("/api/v1/couples/me", headers=second).status_code == 200


def test_passcode_validation_and_disable(client, alice):
    headers = auth_header(alice["token"])

    assert client.post("/api/v1/auth/unlock", json={"pin": "1234"}, headers=headers).status_code == 422
    assert client.post(
        "/api/v1/users/me/passcode", json={"pin": "12a4", "confirm_pin": "12a4"}, headers=headers
    ).status_code == 422
    assert client.post(
        "/api/v1/users/me/passcode", json={"pin": "1234", "confirm_pin": "4321"}, headers=headers
    ).status_code == 422

    client.post("/api/v1/users/me/passcode", json={"pin": "1234", "confirm_pin": "1234"}, headers=headers)
    assert client.get("/api/v1/users/me", headers=headers).json()["data"]["hasPasscode"] is True

    wrong = client.post("/api/v1/users/me/passcode/disable", json={"pin": "0000"}, headers=headers)
    assert wrong.status_code == 403

    ok = client.post("/api/v1/users/me/passcode/disable", json={"pin": "1234"}, headers=headers)
    assert ok.status_code == 200
    assert client.get("/api/v1/users/me", headers=headers).json()["data"]["hasPasscode"] is False


def test_locked_session_cannot_replace_the_passcode(client, couple):
    first = auth_header(couple["alice"]["token"])
    client.post("/api/v1/users/me/passcode", json={"pin": "1234", "confirm_pin": "1234"}, headers=first)

    second = auth_header(login(client, "alice").json()["data"]["token"])
    replaced = client.post("/api/v1/users/me/passcode", json={"pin": "0000", "confirm_pin": "0000"}, headers=second)
    assert replaced.status_code == 403
    assert replaced.json()["error"]["code"] == "PASSCODE_ERROR"
    assert client.get("/api/v1/couples/me", headers=second).status_code == 403

    # The old pin still unlocks, after which the passcode can be changed.
    assert client.post("/api/v1/auth/unlock", json={"pin": "1234"}, headers=second).status_code == 200
    changed = client.post("/api/v1/users/me/passcode", json={"pin": "0000", "confirm_pin": "0000"}, headers=second)
    assert changed.status_code == 200


@pytest.mark.parametrize("pin", ["1234\n", "١٢٣٤", "123", "12345"])
def test_passcode_must_be_four_ascii_digits(client, alice, pin):
    response = client.post(
        "/api/v1/users/me/passcode",
        json={"pin": pin, "confirm_pin": pin},
        headers=auth_header(alice["token"]),
    )
    assert response.status_code == 422
