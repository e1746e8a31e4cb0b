import os

# Force local mode with in-memory data before the app reads its settings.
os.environ["FIREBASE_CREDENTIALS_PATH"] = ""
os.environ["LOCAL_DATA_DIR"] = ""
os.environ.setdefault("DEBUG", "false")

import httpx
import pytest
from fastapi.testclient import TestClient

from app import dependencies
from app.main import app
from app.services.firebase.auth_service import LocalAuthService
from app.services.link_preview_service import LinkPreviewService
from app.services.local_store import LocalStore
from app.services.notion_service import NotionService
from app.services.push_service import LocalPushService
from app.services.storage_service import LocalStorageService

PASSWORD = "secret123"


@pytest.fixture
def store():
    return LocalStore()


@pytest.fixture
def push_service():
    return LocalPushService("/chat")


@pytest.fixture
def upstream():
    """Fake upstream HTTP (Notion, link previews). Tests replace ``handler``."""

    class Holder:
        requests = []

        def handler(self, request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "not mocked"})

    holder = Holder()
    holder.requests = []
    return holder


@pytest.fixture
def client(store, push_service, upstream, tmp_path):
    def dispatch(request: httpx.Request) -> httpx.Response:
        upstream.requests.append(request)
        return upstream.handler(request)

    notion = NotionService(
        api_url="https://api.notion.com/v1",
        notion_version="2022-06-28",
        page_size=20,
        cache_ttl=0,
        transport=httpx.MockTransport(dispatch),
    )
    auth_service = LocalAuthService(store)
    storage = LocalStorageService(str(tmp_path / "media"), "http://testserver")

    app.dependency_overrides[dependencies.get_db_client] = lambda: store
    app.dependency_overrides[dependencies.get_auth_service] = lambda: auth_service
    app.dependency_overrides[dependencies.get_storage_service] = lambda: storage
    app.dependency_overrides[dependencies.get_push_service] = lambda: push_service
    app.dependency_overrides[dependencies.get_notion_service] = lambda: notion
    app.dependency_overrides[dependencies.get_link_preview_service] = lambda: LinkPreviewService(
        transport=httpx.MockTransport(dispatch)
    )
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


def signup(client, email: str, name: str) -> dict:
    response = client.post(
        "/api/v1/auth/signup",
        json={"email": email, "password": PASSWORD, "name": name},
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]


@pytest.fixture
def alice(client):
    return signup(client, "alice", "Alice")


@pytest.fixture
def bob(client):
    return signup(client, "bob", "Bob")


@pytest.fixture
def couple(client, alice, bob):
    """Alice and Bob connected; returns both accounts and the couple."""
    response = client.post(
        "/api/v1/couples/connect",
        json={"invite_code": bob["user"]["inviteCode"].lower()},
        headers=auth_header(alice["token"]),
    )
    assert response.status_code == 201, response.text
    return {"alice": alice, "bob": bob, "couple": response.json()["data"]}
