"""Upload helpers and the push senders."""

from unittest.mock import MagicMock, patch

import pytest

from app.services import push_service
from app.services.storage_service import (
    LocalStorageService,
    profile_image_path,
    sanitize_filename,
    validate_upload,
)
from app.utils.exceptions import UploadError


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("photo.jpg", "photo.jpg"),
        ("../../etc/passwd", "passwd"),
        ("C:\\Users\\me\\my pic.png", "my_pic.png"),
        ("", "image"),
        (None, "image"),
    ],
)
def test_sanitize_filename(raw, expected):
    assert sanitize_filename(raw) == expected


def test_profile_image_path_defaults_to_jpg():
    assert profile_image_path("u1", "avatar").startswith("profile_images/u1/")
    assert profile_image_path("u1", "avatar").endswith(".jpg")
    assert profile_image_path("u1", "avatar.PNG").endswith(".png")


def test_validate_upload_limits():
    validate_upload(b"1234", "image/png", 4)

    with pytest.raises(UploadError):
        validate_upload(b"12345", "image/png", 4)
    with pytest.raises(UploadError):
        validate_upload(b"1234", "application/pdf", 4)
    with pytest.raises(UploadError):
        validate_upload(b"1234", None, 4)


def test_local_storage_refuses_paths_outside_media_dir(tmp_path):
    storage = LocalStorageService(str(tmp_path), "http://localhost:8000/")

    assert storage.upload("a/b.png", b"x", "image/png") == "http://localhost:8000/media/a/b.png"
    with pytest.raises(UploadError):
        storage.upload("../escape.png", b"x", "image/png")


def test_local_push_records_defaults():
    sender = push_service.LocalPushService("/chat")

    assert sender.send([], title="ignored") == {"success_count": 0, "failure_count": 0}
    sender.send(["t1", "t2"], badge=3)

    assert sender.sent == [{
        "tokens": ["t1", "t2"],
        "title": "New Message",
        "body": "You have a new message!",
        "link": "/chat",
        "badge": 3,
    }]


def test_fcm_push_builds_multicast_message():
    response = MagicMock(success_count=1, failure_count=1)
    with patch.object(push_service.messaging, "send_each_for_multicast", return_value=response) as send:
        result = push_service.PushService("/chat").send(["a", "b"], title="Alice", body="hi", badge=2)

    message = send.call_args[0][0]
    assert message.tokens == ["a", "b"]
    assert message.notification.title == "Alice"
    assert message.data == {"badge": "2"}
    assert message.webpush.fcm_options.link == "/chat"
    assert result == {"success_count": 1, "failure_count": 1}
