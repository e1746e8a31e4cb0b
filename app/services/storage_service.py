"""
Object storage for uploaded images.

In FIREBASE mode files go to the project's Cloud Storage bucket and are made
public; in LOCAL mode they are written under ``LOCAL_MEDIA_DIR`` and served
by the app from ``/media``.
"""

import re
import time
from pathlib import Path, PurePosixPath
from typing import Optional

from firebase_admin import storage

from app.utils.exceptions import ExternalServiceError, UploadError
from app.utils.logger import get_logger

logger = get_logger(__name__)

_UNSAFE_CHARS = re.compile(r"[^\w.\-]+", re.UNICODE)
_DEFAULT_EXTENSION = "jpg"


def sanitize_filename(filename: Optional[str]) -> str:
    """Strip directories and unsafe characters from a client file name."""
    name = PurePosixPath((filename or "").replace("\\", "/")).name
    name = _UNSAFE_CHARS.sub("_", name).strip("._")
    return name or "image"


def _timestamp() -> int:
    return int(time.time() * 1000)


def feed_image_path(couple_id: str, filename: Optional[str]) -> str:
    return f"couples/{couple_id}/feed_images/{_timestamp()}_{sanitize_filename(filename)}"


def chat_image_path(couple_id: str, filename: Optional[str]) -> str:
    return f"couples/{couple_id}/chat_images/{_timestamp()}_{sanitize_filename(filename)}"


def profile_image_path(uid: str, filename: Optional[str]) -> str:
    suffix = PurePosixPath(sanitize_filename(filename)).suffix.lstrip(".").lower()
    return f"profile_images/{uid}/{_timestamp()}.{suffix or _DEFAULT_EXTENSION}"


def validate_upload(data: bytes, content_type: Optional[str], max_bytes: int) -> None:
    """
    Reject anything that is not a non-empty image within the size limit.

    Raises:
        UploadError: On a wrong content type, an empty file or an oversized file
    """
    if not content_type or not content_type.startswith("image/"):
        raise UploadError("Only image uploads are allowed", details={"contentType": content_type})
    if not data:
        raise UploadError("Uploaded file is empty")
    if len(data) > max_bytes:
        raise UploadError(
            "Uploaded file is too large",
            details={"size": len(data), "maxBytes": max_bytes},
        )


class FirebaseStorageService:
    """Uploads to the Firebase Storage bucket."""

    def __init__(self, bucket_name: Optional[str] = None):
        self.bucket_name = bucket_name or None

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        """
        Upload bytes and return their public URL.

        Args:
            path: Object path inside the bucket
            data: File contents
            content_type: MIME type stored with the object
        """
        try:
            bucket = storage.bucket(self.bucket_name)
            blob = bucket.blob(path)
            blob.upload_from_string(data, content_type=content_type)
            blob.make_public()
        except Exception as e:
            logger.error(f"Storage upload failed for {path}: {e}", exc_info=True)
            raise ExternalServiceError("Upload to storage failed", details={"path": path}) from e
        logger.info(f"Uploaded {len(data)} bytes to {path}")
        return blob.public_url


class LocalStorageService:
    """Writes uploads to disk; the app serves them under ``/media``."""

    def __init__(self, media_dir: str, base_url: str):
        self.media_dir = Path(media_dir)
        self.base_url = base_url.rstrip("/")

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        target = (self.media_dir / path).resolve()
        if self.media_dir.resolve() not in target.parents:
            raise UploadError("Invalid upload path", details={"path": path})
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            logger.error(f"Local upload failed for {path}: {e}")
            raise ExternalServiceError("Could not store the upload", details={"path": path}) from e
        logger.info(f"Stored {len(data)} bytes at {target}")
        return f"{self.base_url}/media/{path}"
