"""
Configuration module for the Dear23 backend.
Loads settings from .env file and environment variables.
"""

import os
from pathlib import Path
from typing import List

# Try to load .env file
_env_path = Path(__file__).parent.parent / ".env"
if _env_path.exists():
    with open(_env_path) as f:
        for line in f:
            line = line.strip()
            if line and not line.startswith("#") and "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip().strip('"').strip("'")
                if key and key not in os.environ:
                    os.environ[key] = value


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class Settings:
    """Application configuration loaded from environment variables."""

    def __init__(self):
        self.app_name: str = os.getenv("APP_NAME", "Dear23")
        self.api_version: str = os.getenv("API_VERSION", "v1")
        self.debug: bool = _flag("DEBUG", "true")
        self.environment: str = os.getenv("ENVIRONMENT", "development")

        # Firebase
        self.firebase_credentials_path: str = os.getenv("FIREBASE_CREDENTIALS_PATH", "")
        self.firebase_web_api_key: str = os.getenv("FIREBASE_WEB_API_KEY", "")
        self.storage_bucket: str = os.getenv("STORAGE_BUCKET", "")

        # Login ids without "@" are mapped onto this domain
        self.synthetic_email_domain: str = os.getenv("SYNTHETIC_EMAIL_DOMAIN", "dear23.app")

        # CORS
        cors_raw = os.getenv("CORS_ORIGINS", "*")
        self.cors_origins: List[str] = [s.strip() for s in cors_raw.split(",")]

        # Local dev mode storage (empty LOCAL_DATA_DIR keeps everything in memory)
        self.local_data_dir: str = os.getenv("LOCAL_DATA_DIR", "./data")
        self.local_media_dir: str = os.getenv("LOCAL_MEDIA_DIR", "./media")
        self.public_base_url: str = os.getenv("PUBLIC_BASE_URL", "http://localhost:8000").rstrip("/")

        # Push
        self.push_link_url: str = os.getenv("PUSH_LINK_URL", "/chat")

        # Notion proxy
        self.notion_api_url: str = os.getenv("NOTION_API_URL", "https://api.notion.com/v1")
        self.notion_version: str = os.getenv("NOTION_VERSION", "2022-06-28")
        self.notion_page_size: int = int(os.getenv("NOTION_PAGE_SIZE", "20"))
        self.notion_cache_ttl: int = int(os.getenv("NOTION_CACHE_TTL", "60"))

        # Uploads
        self.max_upload_bytes: int = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))

        # Security (local dev tokens)
        self.secret_key: str = os.getenv("SECRET_KEY", "dear23-dev-secret")
        self.algorithm: str = os.getenv("ALGORITHM", "HS256")
        self.access_token_expire_minutes: int = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", str(60 * 24 * 7)))

    @property
    def is_local_mode(self) -> bool:
        """True when no usable Firebase service-account file is configured."""
        path = self.firebase_credentials_path
        return not path or not os.path.exists(path)


_settings = None


def get_settings() -> Settings:
    """Get application settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
