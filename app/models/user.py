"""
User Model
Represents a user profile document stored in Firestore (``users/{uid}``).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

THEMES = ("light", "dark", "system")


class FirestoreModel(BaseModel):
    """Base for documents stored with camelCase field names."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a Firestore document (camelCase keys)."""
        return self.model_dump(by_alias=True)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]):
        """Create from a Firestore document."""
        return cls.model_validate(data)


class NotionConfig(FirestoreModel):
    """Notion integration credentials."""

    api_key: Optional[str] = Field(default=None, description="Notion integration secret")
    database_id: Optional[str] = Field(default=None, description="Notion database id")

    @property
    def is_complete(self) -> bool:
        return bool(self.api_key and self.database_id)


class UserModel(FirestoreModel):
    """User model representing a profile in Firestore."""

    uid: str = Field(description="Unique user ID (from Firebase Auth)")
    email: Optional[str] = Field(default=None, description="Login email (may be synthetic)")
    name: Optional[str] = Field(default=None, description="Display name")
    photo_url: Optional[str] = Field(default=None, alias="photoURL", description="Profile image URL")
    couple_id: Optional[str] = Field(default=None, description="Couple document id, null while unpaired")
    invite_code: str = Field(default="", description="Code a partner enters to connect")
    passcode: Optional[str] = Field(default=None, description="Hashed app-lock passcode")
    notion_config: NotionConfig = Field(default_factory=NotionConfig)
    theme: str = Field(default="system")
    bg_image: Optional[str] = None
    is_push_enabled: bool = True
    fcm_tokens: List[str] = Field(default_factory=list)
    unread_count: int = 0
    is_chat_active: bool = False
    last_active: Optional[datetime] = None
    status_message: Optional[str] = None
    hobbies: Optional[str] = None
    partner_nickname: Optional[str] = None
    mbti: Optional[str] = None
    birth_date: Optional[str] = None
    last_checked_diary: Optional[datetime] = None
    last_checked_feed: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, v: str) -> str:
        if v not in THEMES:
            raise ValueError(f"Theme must be one of {', '.join(THEMES)}")
        return v

    @property
    def has_passcode(self) -> bool:
        return bool(self.passcode)

    def to_public(self) -> Dict[str, Any]:
        """Profile as returned by the API: secrets removed."""
        data = self.to_dict()
        data.pop("passcode", None)
        data.pop("fcmTokens", None)
        data["notionConfig"] = {
            "databaseId": self.notion_config.database_id,
            "hasApiKey": bool(self.notion_config.api_key),
        }
        data["hasPasscode"] = self.has_passcode
        return data

    def to_partner_view(self) -> Dict[str, Any]:
        """What a user may see of their partner's profile."""
        public = self.to_public()
        for key in ("email", "notionConfig", "hasPasscode", "inviteCode", "unreadCount",
                    "lastCheckedDiary", "lastCheckedFeed", "theme", "bgImage"):
            public.pop(key, None)
        return public
