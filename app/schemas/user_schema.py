"""
User Request Schemas
API schemas for profile management.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator

from app.models.user import THEMES

# Request field -> Firestore field
PROFILE_FIELDS = {
    "name": "name",
    "photo_url": "photoURL",
    "status_message": "statusMessage",
    "hobbies": "hobbies",
    "mbti": "mbti",
    "birth_date": "birthDate",
    "partner_nickname": "partnerNickname",
    "bg_image": "bgImage",
    "theme": "theme",
}


class UpdateProfileRequest(BaseModel):
    """Update user profile request. Omitted fields are left unchanged."""

    name: Optional[str] = Field(default=None, min_length=1, max_length=40)
    photo_url: Optional[str] = Field(default=None, description="Profile image URL")
    status_message: Optional[str] = Field(default=None, max_length=100)
    hobbies: Optional[str] = Field(default=None, max_length=200)
    mbti: Optional[str] = Field(default=None, max_length=4)
    birth_date: Optional[str] = Field(default=None, description="yyyy-MM-dd")
    partner_nickname: Optional[str] = Field(default=None, max_length=40)
    bg_image: Optional[str] = None
    theme: Optional[str] = None

    @field_validator("theme")
    @classmethod
    def validate_theme(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and v not in THEMES:
            raise ValueError(f"Theme must be one of {', '.join(THEMES)}")
        return v

    @field_validator("mbti")
    @classmethod
    def upper_mbti(cls, v: Optional[str]) -> Optional[str]:
        return v.upper() if v else v

    def to_update(self) -> Dict[str, Any]:
        """Firestore field updates for the fields that were sent."""
        sent = self.model_dump(exclude_unset=True)
        return {PROFILE_FIELDS[key]: value for key, value in sent.items()}


class FcmTokenRequest(BaseModel):
    token: str = Field(min_length=1, description="FCM registration token")


class PushSettingRequest(BaseModel):
    enabled: bool


class NotionConfigRequest(BaseModel):
    """Notion integration credentials. An empty api_key keeps the stored one."""

    api_key: Optional[str] = None
    database_id: Optional[str] = None


class CheckedRequest(BaseModel):
    target: str = Field(pattern="^(diary|feed)$", description="Which badge to clear")
