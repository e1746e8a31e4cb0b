"""
Couple Model
The pairing document shared by two users (``couples/{id}``).
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field, field_validator

from app.models.user import FirestoreModel, NotionConfig

MAX_MEMBERS = 2


class Notice(FirestoreModel):
    """A chat message pinned to the top of the conversation."""

    id: str
    text: str
    created_at: Any = None


class CoupleModel(FirestoreModel):
    """Couple document linking exactly two member uids."""

    id: Optional[str] = None
    members: List[str] = Field(description="Member uids")
    start_date: str = Field(description="ISO date the couple started")
    chat_id: str = Field(default="", description="Chat room id")
    notion_config: NotionConfig = Field(default_factory=NotionConfig)
    notice: Optional[Notice] = None
    typing: Dict[str, bool] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    @field_validator("members")
    @classmethod
    def validate_members(cls, v: List[str]) -> List[str]:
        if len(v) > MAX_MEMBERS or len(set(v)) != len(v):
            raise ValueError("A couple has at most two distinct members")
        return v
