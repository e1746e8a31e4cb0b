"""
Chat Message Model
Messages stored under ``couples/{id}/messages``.
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from app.models.user import FirestoreModel


class MessageType(str, Enum):
    TEXT = "text"
    IMAGE = "image"


class ReplyTo(FirestoreModel):
    """Denormalised preview of the message being replied to."""

    id: str
    text: str
    sender_name: str


class ChatMessage(FirestoreModel):
    id: Optional[str] = None
    text: str = ""
    sender_id: str
    created_at: Any = None
    type: MessageType = MessageType.TEXT
    image_url: Optional[str] = None
    is_read: bool = False
    is_deleted: bool = False
    reply_to: Optional[ReplyTo] = None
    reactions: Dict[str, List[str]] = Field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude={"id"}, mode="python")
        data["type"] = self.type.value
        return data
