"""Chat Request Schemas"""

from typing import Optional

from pydantic import BaseModel, Field

from app.models.message import MessageType


class SendMessageRequest(BaseModel):
    text: str = Field(default="", max_length=5000)
    type: MessageType = MessageType.TEXT
    image_url: Optional[str] = None
    reply_to_id: Optional[str] = Field(default=None, description="Id of the message being answered")


class ReactionRequest(BaseModel):
    emoji: str = Field(min_length=1, max_length=16)


class NoticeRequest(BaseModel):
    message_id: str


class TypingRequest(BaseModel):
    is_typing: bool


class PresenceRequest(BaseModel):
    active: bool
