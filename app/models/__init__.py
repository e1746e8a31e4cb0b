"""
Dear23 Models
Firestore document representations and data models.
"""

from app.models.user import FirestoreModel, NotionConfig, UserModel
from app.models.couple import CoupleModel, Notice
from app.models.item import (
    AppItem,
    CalendarEvent,
    DiaryEntry,
    ItemCategory,
    Letter,
    Memory,
    build_item,
)
from app.models.message import ChatMessage, MessageType, ReplyTo

__all__ = [
    "FirestoreModel",
    "NotionConfig",
    "UserModel",
    "CoupleModel",
    "Notice",
    "AppItem",
    "CalendarEvent",
    "DiaryEntry",
    "ItemCategory",
    "Letter",
    "Memory",
    "build_item",
    "ChatMessage",
    "MessageType",
    "ReplyTo",
]
