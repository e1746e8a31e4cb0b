"""
Message CRUD Operations
Chat messages under ``couples/{id}/messages``.
"""

from typing import Any, Dict, List, Optional

from google.cloud.firestore import SERVER_TIMESTAMP

from app.crud.base import DESCENDING, BaseCRUD, snapshot_to_dict
from app.models.message import ChatMessage, MessageType, ReplyTo
from app.utils.exceptions import AuthorizationError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

REPLY_PREVIEW_LENGTH = 100
DEFAULT_HISTORY = 50


class MessageCRUD(BaseCRUD):
    """CRUD operations for the chat of one couple."""

    def __init__(self, db, couple_id: str):
        super().__init__(db)
        self.couple_id = couple_id

    @property
    def collection_path(self) -> str:
        return f"couples/{self.couple_id}/messages"

    def list_messages(self, limit: int = DEFAULT_HISTORY) -> List[Dict[str, Any]]:
        """
        Latest ``limit`` messages, oldest first.

        The newest page is read in descending order and then reversed so the
        conversation renders top to bottom.
        """
        if limit < 1:
            raise ValidationError("limit must be positive")
        docs = self.get_collection().order_by("createdAt", direction=DESCENDING).limit(limit).get()
        messages = [snapshot_to_dict(doc) for doc in docs]
        messages.reverse()
        return messages

    def send(
        self,
        sender_id: str,
        text: str = "",
        message_type: MessageType = MessageType.TEXT,
        image_url: Optional[str] = None,
        reply_to_id: Optional[str] = None,
        names: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Store a new message.

        Args:
            sender_id: uid of the sender
            text: Message text (required for text messages)
            message_type: text or image
            image_url: Public URL of an uploaded image
            reply_to_id: Id of the message being answered
            names: uid -> display name, used for the reply preview

        Returns:
            The stored message
        """
        text = (text or "").strip()
        message_type = MessageType(message_type)
        if message_type == MessageType.TEXT and not text:
            raise ValidationError("Message text is required")
        if message_type == MessageType.IMAGE and not image_url:
            raise ValidationError("Image messages need an image URL")

        message = ChatMessage(sender_id=sender_id, text=text, type=message_type, image_url=image_url)

        if reply_to_id:
            original = self.require(reply_to_id, "Message")
            preview = "Photo" if original.get("type") == MessageType.IMAGE.value else original.get("text", "")
            message.reply_to = ReplyTo(
                id=reply_to_id,
                text=preview[:REPLY_PREVIEW_LENGTH],
                sender_name=(names or {}).get(original.get("senderId"), "Unknown"),
            )

        data = message.to_dict()
        data["createdAt"] = SERVER_TIMESTAMP
        doc_ref = self.get_collection().document()
        doc_ref.set(data)
        logger.debug(f"Message {doc_ref.id} sent in couple {self.couple_id}")
        return self.require(doc_ref.id, "Message")

    def soft_delete(self, message_id: str, uid: str) -> Dict[str, Any]:
        """Hide a message's content. Only its sender may do this."""
        message = self.require(message_id, "Message")
        if message.get("senderId") != uid:
            raise AuthorizationError("You can only delete your own messages")
        self.update(
            message_id,
            {"isDeleted": True, "text": "", "type": MessageType.TEXT.value, "imageUrl": None},
            touch=False,
        )
        return self.require(message_id, "Message")

    def toggle_reaction(self, message_id: str, uid: str, emoji: str) -> Dict[str, Any]:
        """Add or remove ``uid`` from ``reactions[emoji]``."""
        emoji = emoji.strip()
        if not emoji:
            raise ValidationError("Emoji is required")
        message = self.require(message_id, "Message")
        if message.get("isDeleted"):
            raise ValidationError("Cannot react to a deleted message")

        reactions = dict(message.get("reactions") or {})
        users = list(reactions.get(emoji, []))
        if uid in users:
            users.remove(uid)
        else:
            users.append(uid)

        # Emoji keys are not valid dotted field paths, so the map is rewritten whole.
        if users:
            reactions[emoji] = users
        else:
            reactions.pop(emoji, None)
        self.update(message_id, {"reactions": reactions}, touch=False)
        return self.require(message_id, "Message")

    def latest(self) -> Optional[Dict[str, Any]]:
        """Most recent message that was not deleted."""
        query = self.get_collection().order_by("createdAt", direction=DESCENDING).limit(20)
        for doc in query.get():
            data = snapshot_to_dict(doc)
            if not data.get("isDeleted"):
                return data
        return None
