"""
Item CRUD Operations
Diary entries, memories, events and letters under ``couples/{id}/{category}``.
"""

import uuid
from typing import Any, Dict, List, Optional

from pydantic import ValidationError as PydanticValidationError

from app.crud.base import DESCENDING, BaseCRUD, snapshot_to_dict
from app.models.item import ItemCategory, build_item
from app.utils import datetime_utils
from app.utils.exceptions import AuthorizationError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

# Fields a client may never set directly.
PROTECTED_FIELDS = {"id", "authorId", "type", "createdAt", "updatedAt", "coupleId"}


def new_item_id() -> str:
    return uuid.uuid4().hex


def validate_item(category: ItemCategory, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Check the per-category required fields and normalise the document.

    Returns:
        Firestore-ready item data (camelCase, without ``id``)
    """
    try:
        item = build_item(category, data)
    except PydanticValidationError as e:
        raise ValidationError("Invalid item", details={"errors": e.errors(include_url=False, include_context=False, include_input=False)}) from e

    title = item.title.strip()
    content = item.content.strip()

    if category == ItemCategory.EVENTS and not title:
        raise ValidationError("Event title is required")
    if category == ItemCategory.LETTERS and not content:
        raise ValidationError("Letter content is required")
    if category == ItemCategory.DIARIES and not (title or content):
        raise ValidationError("Diary entry needs a title or content")
    if category == ItemCategory.MEMORIES and not (content or item.images):
        raise ValidationError("Memory needs content or at least one image")
    if datetime_utils.to_utc(item.date) is None:
        raise ValidationError("Invalid date", details={"date": item.date})

    item.title = title
    doc = item.model_dump(by_alias=True, exclude={"id", "created_at", "updated_at"})
    return doc


def present_letter(letter: Dict[str, Any], viewer_uid: str) -> Dict[str, Any]:
    """
    Annotate a letter for one reader.

    A scheduled letter stays sealed for its recipient until ``openDate``:
    its content and preview are withheld and ``isLocked`` is set.
    """
    data = dict(letter)
    sent = data.get("authorId") == viewer_uid
    data["direction"] = "sent" if sent else "received"
    locked = not sent and datetime_utils.is_future(data.get("openDate"))
    data["isLocked"] = locked
    if locked:
        data["content"] = ""
        data["previewText"] = ""
    return data


class ItemCRUD(BaseCRUD):
    """CRUD operations for one item category of one couple."""

    def __init__(self, db, couple_id: str, category: ItemCategory):
        super().__init__(db)
        self.couple_id = couple_id
        self.category = ItemCategory(category)

    @property
    def collection_path(self) -> str:
        return f"couples/{self.couple_id}/{self.category.value}"

    def snapshot_query(self):
        """Query the realtime feed listens to."""
        return self.get_collection().order_by("date", direction=DESCENDING)

    def add(self, data: Dict[str, Any], author_id: str, author_name: str, item_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Validate and store a new item.

        Args:
            data: Client supplied fields
            author_id: uid of the writer
            author_name: Display name of the writer
            item_id: Optional client id so an optimistic copy matches the stored one

        Returns:
            The stored item
        """
        payload = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        payload.update({"authorId": author_id, "author": author_name})
        payload.setdefault("date", datetime_utils.now().date().isoformat())
        doc = validate_item(self.category, payload)
        doc["coupleId"] = self.couple_id

        item_id = self.create(doc, item_id or new_item_id())
        logger.info(f"{self.category.item_type} {item_id} added to couple {self.couple_id}")
        return self.require(item_id, self.category.item_type)

    def edit(self, item_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """Apply field changes after re-validating the merged item."""
        current = self.require(item_id, self.category.item_type)
        changes = {k: v for k, v in changes.items() if k not in PROTECTED_FIELDS}
        if not changes:
            return current
        merged = {**current, **changes}
        validated = validate_item(self.category, merged)
        update = {k: validated[k] for k in validated if k in changes or k == "previewText"}
        self.update(item_id, update)
        return self.require(item_id, self.category.item_type)

    def list(self, page_size: int = 20, cursor: Optional[str] = None) -> Dict[str, Any]:
        return self.list_page("date", DESCENDING, page_size, cursor)

    def recent(self, count: int) -> List[Dict[str, Any]]:
        docs = self.snapshot_query().limit(count).get()
        return [snapshot_to_dict(doc) for doc in docs]

    def mark_read(self, item_id: str, reader_uid: str) -> Dict[str, Any]:
        """Mark a letter read; only its recipient may do so."""
        if self.category != ItemCategory.LETTERS:
            raise ValidationError("Only letters can be marked read")
        letter = self.require(item_id, "Letter")
        if letter.get("authorId") == reader_uid:
            raise AuthorizationError("Only the recipient can mark a letter read")
        if datetime_utils.is_future(letter.get("openDate")):
            raise AuthorizationError("This letter cannot be opened yet", details={"openDate": letter.get("openDate")})
        if not letter.get("isRead"):
            self.update(item_id, {"isRead": True})
            letter["isRead"] = True
        return letter


def home_feed(db, couple_id: str, count: int = 20) -> List[Dict[str, Any]]:
    """Most recent diaries and memories of a couple, newest first."""
    items: List[Dict[str, Any]] = []
    for category in (ItemCategory.DIARIES, ItemCategory.MEMORIES):
        items.extend(ItemCRUD(db, couple_id, category).recent(count))
    items.sort(key=lambda item: datetime_utils.date_sort_key(item.get("date")), reverse=True)
    return items[:count]
