"""
Item Models
Diary entries, memories, calendar events and letters stored as
subcollections under a couple (``couples/{id}/{category}``).
"""

from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import Field

from app.models.user import FirestoreModel

PREVIEW_LENGTH = 50


class ItemCategory(str, Enum):
    """Subcollection names under a couple document."""

    DIARIES = "diaries"
    MEMORIES = "memories"
    EVENTS = "events"
    LETTERS = "letters"

    @property
    def item_type(self) -> str:
        return {
            ItemCategory.DIARIES: "Diary",
            ItemCategory.MEMORIES: "Memory",
            ItemCategory.EVENTS: "Event",
            ItemCategory.LETTERS: "Letter",
        }[self]


class AppItem(FirestoreModel):
    """Common shape of every couple item."""

    id: Optional[str] = None
    title: str = ""
    content: str = ""
    date: str = Field(description="ISO date (yyyy-MM-dd) or datetime used for ordering")
    images: List[str] = Field(default_factory=list)
    author_id: str
    author: str = ""
    type: str = ""
    created_at: Any = None
    updated_at: Any = None


class DiaryEntry(AppItem):
    mood: Optional[str] = None
    weather: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class Memory(AppItem):
    pass


class CalendarEvent(AppItem):
    time: Optional[str] = None
    end_date: Optional[str] = None
    note: Optional[str] = None
    color: Optional[str] = None
    is_important: bool = False
    is_shared: bool = True
    url: Optional[str] = None


class Letter(AppItem):
    is_read: bool = False
    open_date: Optional[str] = None
    preview_text: str = ""


ITEM_MODELS = {
    ItemCategory.DIARIES: DiaryEntry,
    ItemCategory.MEMORIES: Memory,
    ItemCategory.EVENTS: CalendarEvent,
    ItemCategory.LETTERS: Letter,
}


def build_item(category: ItemCategory, data: Dict[str, Any]) -> AppItem:
    """Validate raw item data with the model for its category."""
    model = ITEM_MODELS[category]
    item = model.model_validate({**data, "type": category.item_type})
    if isinstance(item, Letter):
        item.preview_text = item.content.strip()[:PREVIEW_LENGTH]
    return item
