"""
Item Request Schemas
Write payloads for diaries, memories, events and letters. Category-specific
rules are checked by the items layer; these schemas only shape the input.
"""

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ItemWriteRequest(BaseModel):
    """Fields accepted for any item category; unknown fields are rejected."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="forbid")

    id: Optional[str] = Field(default=None, description="Client-generated id for optimistic writes")
    title: Optional[str] = None
    content: Optional[str] = None
    date: Optional[str] = Field(default=None, description="yyyy-MM-dd or ISO datetime")
    images: Optional[List[str]] = None

    # diary
    mood: Optional[str] = None
    weather: Optional[str] = None
    tags: Optional[List[str]] = None

    # event
    time: Optional[str] = None
    end_date: Optional[str] = None
    note: Optional[str] = None
    color: Optional[str] = None
    is_important: Optional[bool] = None
    is_shared: Optional[bool] = None
    url: Optional[str] = None

    # letter
    open_date: Optional[str] = None

    def to_fields(self) -> Dict[str, Any]:
        """Camel-case fields that were actually sent."""
        return self.model_dump(by_alias=True, exclude_unset=True)
