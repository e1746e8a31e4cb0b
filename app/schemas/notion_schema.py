"""Notion Proxy Request Schemas"""

from typing import Optional

from pydantic import BaseModel, Field


class NotionMemoriesRequest(BaseModel):
    target_user_id: Optional[str] = Field(default=None, description="Read the partner's database instead of your own")
    start_cursor: Optional[str] = None


class NotionSearchRequest(BaseModel):
    api_key: str = Field(min_length=1)


class NotionSchemaRequest(BaseModel):
    api_key: str = Field(min_length=1)
    database_id: str = Field(min_length=1)
