"""Couple Request Schemas"""

from pydantic import BaseModel, Field, field_validator


class ConnectRequest(BaseModel):
    """Partner's invite code (case-insensitive, surrounding spaces ignored)."""

    invite_code: str = Field(min_length=1)

    @field_validator("invite_code")
    @classmethod
    def normalise_code(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Invite code is required")
        return v


class StartDateRequest(BaseModel):
    start_date: str = Field(description="yyyy-MM-dd")
