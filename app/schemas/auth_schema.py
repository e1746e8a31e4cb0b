"""
Auth Request Schemas
Sign-up, sign-in and passcode payloads.
"""

import re
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

PIN_PATTERN = re.compile(r"[0-9]{4}")


class SignUpRequest(BaseModel):
    """User signup request."""

    email: str = Field(min_length=1, description="Email address or login id")
    password: str = Field(min_length=6, description="Password (minimum 6 characters)")
    confirm_password: Optional[str] = Field(default=None, description="Must match password when given")
    name: str = Field(min_length=1, max_length=40, description="Display name")

    @field_validator("email", "name")
    @classmethod
    def strip_value(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Field must not be blank")
        return v

    @model_validator(mode="after")
    def passwords_match(self) -> "SignUpRequest":
        if self.confirm_password is not None and self.confirm_password != self.password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    """User login request."""

    email: str = Field(min_length=1, description="Email address or login id")
    password: str = Field(min_length=1, description="Password")


def _check_pin(v: str) -> str:
    if not PIN_PATTERN.fullmatch(v):
        raise ValueError("Passcode must be exactly 4 digits")
    return v


class SetPasscodeRequest(BaseModel):
    pin: str
    confirm_pin: str

    @field_validator("pin", "confirm_pin")
    @classmethod
    def validate_pin(cls, v: str) -> str:
        return _check_pin(v)

    @model_validator(mode="after")
    def pins_match(self) -> "SetPasscodeRequest":
        if self.pin != self.confirm_pin:
            raise ValueError("Passcodes do not match")
        return self


class PasscodeRequest(BaseModel):
    """Unlock the session, or disable the passcode."""

    pin: str

    @field_validator("pin")
    @classmethod
    def validate_pin(cls, v: str) -> str:
        return _check_pin(v)
