"""
Standard API Response Wrappers
Generic response schemas for API endpoints.
"""

from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, Field

from app.utils.datetime_utils import serialize

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    """Standard API response wrapper."""

    success: bool = Field(description="Whether the operation was successful")
    data: Optional[T] = Field(default=None, description="Response data")
    message: str = Field(default="", description="Response message")

    @classmethod
    def success_response(cls, data: Any = None, message: str = "Success") -> "ApiResponse":
        """Create a successful response; datetimes in ``data`` become ISO strings."""
        return cls(success=True, data=serialize(data), message=message)


class ErrorBody(BaseModel):
    code: str = Field(description="Error code")
    message: str = Field(description="Error message")
    details: Dict[str, Any] = Field(default_factory=dict, description="Additional error details")


class ErrorResponse(BaseModel):
    """Shape of every error produced by the error handler middleware."""

    success: bool = False
    error: ErrorBody
