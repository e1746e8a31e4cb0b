"""
Dear23 Schemas
Pydantic request/response schemas for API validation and documentation.
"""

from app.schemas.auth_schema import (
    LoginRequest,
    PasscodeRequest,
    SetPasscodeRequest,
    SignUpRequest,
)
from app.schemas.user_schema import (
    CheckedRequest,
    FcmTokenRequest,
    NotionConfigRequest,
    PushSettingRequest,
    UpdateProfileRequest,
)
from app.schemas.couple_schema import ConnectRequest, StartDateRequest
from app.schemas.item_schema import ItemWriteRequest
from app.schemas.chat_schema import (
    NoticeRequest,
    PresenceRequest,
    ReactionRequest,
    SendMessageRequest,
    TypingRequest,
)
from app.schemas.notion_schema import (
    NotionMemoriesRequest,
    NotionSchemaRequest,
    NotionSearchRequest,
)
from app.schemas.responses import ApiResponse, ErrorResponse

__all__ = [
    "LoginRequest",
    "PasscodeRequest",
    "SetPasscodeRequest",
    "SignUpRequest",
    "CheckedRequest",
    "FcmTokenRequest",
    "NotionConfigRequest",
    "PushSettingRequest",
    "UpdateProfileRequest",
    "ConnectRequest",
    "StartDateRequest",
    "ItemWriteRequest",
    "NoticeRequest",
    "PresenceRequest",
    "ReactionRequest",
    "SendMessageRequest",
    "TypingRequest",
    "NotionMemoriesRequest",
    "NotionSchemaRequest",
    "NotionSearchRequest",
    "ApiResponse",
    "ErrorResponse",
]
