"""Chat endpoints: messages, reactions, notice, typing and presence."""

from typing import Any, Dict

from fastapi import APIRouter, Depends, Query, status

from app.crud.couple import CoupleCRUD
from app.crud.message import MessageCRUD
from app.crud.user import UserCRUD
from app.dependencies import (
    CoupleContext,
    get_couple_context,
    get_db_client,
    get_link_preview_service,
    get_push_service,
)
from app.models.message import MessageType
from app.schemas.chat_schema import (
    NoticeRequest,
    PresenceRequest,
    ReactionRequest,
    SendMessageRequest,
    TypingRequest,
)
from app.schemas.responses import ApiResponse
from app.utils.exceptions import ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()

PUSH_BODY_LENGTH = 100


def notify_partner(db_client, push_service, context: CoupleContext, message: Dict[str, Any]) -> bool:
    """
    Bump the partner's unread badge and push the message to their devices.

    No push is sent when the partner turned push off, is looking at the chat
    right now, or has no registered device. Push failures are logged only.

    Returns:
        True if a push was handed to the push service
    """
    if not context.partner_id:
        return False

    users = UserCRUD(db_client)
    users.increment_unread(context.partner_id)
    partner = users.get_by_id(context.partner_id)
    if partner is None:
        return False
    if partner.get("isPushEnabled") is False or partner.get("isChatActive"):
        return False
    tokens = partner.get("fcmTokens") or []
    if not tokens:
        return False

    body = "Photo" if message.get("type") == MessageType.IMAGE.value else message.get("text", "")
    try:
        push_service.send(
            tokens,
            title=context.name,
            body=body[:PUSH_BODY_LENGTH],
            badge=partner.get("unreadCount", 0),
        )
    except Exception as e:
        logger.error(f"Push to {context.partner_id} failed: {e}", exc_info=True)
        return False
    return True


@router.get("/messages", response_model=ApiResponse)
async def list_messages(
    limit: int = Query(50, ge=1, le=500),
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Latest messages, oldest first."""
    return ApiResponse.success_response(MessageCRUD(db_client, context.couple_id).list_messages(limit))


@router.post("/messages", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    request: SendMessageRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
    push_service=Depends(get_push_service),
) -> ApiResponse:
    """
    Send a text or image message.

    Raises:
        ValidationError: Empty text, or an image message without image_url
        NotFoundError: reply_to_id does not exist
    """
    names = {context.uid: context.name}
    if context.partner_id:
        partner = UserCRUD(db_client).get_by_id(context.partner_id) or {}
        names[context.partner_id] = partner.get("name") or "Partner"

    message = MessageCRUD(db_client, context.couple_id).send(
        context.uid,
        text=request.text,
        message_type=request.type,
        image_url=request.image_url,
        reply_to_id=request.reply_to_id,
        names=names,
    )
    CoupleCRUD(db_client).set_typing(context.couple_id, context.uid, False)
    pushed = notify_partner(db_client, push_service, context, message)
    logger.debug(f"Message {message['id']} sent by {context.uid} (push: {pushed})")
    return ApiResponse.success_response(message, "Message sent")


@router.delete("/messages/{message_id}", response_model=ApiResponse)
async def delete_message(
    message_id: str,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Soft-delete one of your own messages."""
    message = MessageCRUD(db_client, context.couple_id).soft_delete(message_id, context.uid)
    return ApiResponse.success_response(message, "Message deleted")


@router.post("/messages/{message_id}/reactions", response_model=ApiResponse)
async def toggle_reaction(
    message_id: str,
    request: ReactionRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    message = MessageCRUD(db_client, context.couple_id).toggle_reaction(message_id, context.uid, request.emoji)
    return ApiResponse.success_response(message)


@router.get("/recent", response_model=ApiResponse)
async def recent_message(
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Latest visible message, shown on the home screen."""
    return ApiResponse.success_response(MessageCRUD(db_client, context.couple_id).latest())


@router.put("/notice", response_model=ApiResponse)
async def pin_notice(
    request: NoticeRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Pin a message as the couple notice."""
    message = MessageCRUD(db_client, context.couple_id).require(request.message_id, "Message")
    if message.get("isDeleted") or not message.get("text"):
        raise ValidationError("Only text messages can be pinned")
    notice = CoupleCRUD(db_client).set_notice(context.couple_id, message["id"], message["text"])
    return ApiResponse.success_response(notice, "Notice pinned")


@router.delete("/notice", response_model=ApiResponse)
async def clear_notice(
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    CoupleCRUD(db_client).clear_notice(context.couple_id)
    return ApiResponse.success_response(None, "Notice cleared")


@router.put("/typing", response_model=ApiResponse)
async def set_typing(
    request: TypingRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    CoupleCRUD(db_client).set_typing(context.couple_id, context.uid, request.is_typing)
    return ApiResponse.success_response({"isTyping": request.is_typing})


@router.put("/presence", response_model=ApiResponse)
async def set_presence(
    request: PresenceRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Entering the chat also clears the caller's unread badge."""
    UserCRUD(db_client).set_chat_active(context.uid, request.active)
    return ApiResponse.success_response({"isChatActive": request.active})


@router.get("/link-preview", response_model=ApiResponse)
async def link_preview(
    url: str = Query(..., min_length=1),
    context: CoupleContext = Depends(get_couple_context),
    preview_service=Depends(get_link_preview_service),
) -> ApiResponse:
    """Open Graph title, description and image of a shared link."""
    return ApiResponse.success_response(await preview_service.fetch(url))
