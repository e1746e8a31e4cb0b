"""Couple pairing endpoints: invite codes, connect, disconnect and couple settings."""

from fastapi import APIRouter, Depends, status

from app.crud.couple import CoupleCRUD, present_couple
from app.dependencies import (
    CoupleContext,
    ensure_unlocked,
    get_couple_context,
    get_current_user,
    get_db_client,
    get_user_profile,
)
from app.schemas.couple_schema import ConnectRequest, StartDateRequest
from app.schemas.responses import ApiResponse
from app.schemas.user_schema import NotionConfigRequest
from app.utils.exceptions import CoupleRequiredError
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/invite-code", response_model=ApiResponse)
async def get_invite_code(profile: dict = Depends(get_user_profile)) -> ApiResponse:
    return ApiResponse.success_response({"inviteCode": profile.get("inviteCode"), "coupleId": profile.get("coupleId")})


@router.post("/connect", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def connect(
    request: ConnectRequest,
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Connect with the owner of an invite code.

    Raises:
        NotFoundError: Unknown invite code
        ValidationError: Own invite code
        ConflictError: Either user already has a partner
    """
    couple = CoupleCRUD(db_client).connect(current_user["uid"], request.invite_code)
    return ApiResponse.success_response(present_couple(couple), "Connected")


@router.get("/me", response_model=ApiResponse)
async def get_my_couple(context: CoupleContext = Depends(get_couple_context)) -> ApiResponse:
    """The caller's couple, with the D-day counter."""
    return ApiResponse.success_response(present_couple(context.couple))


@router.put("/me/start-date", response_model=ApiResponse)
async def update_start_date(
    request: StartDateRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    couples = CoupleCRUD(db_client)
    couples.update_start_date(context.couple_id, request.start_date)
    return ApiResponse.success_response(present_couple(couples.require(context.couple_id, "Couple")))


@router.put("/me/notion", response_model=ApiResponse)
async def save_couple_notion_config(
    request: NotionConfigRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    updates = {"notionConfig.databaseId": request.database_id or None}
    if request.api_key:
        updates["notionConfig.apiKey"] = request.api_key
    couples = CoupleCRUD(db_client)
    couples.update(context.couple_id, updates, touch=False)
    couple = present_couple(couples.require(context.couple_id, "Couple"))
    return ApiResponse.success_response(couple["notionConfig"], "Notion settings saved")


@router.delete("/me", response_model=ApiResponse)
async def disconnect(
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Disconnect from the partner.

    Both users lose their ``coupleId``; the couple's diaries, letters and chat
    stay stored under the old couple id.
    """
    couple_id = profile.get("coupleId")
    if not couple_id:
        raise CoupleRequiredError("You are not connected with a partner")
    ensure_unlocked(db_client, profile, current_user["token"])
    CoupleCRUD(db_client).disconnect(current_user["uid"], couple_id)
    return ApiResponse.success_response(None, "Disconnected")
