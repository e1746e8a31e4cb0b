"""User profile, preference, push and passcode endpoints."""

from fastapi import APIRouter, Depends

from app.core.security import verify_secret
from app.crud.user import UserCRUD
from app.dependencies import (
    CoupleContext,
    ensure_unlocked,
    get_couple_context,
    get_current_user,
    get_db_client,
    get_user_profile,
)
from app.models.user import UserModel
from app.schemas.auth_schema import PasscodeRequest, SetPasscodeRequest
from app.schemas.responses import ApiResponse
from app.schemas.user_schema import (
    CheckedRequest,
    FcmTokenRequest,
    NotionConfigRequest,
    PushSettingRequest,
    UpdateProfileRequest,
)
from app.utils.exceptions import ConflictError, NotFoundError, PasscodeError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()

CHECKED_FIELDS = {"diary": "lastCheckedDiary", "feed": "lastCheckedFeed"}


def _public(db_client, uid: str) -> dict:
    return UserCRUD(db_client).get_model(uid).to_public()


@router.get("/me", response_model=ApiResponse)
async def get_current_user_profile(profile: dict = Depends(get_user_profile)) -> ApiResponse:
    """Get current user's profile. The passcode hash is never returned."""
    return ApiResponse.success_response(UserModel.from_dict(profile).to_public())


@router.patch("/me", response_model=ApiResponse)
async def update_profile(
    request: UpdateProfileRequest,
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Update profile fields.

    Raises:
        ValidationError: If the request carries no field
    """
    updates = request.to_update()
    if not updates:
        raise ValidationError("No fields to update")

    UserCRUD(db_client).update(current_user["uid"], updates)
    logger.info(f"Profile updated for {current_user['uid']}: {sorted(updates)}")
    return ApiResponse.success_response(_public(db_client, current_user["uid"]), "Profile updated")


@router.get("/partner", response_model=ApiResponse)
async def get_partner_profile(
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    partner = UserCRUD(db_client).get_model(context.partner_id) if context.partner_id else None
    if partner is None:
        raise NotFoundError("Partner profile not found")
    return ApiResponse.success_response(partner.to_partner_view())


@router.post("/me/invite-code", response_model=ApiResponse)
async def regenerate_invite_code(
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Issue a new invite code. Only possible while not connected."""
    if profile.get("coupleId"):
        raise ConflictError("Invite codes cannot change while connected")
    code = UserCRUD(db_client).regenerate_invite_code(current_user["uid"])
    return ApiResponse.success_response({"inviteCode": code}, "Invite code regenerated")


@router.post("/me/fcm-tokens", response_model=ApiResponse)
async def register_fcm_token(
    request: FcmTokenRequest,
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    UserCRUD(db_client).add_fcm_token(current_user["uid"], request.token)
    return ApiResponse.success_response(None, "Device registered")


@router.delete("/me/fcm-tokens/{token}", response_model=ApiResponse)
async def remove_fcm_token(
    token: str,
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    UserCRUD(db_client).remove_fcm_token(current_user["uid"], token)
    return ApiResponse.success_response(None, "Device removed")


@router.put("/me/push", response_model=ApiResponse)
async def set_push_enabled(
    request: PushSettingRequest,
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    UserCRUD(db_client).update(current_user["uid"], {"isPushEnabled": request.enabled})
    return ApiResponse.success_response({"isPushEnabled": request.enabled})


@router.put("/me/notion", response_model=ApiResponse)
async def save_notion_config(
    request: NotionConfigRequest,
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Save the Notion integration secret and database id."""
    updates = {"notionConfig.databaseId": request.database_id or None}
    if request.api_key:
        updates["notionConfig.apiKey"] = request.api_key
    UserCRUD(db_client).update(current_user["uid"], updates)
    return ApiResponse.success_response(_public(db_client, current_user["uid"])["notionConfig"], "Notion settings saved")


@router.post("/me/checked", response_model=ApiResponse)
async def mark_checked(
    request: CheckedRequest,
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Clear the new-content badge of the diary or the feed."""
    UserCRUD(db_client).mark_checked(current_user["uid"], CHECKED_FIELDS[request.target])
    return ApiResponse.success_response(None)


@router.post("/me/passcode", response_model=ApiResponse)
async def set_passcode(
    request: SetPasscodeRequest,
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Set or change the app-lock passcode. The current session stays unlocked.

    Raises:
        PasscodeError: A passcode exists and this session has not been unlocked with it
    """
    ensure_unlocked(db_client, profile, current_user["token"])
    users = UserCRUD(db_client)
    users.set_passcode(current_user["uid"], request.pin)
    users.unlock_session(current_user["uid"], current_user["token"])
    logger.info(f"Passcode set for {current_user['uid']}")
    return ApiResponse.success_response({"hasPasscode": True}, "Passcode set")


@router.post("/me/passcode/disable", response_model=ApiResponse)
async def disable_passcode(
    request: PasscodeRequest,
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Remove the passcode after checking the current one.

    Raises:
        PasscodeError: If the passcode is wrong
    """
    if profile.get("passcode") and not verify_secret(request.pin, profile["passcode"]):
        raise PasscodeError()
    UserCRUD(db_client).set_passcode(current_user["uid"], None)
    return ApiResponse.success_response({"hasPasscode": False}, "Passcode disabled")
