"""Image upload endpoints."""

from enum import Enum

from fastapi import APIRouter, Depends, File, Query, UploadFile, status

from app.config import get_settings
from app.dependencies import (
    get_couple_context,
    get_current_user,
    get_db_client,
    get_storage_service,
    get_user_profile,
)
from app.schemas.responses import ApiResponse
from app.services.storage_service import (
    chat_image_path,
    feed_image_path,
    profile_image_path,
    validate_upload,
)
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


class UploadKind(str, Enum):
    FEED = "feed"
    CHAT = "chat"
    PROFILE = "profile"


@router.post("/images", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def upload_image(
    file: UploadFile = File(...),
    kind: UploadKind = Query(UploadKind.FEED),
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
    storage_service=Depends(get_storage_service),
    settings=Depends(get_settings),
) -> ApiResponse:
    """
    Upload an image and get its public URL.

    Feed and chat images are stored under the caller's couple and need a
    partner; profile images only need an account.

    Raises:
        UploadError: Not an image, empty, or over the size limit
        CoupleRequiredError: Feed or chat upload without a couple
    """
    data = await file.read(settings.max_upload_bytes + 1)
    validate_upload(data, file.content_type, settings.max_upload_bytes)

    if kind == UploadKind.PROFILE:
        path = profile_image_path(current_user["uid"], file.filename)
    else:
        context = get_couple_context(current_user, profile, db_client)
        if kind == UploadKind.CHAT:
            path = chat_image_path(context.couple_id, file.filename)
        else:
            path = feed_image_path(context.couple_id, file.filename)

    url = storage_service.upload(path, data, file.content_type)
    logger.info(f"{kind.value} image uploaded by {current_user['uid']}: {path}")
    return ApiResponse.success_response({"url": url, "path": path}, "Upload complete")
