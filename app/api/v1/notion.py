"""Notion proxy endpoints. Notion secrets stay on the server."""

from fastapi import APIRouter, Depends

from app.crud.user import UserCRUD
from app.dependencies import (
    ensure_unlocked,
    get_current_user,
    get_db_client,
    get_notion_service,
    get_user_profile,
)
from app.models.user import NotionConfig
from app.schemas.notion_schema import NotionMemoriesRequest, NotionSchemaRequest, NotionSearchRequest
from app.schemas.responses import ApiResponse
from app.utils.exceptions import AuthorizationError, Dear23Exception, NotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _resolve_target(db_client, current_user: dict, profile: dict, target_user_id: str) -> dict:
    """
    Profile whose Notion database is read: the caller's or their partner's.

    Reading the partner's database is couple data, so a locked session is refused.
    """
    uid = current_user["uid"]
    if not target_user_id or target_user_id == uid:
        return profile

    ensure_unlocked(db_client, profile, current_user["token"])
    couple_id = profile.get("coupleId")
    target = UserCRUD(db_client).get_by_id(target_user_id)
    if not couple_id or target is None or target.get("coupleId") != couple_id:
        raise AuthorizationError("You can only read your own or your partner's Notion")
    return target


@router.post("/memories")
async def get_notion_memories(
    request: NotionMemoriesRequest,
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
    notion_service=Depends(get_notion_service),
) -> dict:
    """
    One page of memories from a Notion database.

    Returns:
        ``{"data": [...], "hasMore": bool, "nextCursor": str | None}``

    Raises:
        NotFoundError: The target user has no Notion configuration
        Dear23Exception: 400 when the configuration is incomplete
        ExternalServiceError: Notion rejected the request
    """
    target = _resolve_target(db_client, current_user, profile, request.target_user_id)
    config = NotionConfig.model_validate(target.get("notionConfig") or {})

    if not config.api_key and not config.database_id:
        raise NotFoundError("Notion configuration not found for this user.")
    if not config.is_complete:
        raise Dear23Exception(
            "Incomplete Notion configuration.",
            status_code=400,
            error_code="NOTION_CONFIG_INCOMPLETE",
        )

    return await notion_service.query_memories(config.api_key, config.database_id, request.start_cursor)


@router.post("/databases", response_model=ApiResponse)
async def search_notion_databases(
    request: NotionSearchRequest,
    current_user: dict = Depends(get_current_user),
    notion_service=Depends(get_notion_service),
) -> ApiResponse:
    """Databases the integration behind ``api_key`` can see."""
    databases = await notion_service.search_databases(request.api_key)
    return ApiResponse.success_response(databases)


@router.post("/schema", response_model=ApiResponse)
async def validate_notion_schema(
    request: NotionSchemaRequest,
    current_user: dict = Depends(get_current_user),
    notion_service=Depends(get_notion_service),
) -> ApiResponse:
    """Add the properties the app needs to a Notion database."""
    result = await notion_service.validate_schema(request.api_key, request.database_id)
    logger.info(f"Notion schema check by {current_user['uid']}: {result['status']}")
    return ApiResponse.success_response(result)
