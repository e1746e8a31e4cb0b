"""Diary, memory, event and letter endpoints, plus the home feed."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, status

from app.crud.item import ItemCRUD, home_feed, present_letter
from app.dependencies import CoupleContext, get_couple_context, get_db_client
from app.models.item import ItemCategory
from app.schemas.item_schema import ItemWriteRequest
from app.schemas.responses import ApiResponse
from app.utils.exceptions import NotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


def _present(category: ItemCategory, item: dict, uid: str) -> dict:
    if category == ItemCategory.LETTERS:
        return present_letter(item, uid)
    return item


@router.get("/home", response_model=ApiResponse)
async def get_home_feed(
    limit: int = Query(20, ge=1, le=100),
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """Latest diaries and memories merged, newest first."""
    return ApiResponse.success_response(home_feed(db_client, context.couple_id, limit))


@router.get("/{category}", response_model=ApiResponse)
async def list_items(
    category: ItemCategory,
    page_size: int = Query(20, ge=1, le=100),
    cursor: Optional[str] = Query(None, description="Id of the last item of the previous page"),
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    List one category, newest ``date`` first.

    Returns:
        Page with items, next_cursor and has_more
    """
    page = ItemCRUD(db_client, context.couple_id, category).list(page_size, cursor)
    page["items"] = [_present(category, item, context.uid) for item in page["items"]]
    return ApiResponse.success_response(page)


@router.post("/{category}", response_model=ApiResponse, status_code=status.HTTP_201_CREATED)
async def create_item(
    category: ItemCategory,
    request: ItemWriteRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Add an item. A client-supplied ``id`` is kept so an optimistic copy and
    the stored document share it.

    Raises:
        ValidationError: If the category's required fields are missing
        ConflictError: If an item with the given id already exists
    """
    fields = request.to_fields()
    item_id = fields.pop("id", None)
    crud = ItemCRUD(db_client, context.couple_id, category)
    item = crud.add(fields, context.uid, context.name, item_id=item_id)
    return ApiResponse.success_response(_present(category, item, context.uid), f"{category.item_type} saved")


@router.get("/{category}/{item_id}", response_model=ApiResponse)
async def get_item(
    category: ItemCategory,
    item_id: str,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    item = ItemCRUD(db_client, context.couple_id, category).require(item_id, category.item_type)
    return ApiResponse.success_response(_present(category, item, context.uid))


@router.patch("/{category}/{item_id}", response_model=ApiResponse)
async def update_item(
    category: ItemCategory,
    item_id: str,
    request: ItemWriteRequest,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    fields = request.to_fields()
    fields.pop("id", None)
    item = ItemCRUD(db_client, context.couple_id, category).edit(item_id, fields)
    return ApiResponse.success_response(_present(category, item, context.uid), f"{category.item_type} updated")


@router.delete("/{category}/{item_id}", response_model=ApiResponse)
async def delete_item(
    category: ItemCategory,
    item_id: str,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    if not ItemCRUD(db_client, context.couple_id, category).delete(item_id):
        raise NotFoundError(f"{category.item_type} not found", details={"id": item_id})
    logger.info(f"{category.item_type} {item_id} deleted from couple {context.couple_id}")
    return ApiResponse.success_response(None, f"{category.item_type} deleted")


@router.post("/letters/{item_id}/read", response_model=ApiResponse)
async def read_letter(
    item_id: str,
    context: CoupleContext = Depends(get_couple_context),
    db_client=Depends(get_db_client),
) -> ApiResponse:
    """
    Mark a received letter as read.

    Raises:
        AuthorizationError: The caller wrote the letter, or it is still sealed
    """
    letter = ItemCRUD(db_client, context.couple_id, ItemCategory.LETTERS).mark_read(item_id, context.uid)
    return ApiResponse.success_response(present_letter(letter, context.uid), "Letter opened")
