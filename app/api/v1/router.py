"""Main v1 API router that aggregates all sub-routers."""

from fastapi import APIRouter

from app.schemas.responses import ErrorResponse

from .auth import router as auth_router
from .users import router as users_router
from .couples import router as couples_router
from .items import router as items_router
from .chat import router as chat_router
from .uploads import router as uploads_router
from .notion import router as notion_router
from .realtime import router as realtime_router

# Main v1 router
router = APIRouter(
    prefix="/api/v1",
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)

router.include_router(auth_router, prefix="/auth", tags=["Auth"])
router.include_router(users_router, prefix="/users", tags=["Users"])
router.include_router(couples_router, prefix="/couples", tags=["Couples"])
router.include_router(items_router, prefix="/items", tags=["Items"])
router.include_router(chat_router, prefix="/chat", tags=["Chat"])
router.include_router(uploads_router, prefix="/uploads", tags=["Uploads"])
router.include_router(notion_router, prefix="/notion", tags=["Notion"])
router.include_router(realtime_router, prefix="/realtime", tags=["Realtime"])

__all__ = ["router"]
