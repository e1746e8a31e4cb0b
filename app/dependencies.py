"""
Shared application dependencies.
Supports both Firebase mode and local development mode.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Depends, Header, HTTPException, status

from app.config import Settings, get_settings
from app.crud.user import UserCRUD
from app.utils.exceptions import CoupleRequiredError, Dear23Exception, NotFoundError, PasscodeError
from app.utils.logger import bind_context, get_logger

logger = get_logger(__name__)

# Global Instances
_db_client = None
_auth_service = None
_storage_service = None
_push_service = None
_notion_service = None
_link_preview_service = None
_is_local_mode = None


def _check_local_mode() -> bool:
    """Determine if we should use local mode (no Firebase)."""
    global _is_local_mode
    if _is_local_mode is not None:
        return _is_local_mode

    settings = get_settings()
    if settings.is_local_mode:
        logger.info("Firebase credentials not found - running in LOCAL DEV mode")
        _is_local_mode = True
    else:
        from app.services.firebase.auth_service import init_firebase_app

        init_firebase_app(settings.firebase_credentials_path, settings.storage_bucket)
        _is_local_mode = False

    return _is_local_mode


def get_db_client(settings: Settings = Depends(get_settings)):
    """Get database client - Firestore in prod, LocalStore in dev."""
    global _db_client
    if _db_client is not None:
        return _db_client

    if _check_local_mode():
        from app.services.local_store import get_local_store
        _db_client = get_local_store()
        logger.info("Using LocalStore database")
    else:
        from firebase_admin import firestore
        _db_client = firestore.client()
        logger.info("Using Firestore database")

    return _db_client


def get_auth_service(settings: Settings = Depends(get_settings), db_client=Depends(get_db_client)):
    """Get the authentication backend for the current mode."""
    global _auth_service
    if _auth_service is not None:
        return _auth_service

    if _check_local_mode():
        from app.services.firebase.auth_service import LocalAuthService
        _auth_service = LocalAuthService(db_client)
    else:
        from app.services.firebase.auth_service import FirebaseAuthService
        _auth_service = FirebaseAuthService(
            web_api_key=settings.firebase_web_api_key,
            credentials_path=settings.firebase_credentials_path,
            storage_bucket=settings.storage_bucket,
        )
    return _auth_service


def get_storage_service(settings: Settings = Depends(get_settings)):
    """Get object storage - Firebase Storage in prod, media dir in dev."""
    global _storage_service
    if _storage_service is not None:
        return _storage_service

    if _check_local_mode():
        from app.services.storage_service import LocalStorageService
        _storage_service = LocalStorageService(settings.local_media_dir, settings.public_base_url)
    else:
        from app.services.storage_service import FirebaseStorageService
        _storage_service = FirebaseStorageService(settings.storage_bucket)
    return _storage_service


def get_push_service(settings: Settings = Depends(get_settings)):
    """Get the push notification sender."""
    global _push_service
    if _push_service is not None:
        return _push_service

    if _check_local_mode():
        from app.services.push_service import LocalPushService
        _push_service = LocalPushService(settings.push_link_url)
    else:
        from app.services.push_service import PushService
        _push_service = PushService(settings.push_link_url)
    return _push_service


def get_notion_service(settings: Settings = Depends(get_settings)):
    global _notion_service
    if _notion_service is None:
        from app.services.notion_service import NotionService
        _notion_service = NotionService(
            api_url=settings.notion_api_url,
            notion_version=settings.notion_version,
            page_size=settings.notion_page_size,
            cache_ttl=settings.notion_cache_ttl,
        )
    return _notion_service


def get_link_preview_service():
    global _link_preview_service
    if _link_preview_service is None:
        from app.services.link_preview_service import LinkPreviewService
        _link_preview_service = LinkPreviewService()
    return _link_preview_service


def extract_bearer_token(authorization: Optional[str]) -> str:
    """Pull the token out of an ``Authorization: Bearer`` header."""
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header missing",
        )

    if not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format",
        )

    return authorization[len("Bearer "):].strip()


async def get_current_user(
    authorization: Optional[str] = Header(None),
    auth_service=Depends(get_auth_service),
) -> Dict[str, str]:
    """Get current user from auth token."""
    token = extract_bearer_token(authorization)
    try:
        claims = await auth_service.verify_token(token)
    except Dear23Exception as e:
        logger.warning(f"Token verification failed: {e.message}")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")
    bind_context(uid=claims["uid"])
    return {"uid": claims["uid"], "email": claims.get("email", ""), "token": token}


def get_user_profile(
    current_user: dict = Depends(get_current_user),
    db_client=Depends(get_db_client),
) -> Dict[str, Any]:
    """The caller's user document."""
    profile = UserCRUD(db_client).get_by_id(current_user["uid"])
    if profile is None:
        raise NotFoundError("User profile not found", details={"uid": current_user["uid"]})
    return profile


@dataclass
class CoupleContext:
    """Everything a couple-scoped endpoint needs about the caller."""

    uid: str
    token: str
    user: Dict[str, Any]
    couple_id: str
    couple: Dict[str, Any]

    @property
    def name(self) -> str:
        return self.user.get("name") or "Unknown"

    @property
    def partner_id(self) -> Optional[str]:
        return next((m for m in self.couple.get("members", []) if m != self.uid), None)


def ensure_unlocked(db_client, user: Dict[str, Any], token: str) -> None:
    """Raise PasscodeError while a passcode-protected session is locked."""
    if user.get("passcode") and not UserCRUD(db_client).is_session_unlocked(user["id"], token):
        raise PasscodeError("Session is locked. Enter your passcode to continue.")


def get_couple_context(
    current_user: dict = Depends(get_current_user),
    profile: dict = Depends(get_user_profile),
    db_client=Depends(get_db_client),
) -> CoupleContext:
    """
    Resolve the caller's couple.

    Raises:
        CoupleRequiredError: The caller is not connected with a partner
        PasscodeError: The session is still locked
    """
    couple_id = profile.get("coupleId")
    if not couple_id:
        raise CoupleRequiredError()

    couple_doc = db_client.collection("couples").document(couple_id).get()
    if not couple_doc.exists:
        raise CoupleRequiredError("Your couple no longer exists")

    ensure_unlocked(db_client, profile, current_user["token"])

    couple = couple_doc.to_dict()
    couple["id"] = couple_id
    return CoupleContext(
        uid=current_user["uid"],
        token=current_user["token"],
        user=profile,
        couple_id=couple_id,
        couple=couple,
    )
