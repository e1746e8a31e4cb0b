"""
User CRUD Operations
Database operations for user profiles.
"""

import hashlib
import secrets
import string
from typing import Any, Dict, Optional

from google.cloud.firestore import ArrayRemove, ArrayUnion, Increment, SERVER_TIMESTAMP

from app.core.security import hash_secret
from app.crud.base import BaseCRUD, snapshot_to_dict
from app.models.user import UserModel
from app.utils.exceptions import ConflictError
from app.utils.logger import get_logger

logger = get_logger(__name__)

INVITE_CODE_LENGTH = 6
INVITE_CODE_ALPHABET = string.ascii_uppercase + string.digits
_INVITE_CODE_ATTEMPTS = 10


def session_key(token: str) -> str:
    """Stable, non-reversible id for a bearer token."""
    return hashlib.sha256(token.encode()).hexdigest()[:32]


class UserCRUD(BaseCRUD):
    """CRUD operations for user documents."""

    @property
    def collection_path(self) -> str:
        return "users"

    def get_by_invite_code(self, code: str) -> Optional[Dict[str, Any]]:
        """
        Get user by invite code.

        Args:
            code: Invite code (case-insensitive)

        Returns:
            User document data or None if not found
        """
        code = code.strip().upper()
        if not code:
            return None
        docs = self.get_collection().where("inviteCode", "==", code).limit(1).get()
        if docs:
            return snapshot_to_dict(docs[0])
        return None

    def generate_invite_code(self) -> str:
        """Generate an invite code that no other user holds."""
        for _ in range(_INVITE_CODE_ATTEMPTS):
            code = "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(INVITE_CODE_LENGTH))
            if self.get_by_invite_code(code) is None:
                return code
        raise ConflictError("Could not allocate a unique invite code")

    def create_user(self, user: UserModel) -> str:
        """
        Create the profile document for a freshly registered account.

        Args:
            user: UserModel instance (invite code assigned when empty)

        Returns:
            Created user ID (uid)
        """
        if not user.invite_code:
            user.invite_code = self.generate_invite_code()
        data = user.to_dict()
        data.update({"createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP})
        self.document(user.uid).set(data)
        logger.info(f"User profile created: {user.uid} (invite code {user.invite_code})")
        return user.uid

    def get_model(self, uid: str) -> Optional[UserModel]:
        data = self.get_by_id(uid)
        return UserModel.from_dict(data) if data else None

    def regenerate_invite_code(self, uid: str) -> str:
        code = self.generate_invite_code()
        self.update(uid, {"inviteCode": code})
        return code

    def add_fcm_token(self, uid: str, token: str) -> None:
        self.update(uid, {"fcmTokens": ArrayUnion([token])})

    def remove_fcm_token(self, uid: str, token: str) -> None:
        self.update(uid, {"fcmTokens": ArrayRemove([token])})

    def set_passcode(self, uid: str, passcode: Optional[str]) -> None:
        """Store a hashed passcode, or clear it with ``None``."""
        self.update(uid, {"passcode": hash_secret(passcode) if passcode else None})

    def increment_unread(self, uid: str, amount: int = 1) -> None:
        self.update(uid, {"unreadCount": Increment(amount)}, touch=False)

    def set_chat_active(self, uid: str, active: bool) -> None:
        """Chat presence: entering also clears the unread badge."""
        data: Dict[str, Any] = {"isChatActive": active, "lastActive": SERVER_TIMESTAMP}
        if active:
            data["unreadCount"] = 0
        self.update(uid, data, touch=False)

    def mark_checked(self, uid: str, field: str) -> None:
        self.update(uid, {field: SERVER_TIMESTAMP}, touch=False)

    # ── Session unlock state ────────────────────────────────────

    def _session_ref(self, uid: str, token: str):
        return self.document(uid).collection("sessions").document(session_key(token))

    def unlock_session(self, uid: str, token: str) -> None:
        self._session_ref(uid, token).set({"unlocked": True, "unlockedAt": SERVER_TIMESTAMP})

    def is_session_unlocked(self, uid: str, token: str) -> bool:
        return self._session_ref(uid, token).get().exists

    def forget_session(self, uid: str, token: str) -> None:
        self._session_ref(uid, token).delete()
