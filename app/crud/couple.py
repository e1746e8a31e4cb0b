"""
Couple CRUD Operations
Pairing two accounts and the couple-level settings they share.
"""

from typing import Any, Dict

from google.cloud import firestore
from google.cloud.firestore import SERVER_TIMESTAMP

from app.crud.base import BaseCRUD
from app.crud.user import UserCRUD
from app.models.couple import CoupleModel
from app.utils import datetime_utils
from app.utils.exceptions import ConflictError, NotFoundError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)


class CoupleCRUD(BaseCRUD):
    """CRUD operations for couple documents."""

    @property
    def collection_path(self) -> str:
        return "couples"

    def connect(self, uid: str, invite_code: str) -> Dict[str, Any]:
        """
        Pair the caller with the owner of ``invite_code``.

        Both users' ``coupleId`` are re-read and written in one transaction,
        so two people entering the same code at once cannot both succeed.

        Raises:
            NotFoundError: Unknown invite code
            ValidationError: The caller entered their own code
            ConflictError: Either account is already in a couple
        """
        users = UserCRUD(self.db)
        partner = users.get_by_invite_code(invite_code)
        if partner is None:
            raise NotFoundError("Invalid invite code")
        if partner["id"] == uid:
            raise ValidationError("You cannot enter your own invite code")

        my_ref = users.document(uid)
        partner_ref = users.document(partner["id"])
        couple_ref = self.get_collection().document()

        @firestore.transactional
        def _connect_transaction(transaction):
            me = my_ref.get(transaction=transaction)
            partner_doc = partner_ref.get(transaction=transaction)
            if not me.exists:
                raise NotFoundError("User not found", details={"id": uid})
            if (me.to_dict() or {}).get("coupleId"):
                raise ConflictError("You are already connected with a partner")
            if not partner_doc.exists or (partner_doc.to_dict() or {}).get("coupleId"):
                raise ConflictError("This partner is already connected with someone else")

            couple = CoupleModel(
                members=[uid, partner["id"]],
                start_date=datetime_utils.now().date().isoformat(),
                chat_id=couple_ref.id,
            )
            data = couple.model_dump(by_alias=True, exclude={"id"})
            data["createdAt"] = SERVER_TIMESTAMP

            transaction.set(couple_ref, data)
            transaction.update(my_ref, {"coupleId": couple_ref.id, "updatedAt": SERVER_TIMESTAMP})
            transaction.update(partner_ref, {"coupleId": couple_ref.id, "updatedAt": SERVER_TIMESTAMP})

        _connect_transaction(self.db.transaction())
        logger.info(f"Couple {couple_ref.id} created for {uid} and {partner['id']}")
        return self.require(couple_ref.id, "Couple")

    def disconnect(self, uid: str, couple_id: str) -> None:
        """
        Unpair both members.

        Only the users' ``coupleId`` is cleared; the couple document and its
        subcollections stay where they are.
        """
        users = UserCRUD(self.db)
        couple = self.get_by_id(couple_id)
        members = couple["members"] if couple else [uid]

        batch = self.db.batch()
        for member in members:
            member_doc = users.get_by_id(member)
            if member_doc and member_doc.get("coupleId") == couple_id:
                batch.update(users.document(member), {"coupleId": None, "updatedAt": SERVER_TIMESTAMP})
        batch.commit()
        logger.info(f"Couple {couple_id} disconnected by {uid}")

    def update_start_date(self, couple_id: str, start_date: str) -> None:
        if datetime_utils.to_utc(start_date) is None:
            raise ValidationError("Invalid start date", details={"startDate": start_date})
        self.update(couple_id, {"startDate": start_date}, touch=False)

    def set_notice(self, couple_id: str, message_id: str, text: str) -> Dict[str, Any]:
        notice = {"id": message_id, "text": text, "createdAt": datetime_utils.to_iso(datetime_utils.now())}
        self.update(couple_id, {"notice": notice}, touch=False)
        return notice

    def clear_notice(self, couple_id: str) -> None:
        self.update(couple_id, {"notice": None}, touch=False)

    def set_typing(self, couple_id: str, uid: str, is_typing: bool) -> None:
        self.update(couple_id, {f"typing.{uid}": is_typing}, touch=False)


def present_couple(couple: Dict[str, Any]) -> Dict[str, Any]:
    """Couple document as returned by the API, with the D-day counter."""
    data = dict(couple)
    api_key = (data.get("notionConfig") or {}).get("apiKey")
    data["notionConfig"] = {
        "databaseId": (data.get("notionConfig") or {}).get("databaseId"),
        "hasApiKey": bool(api_key),
    }
    data["daysTogether"] = datetime_utils.days_together(data.get("startDate"))
    return data
