"""
Base CRUD Class
Base class for Firestore CRUD operations.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from google.api_core.exceptions import Conflict, NotFound
from google.cloud.firestore import SERVER_TIMESTAMP

from app.utils.exceptions import ConflictError, NotFoundError, ValidationError

DESCENDING = "DESCENDING"
ASCENDING = "ASCENDING"
MAX_PAGE_SIZE = 100


def snapshot_to_dict(doc) -> Dict[str, Any]:
    """Document snapshot data with its id folded in."""
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


class BaseCRUD(ABC):
    """
    Base CRUD class for Firestore operations.

    Works against either the Firestore client or the LocalStore; both expose
    the same collection/document API.
    """

    def __init__(self, db):
        """
        Initialize CRUD with a document store client.

        Args:
            db: Firestore client or LocalStore instance
        """
        self.db = db

    @property
    @abstractmethod
    def collection_path(self) -> str:
        """Slash-separated collection path. Must be implemented by subclass."""

    def get_collection(self) -> Any:
        """
        Get collection reference.

        Returns:
            Collection reference
        """
        return self.db.collection(self.collection_path)

    def document(self, doc_id: str) -> Any:
        return self.get_collection().document(doc_id)

    def create(self, data: Dict[str, Any], doc_id: Optional[str] = None) -> str:
        """
        Create a new document.

        Args:
            data: Document data dictionary
            doc_id: Optional id; an id is generated when omitted

        Returns:
            Created document ID

        Raises:
            ConflictError: A document with ``doc_id`` already exists
        """
        data = {**data, "createdAt": SERVER_TIMESTAMP, "updatedAt": SERVER_TIMESTAMP}
        data.pop("id", None)
        if not doc_id:
            doc_ref = self.get_collection().document()
            doc_ref.set(data)
            return doc_ref.id

        try:
            self.document(doc_id).create(data)
        except Conflict as e:
            raise ConflictError("A document with this id already exists", details={"id": doc_id}) from e
        return doc_id

    def get_by_id(self, doc_id: str) -> Optional[Dict[str, Any]]:
        """
        Get document by ID.

        Returns:
            Document data or None if not found
        """
        doc = self.document(doc_id).get()
        if doc.exists:
            return snapshot_to_dict(doc)
        return None

    def require(self, doc_id: str, label: str = "Document") -> Dict[str, Any]:
        """Get a document or raise NotFoundError."""
        data = self.get_by_id(doc_id)
        if data is None:
            raise NotFoundError(f"{label} not found", details={"id": doc_id})
        return data

    def update(self, doc_id: str, data: Dict[str, Any], touch: bool = True) -> None:
        """
        Update fields of an existing document.

        Args:
            doc_id: Document ID
            data: Fields to update (dotted paths allowed)
            touch: Refresh ``updatedAt``

        Raises:
            NotFoundError: If the document does not exist
        """
        if touch:
            data = {**data, "updatedAt": SERVER_TIMESTAMP}
        try:
            self.document(doc_id).update(data)
        except NotFound as e:
            raise NotFoundError("Document not found", details={"id": doc_id}) from e

    def delete(self, doc_id: str) -> bool:
        """
        Delete a document.

        Returns:
            True if deleted, False if it did not exist
        """
        doc_ref = self.document(doc_id)
        if not doc_ref.get().exists:
            return False
        doc_ref.delete()
        return True

    def exists(self, doc_id: str) -> bool:
        return self.document(doc_id).get().exists

    def list_page(
        self,
        order_by: str,
        direction: str = DESCENDING,
        page_size: int = 20,
        cursor: Optional[str] = None,
        filters: Optional[List[tuple]] = None,
    ) -> Dict[str, Any]:
        """
        List documents with cursor pagination.

        Args:
            order_by: Field to order results by
            direction: ASCENDING or DESCENDING
            page_size: Items per page
            cursor: Id of the last document of the previous page
            filters: List of (field, operator, value) tuples

        Returns:
            Dictionary with items, next_cursor and has_more
        """
        if page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(f"page_size must be between 1 and {MAX_PAGE_SIZE}")

        query = self.get_collection()
        for field, operator, value in filters or []:
            query = query.where(field, operator, value)
        query = query.order_by(order_by, direction=direction)

        if cursor:
            cursor_doc = self.document(cursor).get()
            if not cursor_doc.exists:
                raise ValidationError("Unknown pagination cursor", details={"cursor": cursor})
            query = query.start_after(cursor_doc)

        items = [snapshot_to_dict(doc) for doc in query.limit(page_size).get()]
        has_more = len(items) == page_size

        return {
            "items": items,
            "next_cursor": items[-1]["id"] if items and has_more else None,
            "has_more": has_more,
        }
