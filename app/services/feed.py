"""
Couple Feed
Realtime item lists of one couple with optimistic writes laid on top.
"""

import threading
from typing import Any, Callable, Dict, Iterable, List, Optional

from app.crud.base import snapshot_to_dict
from app.crud.item import PROTECTED_FIELDS, ItemCRUD, new_item_id, validate_item
from app.models.item import ItemCategory
from app.services.overlay import OptimisticOverlay
from app.utils import datetime_utils
from app.utils.exceptions import NotFoundError
from app.utils.logger import get_logger

logger = get_logger(__name__)

FeedListener = Callable[[ItemCategory, List[Dict[str, Any]]], None]


class CoupleFeed:
    """
    Scoped subscription to a couple's item subcollections.

    Usage:
        with CoupleFeed(db, couple_id) as feed:
            feed.add_listener(on_items)
            feed.add_item(ItemCategory.DIARIES, {...}, uid, name)
    """

    def __init__(self, db, couple_id: str, categories: Optional[Iterable[ItemCategory]] = None):
        self.db = db
        self.couple_id = couple_id
        self.categories = [ItemCategory(c) for c in (categories or list(ItemCategory))]
        self.overlays = {category: OptimisticOverlay() for category in self.categories}

        self._lock = threading.RLock()
        self._listeners: List[FeedListener] = []
        self._watches: Dict[ItemCategory, Any] = {}
        self._loaded: set = set()
        self._closed = False

    # ── Lifecycle ───────────────────────────────────────────────

    def open(self) -> "CoupleFeed":
        with self._lock:
            for category in self.categories:
                if category in self._watches:
                    continue
                query = self._crud(category).snapshot_query()
                self._watches[category] = query.on_snapshot(self._snapshot_handler(category))
        logger.debug(f"Feed opened for couple {self.couple_id}")
        return self

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            for watch in self._watches.values():
                watch.unsubscribe()
            self._watches.clear()
            self._listeners.clear()
        logger.debug(f"Feed closed for couple {self.couple_id}")

    def __enter__(self) -> "CoupleFeed":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def loading(self) -> bool:
        return len(self._loaded) < len(self.categories)

    @property
    def active_watch_count(self) -> int:
        return len(self._watches)

    def add_listener(self, listener: FeedListener) -> None:
        """Register a listener and replay every category already loaded."""
        with self._lock:
            self._listeners.append(listener)
            loaded = [c for c in self.categories if c in self._loaded]
        for category in loaded:
            listener(category, self.items(category))

    def items(self, category: ItemCategory) -> List[Dict[str, Any]]:
        return self.overlays[ItemCategory(category)].items()

    # ── Writes ──────────────────────────────────────────────────

    def add_item(
        self,
        category: ItemCategory,
        data: Dict[str, Any],
        author_id: str,
        author_name: str,
    ) -> Dict[str, Any]:
        """
        Show the item at once, then persist it.

        The optimistic copy and the stored document share one id, so the
        overlay entry is reconciled as soon as the snapshot delivers it. On
        failure the optimistic copy is rolled back and the error re-raised.
        """
        category = ItemCategory(category)
        item_id = data.get("id") or new_item_id()
        payload = {k: v for k, v in data.items() if k not in PROTECTED_FIELDS}
        payload.update({"authorId": author_id, "author": author_name})
        payload.setdefault("date", datetime_utils.now().date().isoformat())

        optimistic = {**validate_item(category, payload), "id": item_id, "coupleId": self.couple_id}
        overlay = self.overlays[category]
        overlay.add(optimistic)
        self._publish(category)

        try:
            stored = self._crud(category).add(payload, author_id, author_name, item_id=item_id)
        except Exception as e:
            logger.error(f"Failed to add {category.item_type} {item_id}: {e}")
            overlay.rollback(item_id)
            self._publish(category)
            raise
        return stored

    def delete_item(self, category: ItemCategory, item_id: str) -> None:
        """Hide the item at once, then delete it; restored if the delete fails."""
        category = ItemCategory(category)
        overlay = self.overlays[category]
        overlay.delete(item_id)
        self._publish(category)

        try:
            if not self._crud(category).delete(item_id):
                raise NotFoundError(f"{category.item_type} not found", details={"id": item_id})
        except Exception as e:
            logger.error(f"Failed to delete {category.item_type} {item_id}: {e}")
            overlay.rollback(item_id)
            self._publish(category)
            raise

    # ── Internals ───────────────────────────────────────────────

    def _crud(self, category: ItemCategory) -> ItemCRUD:
        return ItemCRUD(self.db, self.couple_id, category)

    def _snapshot_handler(self, category: ItemCategory):
        def on_snapshot(snapshots, changes, read_time):
            if self._closed:
                return
            self.overlays[category].apply_snapshot(snapshot_to_dict(doc) for doc in snapshots)
            self._loaded.add(category)
            self._publish(category)

        return on_snapshot

    def _publish(self, category: ItemCategory) -> None:
        with self._lock:
            if self._closed:
                return
            listeners = list(self._listeners)
        items = self.items(category)
        for listener in listeners:
            try:
                listener(category, items)
            except Exception as e:
                logger.error(f"Feed listener failed for {category.value}: {e}", exc_info=True)
