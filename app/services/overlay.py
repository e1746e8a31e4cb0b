"""
Optimistic overlay for realtime item lists.

Locally added items and locally deleted ids are laid over the latest
snapshot so a write shows up before the backend confirms it. Pending entries
are reconciled by id against every new snapshot: an add disappears from the
overlay once the snapshot carries its id, a delete once the snapshot no
longer does.
"""

import threading
from typing import Any, Dict, Iterable, List, Set

from app.utils import datetime_utils
from app.utils.logger import get_logger

logger = get_logger(__name__)

Item = Dict[str, Any]


def merge_items(snapshot: Iterable[Item], adds: Iterable[Item], deletes: Iterable[str]) -> List[Item]:
    """
    Build the display list for one category.

    Adds whose id is already in the snapshot are skipped, the remaining adds
    are placed before the snapshot, deleted ids are filtered out and the
    result is sorted newest first by ``date``. The sort is stable, so items
    with equal dates keep that relative order.
    """
    snapshot = list(snapshot)
    deleted = set(deletes)
    seen: Set[str] = {item["id"] for item in snapshot}

    pending: List[Item] = []
    for item in adds:
        if item["id"] in seen:
            continue
        seen.add(item["id"])
        pending.append(item)

    visible = [item for item in pending + snapshot if item["id"] not in deleted]
    return sorted(visible, key=lambda item: datetime_utils.date_sort_key(item.get("date")), reverse=True)


class OptimisticOverlay:
    """Pending local writes for one realtime list."""

    def __init__(self):
        self._lock = threading.Lock()
        self._adds: Dict[str, Item] = {}
        self._deletes: Set[str] = set()
        self._snapshot: List[Item] = []
        self._snapshot_ids: Set[str] = set()

    @property
    def pending_adds(self) -> List[Item]:
        with self._lock:
            return list(self._adds.values())

    @property
    def pending_deletes(self) -> Set[str]:
        with self._lock:
            return set(self._deletes)

    def add(self, item: Item) -> None:
        if not item.get("id"):
            raise ValueError("Optimistic items need an id")
        with self._lock:
            self._deletes.discard(item["id"])
            if item["id"] not in self._snapshot_ids:
                self._adds[item["id"]] = item

    def delete(self, item_id: str) -> None:
        with self._lock:
            if self._adds.pop(item_id, None) is not None and item_id not in self._snapshot_ids:
                return
            if item_id in self._snapshot_ids:
                self._deletes.add(item_id)

    def rollback(self, item_id: str) -> None:
        """Forget every pending write for ``item_id`` after a failed write."""
        with self._lock:
            self._adds.pop(item_id, None)
            self._deletes.discard(item_id)

    def apply_snapshot(self, snapshot: Iterable[Item]) -> List[Item]:
        """Store a new snapshot, reconcile pending writes and return the merged list."""
        with self._lock:
            self._snapshot = list(snapshot)
            self._snapshot_ids = {item["id"] for item in self._snapshot}

            confirmed = [item_id for item_id in self._adds if item_id in self._snapshot_ids]
            for item_id in confirmed:
                del self._adds[item_id]
            self._deletes &= self._snapshot_ids

            if confirmed:
                logger.debug(f"Reconciled {len(confirmed)} optimistic adds")
        return self.items()

    def items(self) -> List[Item]:
        with self._lock:
            return merge_items(self._snapshot, self._adds.values(), self._deletes)
