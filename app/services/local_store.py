"""
In-process document store used when no Firebase credentials are found.

Mimics the subset of the Firestore client the app relies on: nested
collections, field transforms, batched writes, cursor queries and
``on_snapshot`` listeners. Collections are optionally persisted as JSON files
so local data survives restarts.
"""

import copy
import json
import threading
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud.firestore import (
    DELETE_FIELD,
    SERVER_TIMESTAMP,
    ArrayRemove,
    ArrayUnion,
    Increment,
)

from app.utils.logger import get_logger

logger = get_logger(__name__)

ASCENDING = "ASCENDING"
DESCENDING = "DESCENDING"


def _json_serial(obj):
    """JSON serializer for objects not serializable by default."""
    # Tagged so timestamps load back as datetimes and keep their sort rank.
    if isinstance(obj, datetime):
        return {"__datetime__": obj.isoformat()}
    if isinstance(obj, date):
        return {"__date__": obj.isoformat()}
    raise TypeError(f"Type {type(obj)} not serializable")


def _json_restore(obj: dict):
    """``object_hook`` undoing ``_json_serial``."""
    if len(obj) == 1:
        if "__datetime__" in obj:
            return datetime.fromisoformat(obj["__datetime__"])
        if "__date__" in obj:
            return date.fromisoformat(obj["__date__"])
    return obj


def _auto_id() -> str:
    return uuid.uuid4().hex[:20]


def _sort_value(value: Any) -> Tuple[int, Any]:
    # Firestore orders by type first, then by value.
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return (3, value.timestamp())
    if isinstance(value, str):
        return (4, value)
    return (5, str(value))


def _get_path(data: Optional[dict], field: str, default=None):
    current: Any = data
    for part in field.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


class _Missing:
    pass


_MISSING = _Missing()


class LocalStore:
    """Document store that mimics the Firestore client."""

    def __init__(self, data_dir: Optional[str] = None):
        self.collections: Dict[str, Dict[str, dict]] = {}
        self._lock = threading.RLock()
        self._watches: List["Watch"] = []

        self._data_dir = Path(data_dir) if data_dir else None
        if self._data_dir is not None:
            self._data_dir.mkdir(parents=True, exist_ok=True)
            self._load_data()

    # ── Persistence ─────────────────────────────────────────────

    def _file_for(self, path: str) -> Path:
        return self._data_dir / f"{path.replace('/', '__')}.json"

    def _load_data(self):
        """Load every persisted collection from the data dir."""
        for file in sorted(self._data_dir.glob("*.json")):
            path = file.stem.replace("__", "/")
            with open(file) as f:
                self.collections[path] = json.load(f, object_hook=_json_restore)
        logger.info(
            f"LocalStore loaded {len(self.collections)} collections from {self._data_dir}"
        )

    def _persist(self, path: str):
        """Write a collection to disk as JSON."""
        if self._data_dir is None:
            return
        try:
            with open(self._file_for(path), "w") as f:
                json.dump(self.collections.get(path, {}), f, indent=2, default=_json_serial)
        except OSError as e:
            logger.warning(f"LocalStore persist failed for {path}: {e}")

    # ── Client API ──────────────────────────────────────────────

    def collection(self, path: str) -> "CollectionRef":
        return CollectionRef(self, path.strip("/"))

    def document(self, path: str) -> "DocumentRef":
        collection_path, _, doc_id = path.strip("/").rpartition("/")
        return DocumentRef(self, collection_path, doc_id)

    def batch(self) -> "WriteBatch":
        return WriteBatch(self)

    def transaction(self) -> "Transaction":
        return Transaction(self)

    # ── Writes ──────────────────────────────────────────────────

    def _resolve(self, value: Any, current: Any) -> Any:
        if value is SERVER_TIMESTAMP:
            return datetime.now(timezone.utc)
        if isinstance(value, Increment):
            base = current if isinstance(current, (int, float)) and not isinstance(current, bool) else 0
            return base + value.value
        if isinstance(value, ArrayUnion):
            result = list(current) if isinstance(current, list) else []
            for item in value.values:
                if item not in result:
                    result.append(item)
            return result
        if isinstance(value, ArrayRemove):
            if not isinstance(current, list):
                return []
            return [item for item in current if item not in value.values]
        if isinstance(value, dict):
            return {
                k: self._resolve(v, None) for k, v in value.items() if v is not DELETE_FIELD
            }
        return copy.deepcopy(value)

    def _apply_field(self, doc: dict, field_path: str, value: Any):
        parts = field_path.split(".")
        target = doc
        for part in parts[:-1]:
            if not isinstance(target.get(part), dict):
                target[part] = {}
            target = target[part]
        leaf = parts[-1]
        if value is DELETE_FIELD:
            target.pop(leaf, None)
        else:
            target[leaf] = self._resolve(value, target.get(leaf))

    def _merge(self, doc: dict, data: dict):
        for key, value in data.items():
            if isinstance(value, dict) and isinstance(doc.get(key), dict):
                self._merge(doc[key], value)
            elif value is DELETE_FIELD:
                doc.pop(key, None)
            else:
                doc[key] = self._resolve(value, doc.get(key))

    def _commit(self, ops: List[tuple]):
        """Apply a list of (kind, ref, data, merge) write ops atomically."""
        for watch in self._apply(ops):
            watch.fire()

    def _apply(self, ops: List[tuple]) -> List["Watch"]:
        """Write ``ops`` under the lock and return the watches to notify."""
        touched = set()
        touched_docs = set()
        with self._lock:
            for kind, ref, _, _ in ops:
                exists = ref.id in self.collections.get(ref.parent_path, {})
                if kind == "update" and not exists:
                    raise NotFound(f"No document to update: {ref.path}")
                if kind == "create" and exists:
                    raise AlreadyExists(f"Document already exists: {ref.path}")

            for kind, ref, data, merge in ops:
                docs = self.collections.setdefault(ref.parent_path, {})
                if kind == "delete":
                    docs.pop(ref.id, None)
                elif kind == "create" or (kind == "set" and not merge):
                    new_doc: dict = {}
                    self._merge(new_doc, data)
                    docs[ref.id] = new_doc
                elif kind == "set":
                    existing = docs.setdefault(ref.id, {})
                    self._merge(existing, data)
                else:
                    existing = docs[ref.id]
                    for field_path, value in data.items():
                        self._apply_field(existing, field_path, value)
                touched.add(ref.parent_path)
                touched_docs.add(ref.path)

            for path in touched:
                self._persist(path)
            return [w for w in self._watches if w.is_affected(touched, touched_docs)]

    # ── Listeners ───────────────────────────────────────────────

    def _add_watch(self, target, callback: Callable) -> "Watch":
        watch = Watch(self, target, callback)
        with self._lock:
            self._watches.append(watch)
        watch.fire()
        return watch

    def _remove_watch(self, watch: "Watch"):
        with self._lock:
            if watch in self._watches:
                self._watches.remove(watch)


class Watch:
    """Mimics the Firestore watch handle returned by ``on_snapshot``."""

    def __init__(self, store: LocalStore, target, callback: Callable):
        self._store = store
        self._target = target
        self._callback = callback
        self.collection_path = target.parent_path if isinstance(target, DocumentRef) else target.path
        self.is_active = True

    def is_affected(self, collections: set, documents: set) -> bool:
        if isinstance(self._target, DocumentRef):
            return self._target.path in documents
        return self.collection_path in collections

    def fire(self):
        if not self.is_active:
            return
        if isinstance(self._target, DocumentRef):
            snapshots = [self._target.get()]
        else:
            snapshots = self._target.get()
        read_time = datetime.now(timezone.utc)
        try:
            self._callback(snapshots, [], read_time)
        except Exception as e:
            logger.error(f"Snapshot listener on {self.collection_path} failed: {e}", exc_info=True)

    def unsubscribe(self):
        self.is_active = False
        self._store._remove_watch(self)


class CollectionRef:
    """Mimics Firestore collection reference and query."""

    def __init__(self, store: LocalStore, path: str):
        self._store = store
        self.path = path
        self._filters: List[tuple] = []
        self._orders: List[Tuple[str, str]] = []
        self._limit_val: Optional[int] = None
        self._cursor: Optional["DocumentSnapshot"] = None

    @property
    def id(self) -> str:
        return self.path.rpartition("/")[2]

    def _copy(self) -> "CollectionRef":
        new_ref = CollectionRef(self._store, self.path)
        new_ref._filters = list(self._filters)
        new_ref._orders = list(self._orders)
        new_ref._limit_val = self._limit_val
        new_ref._cursor = self._cursor
        return new_ref

    def document(self, doc_id: Optional[str] = None) -> "DocumentRef":
        return DocumentRef(self._store, self.path, doc_id or _auto_id())

    def where(self, field: str, op: str, value) -> "CollectionRef":
        new_ref = self._copy()
        new_ref._filters.append((field, op, value))
        return new_ref

    def order_by(self, field: str, direction: str = ASCENDING) -> "CollectionRef":
        new_ref = self._copy()
        new_ref._orders.append((field, direction))
        return new_ref

    def limit(self, count: int) -> "CollectionRef":
        new_ref = self._copy()
        new_ref._limit_val = count
        return new_ref

    def start_after(self, snapshot: "DocumentSnapshot") -> "CollectionRef":
        new_ref = self._copy()
        new_ref._cursor = snapshot
        return new_ref

    @staticmethod
    def _matches(doc: dict, field: str, op: str, value) -> bool:
        doc_val = _get_path(doc, field, _MISSING)
        if doc_val is _MISSING:
            return False
        try:
            if op == "==":
                return doc_val == value
            if op == "!=":
                return doc_val is not None and doc_val != value
            if op == ">=":
                return doc_val >= value
            if op == "<=":
                return doc_val <= value
            if op == ">":
                return doc_val > value
            if op == "<":
                return doc_val < value
            if op == "in":
                return doc_val in value
            if op == "not-in":
                return doc_val not in value
            if op == "array_contains":
                return isinstance(doc_val, list) and value in doc_val
        except TypeError:
            return False
        raise ValueError(f"Unsupported operator: {op}")

    def _order_key(self, doc: dict) -> tuple:
        return tuple(_sort_value(_get_path(doc, field)) for field, _ in self._orders)

    def get(self) -> List["DocumentSnapshot"]:
        with self._store._lock:
            items = [
                (doc_id, copy.deepcopy(doc))
                for doc_id, doc in self._store.collections.get(self.path, {}).items()
            ]

        for field, op, value in self._filters:
            items = [(doc_id, doc) for doc_id, doc in items if self._matches(doc, field, op, value)]

        # Documents missing an ordered field are excluded, as in Firestore.
        for field, _ in self._orders:
            items = [(doc_id, doc) for doc_id, doc in items if _get_path(doc, field, _MISSING) is not _MISSING]

        # Stable multi-key sort: apply keys from last to first.
        for field, direction in reversed(self._orders):
            items.sort(
                key=lambda pair, f=field: _sort_value(_get_path(pair[1], f)),
                reverse=direction == DESCENDING,
            )

        if self._cursor is not None:
            ids = [doc_id for doc_id, _ in items]
            if self._cursor.id in ids:
                items = items[ids.index(self._cursor.id) + 1:]
            elif self._orders and self._cursor.exists:
                cursor_key = self._order_key(self._cursor.to_dict())
                descending = self._orders[0][1] == DESCENDING
                items = [
                    (doc_id, doc) for doc_id, doc in items
                    if (self._order_key(doc) < cursor_key if descending else self._order_key(doc) > cursor_key)
                ]

        if self._limit_val is not None:
            items = items[: self._limit_val]

        return [
            DocumentSnapshot(DocumentRef(self._store, self.path, doc_id), doc)
            for doc_id, doc in items
        ]

    def add(self, data: dict) -> Tuple[datetime, "DocumentRef"]:
        doc_ref = self.document()
        doc_ref.set(data)
        return datetime.now(timezone.utc), doc_ref

    def on_snapshot(self, callback: Callable) -> Watch:
        return self._store._add_watch(self, callback)


class DocumentRef:
    """Mimics Firestore document reference."""

    def __init__(self, store: LocalStore, collection_path: str, doc_id: str):
        self._store = store
        self.parent_path = collection_path
        self._id = doc_id

    @property
    def id(self) -> str:
        return self._id

    @property
    def path(self) -> str:
        return f"{self.parent_path}/{self._id}"

    def collection(self, name: str) -> CollectionRef:
        return CollectionRef(self._store, f"{self.path}/{name}")

    def get(self, transaction: Optional["Transaction"] = None) -> "DocumentSnapshot":
        # A transaction already holds the store lock, so reads see committed state.
        with self._store._lock:
            doc = self._store.collections.get(self.parent_path, {}).get(self._id)
            return DocumentSnapshot(self, copy.deepcopy(doc))

    def create(self, data: dict):
        """Write a new document; raises AlreadyExists when the id is taken."""
        self._store._commit([("create", self, data, False)])

    def set(self, data: dict, merge: bool = False):
        self._store._commit([("set", self, data, merge)])

    def update(self, data: dict):
        self._store._commit([("update", self, data, False)])

    def delete(self):
        self._store._commit([("delete", self, None, False)])

    def on_snapshot(self, callback: Callable) -> Watch:
        return self._store._add_watch(self, callback)


class DocumentSnapshot:
    """Mimics Firestore document snapshot."""

    def __init__(self, reference: DocumentRef, data: Optional[dict]):
        self.reference = reference
        self.id = reference.id
        self._data = data

    @property
    def exists(self) -> bool:
        return self._data is not None

    def to_dict(self) -> Optional[dict]:
        return copy.deepcopy(self._data)

    def get(self, field: str, default=None):
        return _get_path(self._data, field, default)


class WriteBatch:
    """Mimics a Firestore write batch: writes are applied together on commit."""

    def __init__(self, store: LocalStore):
        self._store = store
        self._ops: List[tuple] = []

    def set(self, reference: DocumentRef, data: dict, merge: bool = False):
        self._ops.append(("set", reference, data, merge))

    def update(self, reference: DocumentRef, data: dict):
        self._ops.append(("update", reference, data, False))

    def delete(self, reference: DocumentRef):
        self._ops.append(("delete", reference, None, False))

    def commit(self):
        ops, self._ops = self._ops, []
        self._store._commit(ops)


class Transaction(WriteBatch):
    """
    Mimics a Firestore transaction for ``firestore.transactional``.

    The store lock is held from ``_begin`` until commit or rollback, so the
    reads and writes of the wrapped function cannot interleave with another
    writer. Contention never aborts, so one attempt is enough.
    """

    _max_attempts = 1
    _read_only = False

    def __init__(self, store: LocalStore):
        super().__init__(store)
        self._id: Optional[str] = None

    def _clean_up(self):
        self._ops = []

    def _begin(self, retry_id=None):
        self._store._lock.acquire()
        self._id = _auto_id()

    def _end(self):
        if self._id is not None:
            self._id = None
            self._store._lock.release()

    def _commit(self):
        ops, self._ops = self._ops, []
        try:
            watches = self._store._apply(ops)
        finally:
            self._end()
        for watch in watches:
            watch.fire()

    def _rollback(self):
        self._ops = []
        self._end()

    def create(self, reference: DocumentRef, data: dict):
        self._ops.append(("create", reference, data, False))


# ── Singleton ────────────────────────────────────────────────────

_local_store: Optional[LocalStore] = None


def get_local_store() -> LocalStore:
    """Get or create the singleton LocalStore instance."""
    global _local_store
    if _local_store is None:
        from app.config import get_settings

        _local_store = LocalStore(get_settings().local_data_dir or None)
    return _local_store
