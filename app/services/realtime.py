"""
Realtime channel behind the WebSocket endpoint.

Ties one ``CoupleSession`` and, while the user has a couple, one
``CoupleFeed`` to a single client connection. Events are handed to an
``emit`` callback that must be safe to call from any thread.
"""

import threading
from typing import Any, Callable, Dict, Optional

from app.models.item import ItemCategory
from app.services.feed import CoupleFeed
from app.services.session import CoupleSession, SessionState
from app.utils.datetime_utils import serialize
from app.utils.exceptions import CoupleRequiredError, PasscodeError, ValidationError
from app.utils.logger import get_logger

logger = get_logger(__name__)

Emit = Callable[[Dict[str, Any]], None]


class RealtimeChannel:
    """Session and feed subscriptions for one connected client."""

    def __init__(self, db, uid: str, token: Optional[str], emit: Emit):
        self.db = db
        self.uid = uid
        self.emit = emit
        self.session = CoupleSession(db, uid, token)
        self.feed: Optional[CoupleFeed] = None
        self._lock = threading.RLock()
        self._state: Optional[SessionState] = None
        self._closed = False

    def open(self) -> "RealtimeChannel":
        self.session.open()
        self.session.add_listener(self._on_session)
        return self

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            feed, self.feed = self.feed, None
        if feed is not None:
            feed.close()
        self.session.close()
        logger.debug(f"Realtime channel closed for {self.uid}")

    def __enter__(self) -> "RealtimeChannel":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Events ──────────────────────────────────────────────────

    def _on_session(self, state: SessionState) -> None:
        with self._lock:
            if self._closed:
                return
            self._state = state
            self.emit(serialize({"type": "session", **state.to_dict()}))

            current = self.feed.couple_id if self.feed is not None else None
            if state.couple_id == current:
                return
            if self.feed is not None:
                self.feed.close()
                self.feed = None
            if state.couple_id and state.couple_data is not None:
                logger.info(f"Realtime feed for {self.uid} switching to couple {state.couple_id}")
                self.feed = CoupleFeed(self.db, state.couple_id).open()
                self.feed.add_listener(self._on_feed)

    def _on_feed(self, category: ItemCategory, items) -> None:
        feed = self.feed
        self.emit(serialize({
            "type": "feed",
            "category": category.value,
            "items": items,
            "loading": feed.loading if feed is not None else False,
        }))

    # ── Commands ────────────────────────────────────────────────

    def _require_feed(self) -> CoupleFeed:
        with self._lock:
            state = self._state
            feed = self.feed
        if state is not None and state.is_locked:
            raise PasscodeError("Session is locked. Enter your passcode to continue.")
        if feed is None:
            raise CoupleRequiredError()
        return feed

    def handle(self, command: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Run one client command. Blocking; call it off the event loop.

        Commands:
            ``{"action": "add", "category": ..., "item": {...}}``
            ``{"action": "delete", "category": ..., "id": ...}``
        """
        action = command.get("action")
        try:
            category = ItemCategory(command.get("category"))
        except ValueError as e:
            raise ValidationError("Unknown category", details={"category": command.get("category")}) from e

        feed = self._require_feed()
        if action == "add":
            item = command.get("item")
            if not isinstance(item, dict):
                raise ValidationError("add needs an item object")
            name = ((self._state.user_data if self._state else None) or {}).get("name") or "Unknown"
            stored = feed.add_item(category, item, self.uid, name)
            return {"type": "ack", "action": "add", "category": category.value, "id": stored["id"]}
        if action == "delete":
            item_id = command.get("id")
            if not item_id:
                raise ValidationError("delete needs an id")
            feed.delete_item(category, item_id)
            return {"type": "ack", "action": "delete", "category": category.value, "id": item_id}
        raise ValidationError("Unknown action", details={"action": action})
