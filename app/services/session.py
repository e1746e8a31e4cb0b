"""
Couple Session
Realtime view of the signed-in user, their couple and their partner.

A ``CoupleSession`` is opened for as long as a client is connected. It
listens to ``users/{uid}`` and, only when the user's ``coupleId`` changes,
swaps the couple-scoped listeners (``couples/{coupleId}`` and the partner's
user document). Every listener it acquires is released on ``close()``.
"""

import threading
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, List, Optional

from app.crud.base import snapshot_to_dict
from app.crud.couple import present_couple
from app.crud.user import UserCRUD, session_key
from app.models.user import UserModel
from app.utils.logger import get_logger

logger = get_logger(__name__)

SessionListener = Callable[["SessionState"], None]


@dataclass
class SessionState:
    uid: str
    user_data: Optional[Dict[str, Any]] = None
    partner_data: Optional[Dict[str, Any]] = None
    couple_data: Optional[Dict[str, Any]] = None
    loading: bool = True
    is_locked: bool = False

    @property
    def couple_id(self) -> Optional[str]:
        return (self.user_data or {}).get("coupleId")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _public_user(data: Optional[Dict[str, Any]], partner: bool = False) -> Optional[Dict[str, Any]]:
    if data is None:
        return None
    model = UserModel.from_dict({**data, "uid": data.get("uid") or data["id"]})
    return model.to_partner_view() if partner else model.to_public()


def load_session_state(db, uid: str, token: Optional[str] = None) -> SessionState:
    """Derive the session state once, without listeners."""
    users = UserCRUD(db)
    state = SessionState(uid=uid, loading=False)
    user = users.get_by_id(uid)
    if user is None:
        return state

    state.user_data = _public_user(user)
    state.is_locked = bool(user.get("passcode")) and not (token and users.is_session_unlocked(uid, token))

    couple_id = user.get("coupleId")
    if couple_id:
        couple = db.collection("couples").document(couple_id).get()
        if couple.exists:
            couple_data = snapshot_to_dict(couple)
            state.couple_data = present_couple(couple_data)
            partner_id = next((m for m in couple_data.get("members", []) if m != uid), None)
            if partner_id:
                state.partner_data = _public_user(users.get_by_id(partner_id), partner=True)
    return state


class CoupleSession:
    """Scoped realtime session for one user."""

    def __init__(self, db, uid: str, token: Optional[str] = None):
        self.db = db
        self.uid = uid
        self.token = token
        self.state = SessionState(uid=uid)

        self._lock = threading.RLock()
        self._listeners: List[SessionListener] = []
        self._user_watch = None
        self._unlock_watch = None
        self._couple_watch = None
        self._partner_watch = None

        self._user_loaded = False
        self._couple_loaded = False
        self._partner_loaded = False
        self._has_passcode = False
        self._unlocked = False
        self._couple_id: Optional[str] = None
        self._partner_id: Optional[str] = None
        self._opened = False
        self._closed = False

    # ── Lifecycle ───────────────────────────────────────────────

    def open(self) -> "CoupleSession":
        with self._lock:
            if self._opened:
                return self
            self._opened = True
            if self.token:
                unlock_ref = (
                    self.db.collection("users").document(self.uid)
                    .collection("sessions").document(session_key(self.token))
                )
                self._unlock_watch = unlock_ref.on_snapshot(self._on_unlock_snapshot)
            self._user_watch = self.db.collection("users").document(self.uid).on_snapshot(self._on_user_snapshot)
        logger.debug(f"Session opened for {self.uid}")
        return self

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._release_couple()
            for watch in (self._user_watch, self._unlock_watch):
                if watch is not None:
                    watch.unsubscribe()
            self._user_watch = None
            self._unlock_watch = None
            self._listeners.clear()
        logger.debug(f"Session closed for {self.uid}")

    def __enter__(self) -> "CoupleSession":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def active_watch_count(self) -> int:
        watches = (self._user_watch, self._unlock_watch, self._couple_watch, self._partner_watch)
        return sum(1 for watch in watches if watch is not None)

    def add_listener(self, listener: SessionListener) -> None:
        """Register a listener; it is called at once with the current state."""
        with self._lock:
            self._listeners.append(listener)
            state = self.snapshot()
        listener(state)

    def snapshot(self) -> SessionState:
        with self._lock:
            return SessionState(**asdict(self.state))

    # ── Snapshot handlers ───────────────────────────────────────

    def _on_unlock_snapshot(self, snapshots, changes, read_time) -> None:
        with self._lock:
            if self._closed:
                return
            self._unlocked = bool(snapshots and snapshots[0].exists)
            self._publish()

    def _on_user_snapshot(self, snapshots, changes, read_time) -> None:
        with self._lock:
            if self._closed:
                return
            doc = snapshots[0] if snapshots else None
            user = snapshot_to_dict(doc) if doc is not None and doc.exists else None
            self._user_loaded = True
            self._has_passcode = bool(user and user.get("passcode"))
            self.state.user_data = _public_user(user)

            couple_id = user.get("coupleId") if user else None
            if couple_id != self._couple_id:
                self._switch_couple(couple_id)
            self._publish()

    def _on_couple_snapshot(self, snapshots, changes, read_time) -> None:
        with self._lock:
            if self._closed:
                return
            doc = snapshots[0] if snapshots else None
            couple = snapshot_to_dict(doc) if doc is not None and doc.exists else None
            self._couple_loaded = True
            self.state.couple_data = present_couple(couple) if couple else None

            partner_id = None
            if couple:
                partner_id = next((m for m in couple.get("members", []) if m != self.uid), None)
            if partner_id != self._partner_id:
                self._switch_partner(partner_id)
            self._publish()

    def _on_partner_snapshot(self, snapshots, changes, read_time) -> None:
        with self._lock:
            if self._closed:
                return
            doc = snapshots[0] if snapshots else None
            self._partner_loaded = True
            partner = snapshot_to_dict(doc) if doc is not None and doc.exists else None
            self.state.partner_data = _public_user(partner, partner=True)
            self._publish()

    # ── Subscription management ─────────────────────────────────

    def _switch_couple(self, couple_id: Optional[str]) -> None:
        self._release_couple()
        self._couple_id = couple_id
        if couple_id is None:
            return
        logger.info(f"Session {self.uid} subscribing to couple {couple_id}")
        self._couple_watch = self.db.collection("couples").document(couple_id).on_snapshot(self._on_couple_snapshot)

    def _switch_partner(self, partner_id: Optional[str]) -> None:
        if self._partner_watch is not None:
            self._partner_watch.unsubscribe()
            self._partner_watch = None
        self._partner_id = partner_id
        self._partner_loaded = False
        self.state.partner_data = None
        if partner_id is None:
            return
        self._partner_watch = self.db.collection("users").document(partner_id).on_snapshot(self._on_partner_snapshot)

    def _release_couple(self) -> None:
        for watch in (self._couple_watch, self._partner_watch):
            if watch is not None:
                watch.unsubscribe()
        self._couple_watch = None
        self._partner_watch = None
        self._couple_id = None
        self._partner_id = None
        self._couple_loaded = False
        self._partner_loaded = False
        self.state.couple_data = None
        self.state.partner_data = None

    def _compute_loading(self) -> bool:
        if not self._user_loaded:
            return True
        if self._couple_id is None:
            return False
        if not self._couple_loaded:
            return True
        return self._partner_id is not None and not self._partner_loaded

    def _publish(self) -> None:
        self.state.loading = self._compute_loading()
        self.state.is_locked = self._has_passcode and not self._unlocked
        state = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception as e:
                logger.error(f"Session listener failed for {self.uid}: {e}", exc_info=True)
