"""LocalStore: the Firestore-compatible backend used in local mode and tests."""

import threading
from datetime import datetime

import pytest
from google.api_core.exceptions import AlreadyExists, NotFound
from google.cloud import firestore
from google.cloud.firestore import DELETE_FIELD, SERVER_TIMESTAMP, ArrayRemove, ArrayUnion, Increment

from app.services.local_store import DESCENDING, LocalStore


def test_set_get_and_nested_collections(store):
    store.collection("couples").document("c1").collection("diaries").document("d1").set({"title": "hi"})

    snap = store.document("couples/c1/diaries/d1").get()

    assert snap.exists
    assert snap.id == "d1"
    assert snap.to_dict() == {"title": "hi"}
    assert not store.collection("couples").document("c1").get().exists


def test_update_missing_document_raises_not_found(store):
    with pytest.raises(NotFound):
        store.collection("users").document("ghost").update({"name": "x"})


def test_field_transforms(store):
    ref = store.collection("users").document("u1")
    ref.set({"fcmTokens": ["a"], "unreadCount": 1, "notionConfig": {"apiKey": "k"}, "typing": {}})

    ref.update({
        "fcmTokens": ArrayUnion(["a", "b"]),
        "unreadCount": Increment(2),
        "notionConfig.apiKey": DELETE_FIELD,
        "typing.u1": True,
        "lastActive": SERVER_TIMESTAMP,
    })
    data = ref.get().to_dict()

    assert data["fcmTokens"] == ["a", "b"]
    assert data["unreadCount"] == 3
    assert data["notionConfig"] == {}
    assert data["typing"] == {"u1": True}
    assert data["lastActive"] is not None

    ref.update({"fcmTokens": ArrayRemove(["a"])})
    assert ref.get().to_dict()["fcmTokens"] == ["b"]


def test_query_filters_order_and_cursor(store):
    col = store.collection("items")
    for i, date in enumerate(["2024-01-03", "2024-01-01", "2024-01-02", "2024-01-04"]):
        col.document(f"i{i}").set({"date": date, "n": i})

    ordered = col.order_by("date", direction=DESCENDING).get()
    assert [d.id for d in ordered] == ["i3", "i0", "i2", "i1"]

    page = col.order_by("date", direction=DESCENDING).start_after(ordered[1]).limit(2).get()
    assert [d.id for d in page] == ["i2", "i1"]

    assert [d.id for d in col.where("n", ">=", 2).get()] == ["i2", "i3"]
    assert [d.id for d in col.where("n", "in", [0, 3]).get()] == ["i0", "i3"]


def test_batch_is_atomic(store):
    store.collection("users").document("a").set({"coupleId": None})

    batch = store.batch()
    batch.update(store.collection("users").document("a"), {"coupleId": "c"})
    batch.update(store.collection("users").document("missing"), {"coupleId": "c"})

    with pytest.raises(NotFound):
        batch.commit()
    assert store.collection("users").document("a").get().to_dict()["coupleId"] is None


def test_collection_snapshot_fires_initially_and_after_writes(store):
    calls = []
    col = store.collection("couples/c1/events")
    watch = col.order_by("date", direction=DESCENDING).on_snapshot(
        lambda docs, changes, read_time: calls.append([d.id for d in docs])
    )

    col.document("e1").set({"date": "2024-01-01"})
    col.document("e2").set({"date": "2024-02-01"})
    store.collection("couples/c2/events").document("x").set({"date": "2024-03-01"})
    watch.unsubscribe()
    col.document("e3").set({"date": "2024-03-01"})

    assert calls == [[], ["e1"], ["e2", "e1"]]


def test_document_snapshot_fires_only_for_that_document(store):
    calls = []
    store.collection("users").document("a").set({"name": "A"})
    watch = store.collection("users").document("a").on_snapshot(
        lambda docs, changes, read_time: calls.append(docs[0].get("name"))
    )

    store.collection("users").document("b").set({"name": "B"})
    store.collection("users").document("a").update({"name": "A2"})
    watch.unsubscribe()

    assert calls == ["A", "A2"]


def test_persists_to_data_dir(tmp_path):
    first = LocalStore(str(tmp_path))
    first.collection("couples").document("c1").collection("letters").document("l1").set({"content": "hi"})

    second = LocalStore(str(tmp_path))

    assert second.document("couples/c1/letters/l1").get().to_dict() == {"content": "hi"}


def test_create_refuses_an_existing_id(store):
    ref = store.collection("couples/c1/diaries").document("d1")
    ref.create({"title": "first"})

    with pytest.raises(AlreadyExists):
        ref.create({"title": "second"})
    assert ref.get().to_dict() == {"title": "first"}


def test_transaction_holds_off_other_writers(store):
    users = store.collection("users")
    users.document("y").set({"coupleId": None})
    writer_done = threading.Event()

    def concurrent_write():
        users.document("y").update({"coupleId": "other"})
        writer_done.set()

    @firestore.transactional
    def claim(transaction):
        snapshot = users.document("y").get(transaction=transaction)
        thread = threading.Thread(target=concurrent_write)
        thread.start()
        # The other writer cannot land between this read and the write below.
        assert not writer_done.wait(0.2)
        transaction.update(users.document("y"), {"coupleId": snapshot.get("coupleId") or "mine"})
        return thread

    thread = claim(store.transaction())
    thread.join(timeout=5)

    assert writer_done.is_set()
    assert users.document("y").get().get("coupleId") == "other"


def test_failed_transaction_writes_nothing_and_releases_the_store(store):
    users = store.collection("users")

    @firestore.transactional
    def failing(transaction):
        transaction.set(users.document("a"), {"name": "A"})
        raise ValueError("abort")

    with pytest.raises(ValueError):
        failing(store.transaction())

    assert not users.document("a").get().exists
    thread = threading.Thread(target=lambda: users.document("b").set({"name": "B"}))
    thread.start()
    thread.join(timeout=5)
    assert users.document("b").get().exists


def test_timestamps_survive_a_reload(tmp_path):
    first = LocalStore(str(tmp_path))
    first.collection("couples/c1/messages").document("m1").set({"text": "old", "createdAt": SERVER_TIMESTAMP})

    second = LocalStore(str(tmp_path))
    second.collection("couples/c1/messages").document("m2").set({"text": "new", "createdAt": SERVER_TIMESTAMP})

    stored = second.document("couples/c1/messages/m1").get().to_dict()
    assert isinstance(stored["createdAt"], datetime)
    newest = second.collection("couples/c1/messages").order_by("createdAt", direction=DESCENDING).get()
    assert [doc.get("text") for doc in newest] == ["new", "old"]
