"""Optimistic overlay merge and reconciliation."""

import random

import pytest

from app.services.overlay import OptimisticOverlay, merge_items


def ids(items):
    return [item["id"] for item in items]


def test_merge_prefers_snapshot_copy_of_duplicate_id():
    adds = [{"id": "tmp1", "date": "2024-01-05", "title": "local"}]
    snapshot = [
        {"id": "tmp1", "date": "2024-01-05", "title": "server"},
        {"id": "real2", "date": "2024-01-04"},
    ]

    merged = merge_items(snapshot, adds, set())

    assert ids(merged) == ["tmp1", "real2"]
    assert merged[0]["title"] == "server"


def test_merge_sorts_newest_first_and_has_no_duplicates():
    snapshot = [{"id": "a", "date": "2024-01-01"}, {"id": "b", "date": "2024-03-01"}]
    adds = [{"id": "c", "date": "2024-02-01"}, {"id": "c", "date": "2024-02-01"}, {"id": "d", "date": "2024-04-01"}]

    merged = merge_items(snapshot, adds, set())

    assert ids(merged) == ["d", "b", "c", "a"]
    assert len(set(ids(merged))) == len(merged)


def test_merge_equal_dates_keep_adds_before_snapshot():
    snapshot = [{"id": "s", "date": "2024-01-01"}]
    adds = [{"id": "a", "date": "2024-01-01"}]

    assert ids(merge_items(snapshot, adds, set())) == ["a", "s"]


def test_merge_filters_deleted_ids():
    snapshot = [{"id": "a", "date": "2024-01-01"}, {"id": "b", "date": "2024-01-02"}]
    adds = [{"id": "c", "date": "2024-01-03"}]

    assert ids(merge_items(snapshot, adds, {"b", "c"})) == ["a"]


def test_merge_mixes_date_and_datetime_values():
    snapshot = [{"id": "a", "date": "2024-01-01"}, {"id": "b", "date": "2024-01-01T18:00:00Z"}]

    assert ids(merge_items(snapshot, [], set())) == ["b", "a"]


def test_pending_add_reconciled_when_snapshot_contains_it():
    overlay = OptimisticOverlay()
    overlay.apply_snapshot([])
    overlay.add({"id": "new", "date": "2024-05-01", "title": "optimistic"})

    assert ids(overlay.items()) == ["new"]

    overlay.apply_snapshot([{"id": "new", "date": "2024-05-01", "title": "stored"}])

    assert overlay.pending_adds == []
    assert overlay.items()[0]["title"] == "stored"

    # The server copy disappearing later is not masked by a stale local copy.
    assert overlay.apply_snapshot([]) == []


def test_delete_of_local_only_item_removes_it():
    overlay = OptimisticOverlay()
    overlay.apply_snapshot([{"id": "a", "date": "2024-01-01"}])
    overlay.add({"id": "tmp", "date": "2024-02-01"})

    overlay.delete("tmp")

    assert ids(overlay.items()) == ["a"]
    assert overlay.pending_deletes == set()


def test_delete_of_snapshot_item_hides_it_until_refresh():
    overlay = OptimisticOverlay()
    overlay.apply_snapshot([{"id": "a", "date": "2024-01-01"}, {"id": "b", "date": "2024-01-02"}])

    overlay.delete("b")
    assert ids(overlay.items()) == ["a"]

    # A snapshot taken before the delete landed still hides it.
    assert ids(overlay.apply_snapshot([{"id": "a", "date": "2024-01-01"}, {"id": "b", "date": "2024-01-02"}])) == ["a"]
    assert overlay.pending_deletes == {"b"}

    overlay.apply_snapshot([{"id": "a", "date": "2024-01-01"}])
    assert overlay.pending_deletes == set()


def test_rollback_restores_snapshot_view():
    overlay = OptimisticOverlay()
    overlay.apply_snapshot([{"id": "a", "date": "2024-01-01"}])
    overlay.add({"id": "b", "date": "2024-01-02"})
    overlay.delete("a")

    overlay.rollback("b")
    overlay.rollback("a")

    assert ids(overlay.items()) == ["a"]


def random_case(rng):
    dates = [f"2024-0{month}-0{day}" for month in range(1, 4) for day in range(1, 4)]
    pool = [f"i{n}" for n in range(12)]
    snapshot_ids = rng.sample(pool, rng.randint(0, 8))
    snapshot = [{"id": item_id, "date": rng.choice(dates), "src": "s"} for item_id in snapshot_ids]
    adds = [{"id": rng.choice(pool), "date": rng.choice(dates), "src": "a"} for _ in range(rng.randint(0, 6))]
    deletes = set(rng.sample(pool, rng.randint(0, 4)))
    return snapshot, adds, deletes


@pytest.mark.parametrize("seed", range(200))
def test_merge_properties_hold_for_generated_inputs(seed):
    rng = random.Random(seed)
    snapshot, adds, deletes = random_case(rng)

    merged = merge_items(snapshot, adds, deletes)
    merged_ids = ids(merged)
    snapshot_ids = set(ids(snapshot))

    assert len(merged_ids) == len(set(merged_ids))
    assert merged_ids == [i for i in merged_ids if i not in deletes]
    dates = [item["date"] for item in merged]
    assert dates == sorted(dates, reverse=True)

    expected = (snapshot_ids | set(ids(adds))) - deletes
    assert set(merged_ids) == expected
    # The snapshot copy wins over a pending add with the same id.
    assert all(item["src"] == "s" for item in merged if item["id"] in snapshot_ids)

    # Deleting a snapshot item hides it only until a snapshot arrives without it.
    overlay = OptimisticOverlay()
    overlay.apply_snapshot(snapshot)
    for item in adds:
        overlay.add(item)
    for item_id in deletes:
        overlay.delete(item_id)
    assert set(ids(overlay.items())) == expected
    refreshed = [item for item in snapshot if item["id"] not in deletes]
    overlay.apply_snapshot(refreshed)
    assert not set(ids(overlay.items())) & deletes
