"""Unit tests for blob state aggregation."""

import pytest

from blob_audit.components.aggregator import (
    EMPTY_AGGREGATION,
    ActiveBlobTracker,
    fold_snapshot,
    merge,
)
from blob_audit.core.types import (
    DELETE_FLAG,
    NEVER_EXPIRES,
    AnomalyKind,
    IndexEntry,
    IndexValue,
    StoreKey,
)

NOW_MS = 1_000_000


def _entry(key, offset=0, deleted=False, expires_at_ms=NEVER_EXPIRES):
    flags = DELETE_FLAG if deleted else 0
    return IndexEntry(
        StoreKey(key.encode(), key), IndexValue(offset, 10, -1, flags, expires_at_ms)
    )


def test_fold_first_live_sighting_is_available():
    """Test a live entry marks the key available on the replica."""
    result = fold_snapshot(EMPTY_AGGREGATION, [_entry("k1")], "r1", NOW_MS)

    assert result.statuses["k1"].available == {"r1"}
    assert result.statuses["k1"].deleted_or_expired == frozenset()
    assert result.processed == 1


def test_fold_delete_moves_replica_to_deleted():
    """Test a later delete removes the replica from available."""
    result = fold_snapshot(
        EMPTY_AGGREGATION, [_entry("k1"), _entry("k1", deleted=True)], "r1", NOW_MS
    )

    assert result.statuses["k1"].available == frozenset()
    assert result.statuses["k1"].deleted_or_expired == {"r1"}


def test_fold_expired_entry_counts_as_dead():
    """Test an entry past its expiry is treated like a delete."""
    result = fold_snapshot(
        EMPTY_AGGREGATION, [_entry("k1", expires_at_ms=NOW_MS - 1)], "r1", NOW_MS
    )

    assert result.statuses["k1"].deleted_or_expired == {"r1"}


def test_fold_put_after_delete_is_anomaly():
    """Test a put after a delete on the same replica is reported."""
    result = fold_snapshot(
        EMPTY_AGGREGATION,
        [_entry("k1", deleted=True), _entry("k1")],
        "r1",
        NOW_MS,
    )

    assert len(result.anomalies) == 1
    anomaly = result.anomalies[0]
    assert anomaly.kind == AnomalyKind.PUT_AFTER_DELETE
    assert anomaly.key == "k1"
    assert str(anomaly) == "Put Record found after delete record for r1"


def test_fold_does_not_mutate_state():
    """Test the input state is unchanged and read-only."""
    first = fold_snapshot(EMPTY_AGGREGATION, [_entry("k1")], "r1", NOW_MS)
    fold_snapshot(first, [_entry("k1", deleted=True), _entry("k2")], "r1", NOW_MS)

    assert set(first.statuses) == {"k1"}
    assert first.statuses["k1"].available == {"r1"}
    with pytest.raises(TypeError):
        first.statuses["k3"] = None


def test_fold_is_deterministic():
    """Test folding the same snapshots in the same order gives equal results."""
    snapshots = [
        [_entry("k1"), _entry("k2"), _entry("k1", deleted=True)],
        [_entry("k3"), _entry("k2", expires_at_ms=1)],
    ]

    results = []
    for _ in range(2):
        state = EMPTY_AGGREGATION
        for entries in snapshots:
            state = fold_snapshot(state, entries, "r1", NOW_MS)
        results.append(state)

    assert dict(results[0].statuses) == dict(results[1].statuses)
    assert results[0].processed == results[1].processed == 5


def test_merge_unions_replica_sets():
    """Test per-key statuses from two replicas are unioned."""
    left = fold_snapshot(EMPTY_AGGREGATION, [_entry("k1"), _entry("k2")], "r1", NOW_MS)
    right = fold_snapshot(
        EMPTY_AGGREGATION, [_entry("k1", deleted=True), _entry("k3")], "r2", NOW_MS
    )

    merged = merge(left, right)

    assert merged.statuses["k1"].available == {"r1"}
    assert merged.statuses["k1"].deleted_or_expired == {"r2"}
    assert merged.statuses["k2"].available == {"r1"}
    assert merged.statuses["k3"].available == {"r2"}
    assert merged.processed == 4


def test_merge_order_does_not_change_statuses():
    """Test merging left into right equals merging right into left."""
    left = fold_snapshot(EMPTY_AGGREGATION, [_entry("k1")], "r1", NOW_MS)
    right = fold_snapshot(EMPTY_AGGREGATION, [_entry("k1", deleted=True)], "r2", NOW_MS)

    assert dict(merge(left, right).statuses) == dict(merge(right, left).statuses)


def test_merge_with_empty():
    """Test merging with the empty aggregation keeps the statuses."""
    result = fold_snapshot(EMPTY_AGGREGATION, [_entry("k1")], "r1", NOW_MS)

    assert dict(merge(result, EMPTY_AGGREGATION).statuses) == dict(result.statuses)


def test_tracker_put_put_delete():
    """Test two puts and a delete of the first leave one active blob."""
    tracker = ActiveBlobTracker(NOW_MS)

    processed = tracker.add_entries(
        [_entry("K1", 0), _entry("K2", 100), _entry("K1", 200, deleted=True)]
    )

    assert processed == 3
    assert list(tracker.active) == ["K2"]
    assert "K1" not in tracker
    assert len(tracker) == 1
    assert tracker.anomalies == []


def test_tracker_duplicate_put_is_anomaly():
    """Test a second live entry for an active key is reported and not replaced."""
    tracker = ActiveBlobTracker(NOW_MS)
    tracker.add_entries([_entry("K1", 0), _entry("K1", 50)])

    assert len(tracker) == 1
    assert "offset 0 " in tracker.active["K1"]
    assert [a.kind for a in tracker.anomalies] == [AnomalyKind.DUPLICATE_PUT]


def test_tracker_removed_key_is_never_reinserted():
    """Test a put after a delete leaves the key inactive."""
    tracker = ActiveBlobTracker(NOW_MS)
    tracker.add_entries([_entry("K1"), _entry("K1", deleted=True), _entry("K1", 300)])

    assert "K1" not in tracker
    assert [a.kind for a in tracker.anomalies] == [AnomalyKind.PUT_AFTER_DELETE]


def test_tracker_delete_without_put():
    """Test a delete of an unseen key is not an error."""
    tracker = ActiveBlobTracker(NOW_MS)
    tracker.add_entries([_entry("K1", deleted=True)])

    assert len(tracker) == 0
    assert tracker.anomalies == []


def test_tracker_grows_by_at_most_one_per_entry():
    """Test the active set only grows on a key's first live sighting."""
    tracker = ActiveBlobTracker(NOW_MS)
    sizes = []
    for entry in [_entry("a"), _entry("b"), _entry("a"), _entry("c", deleted=True), _entry("d")]:
        tracker.add_entries([entry])
        sizes.append(len(tracker))

    assert sizes == [1, 2, 2, 2, 3]


def test_tracker_key_filter():
    """Test keys outside the filter are processed but not tracked."""
    tracker = ActiveBlobTracker(NOW_MS, key_filter={"K2"})
    tracker.add_entries([_entry("K1"), _entry("K2")])

    assert list(tracker.active) == ["K2"]
    assert tracker.processed == 2


def test_tracker_keys_are_sorted():
    """Test active keys iterate in sorted order."""
    tracker = ActiveBlobTracker(NOW_MS)
    tracker.add_entries([_entry("c"), _entry("a"), _entry("b")])

    assert list(tracker.active) == ["a", "b", "c"]
