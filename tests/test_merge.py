from __future__ import annotations

from fieldsync import queue_service
from fieldsync.merge import merge_records, merged_records_for_row
from fieldsync.store import QueueStore, Record

TS = "2024-05-01T10:00:00.000000+00:00"


def _remote(record_id: str, order: int | None, code: str) -> Record:
    return Record(id=record_id, code=code, row_id="R", order_in_row=order, timestamp=TS)


def _pending(record_id: str, order: int, code: str, seq: int) -> Record:
    return Record(
        id=record_id,
        code=code,
        row_id="R",
        order_in_row=order,
        timestamp=TS,
        pending=True,
        local_sequence=seq,
    )


def test_pending_delete_hides_remote_record() -> None:
    snapshot = [_remote("r1", 0, "A")]
    pending = [_pending("p1", 1, "B", 1)]

    merged = merge_records(snapshot, pending, {"r1"}, {})

    assert [(r.id, r.code, r.pending) for r in merged] == [("p1", "B", True)]


def test_merge_orders_by_position_then_sequence() -> None:
    snapshot = [_remote("r2", 2, "C"), _remote("r0", 0, "A"), _remote("rx", None, "?")]
    pending = [_pending("p2", 1, "B2", 2), _pending("p1", 1, "B1", 1)]

    merged = merge_records(snapshot, pending, set(), {})

    assert [r.id for r in merged] == ["r0", "p1", "p2", "r2", "rx"]


def test_merge_applies_latest_update() -> None:
    snapshot = [_remote("r1", 0, "A"), _remote("r2", 1, "B")]

    merged = merge_records(snapshot, [], set(), {"r2": "B-fixed", "gone": "X"})

    assert [(r.code, r.edited) for r in merged] == [("A", False), ("B-fixed", True)]
    assert snapshot[1].code == "B"


def test_snapshot_copy_of_pending_add_is_not_duplicated() -> None:
    snapshot = [_remote("p1", 0, "A")]
    pending = [_pending("p1", 0, "A", 1)]

    merged = merge_records(snapshot, pending, set(), {})

    assert len(merged) == 1
    assert merged[0].pending is True


def test_merged_records_for_row_reads_queue(store: QueueStore) -> None:
    added = queue_service.queue_add(store, "B", "R", 1, user_id="u1")
    queue_service.queue_delete(store, "r1", "R", "A", TS)
    queue_service.queue_update(store, "r2", "R", "C", "C2", TS)
    snapshot = [_remote("r1", 0, "A"), _remote("r2", 2, "C")]

    merged = merged_records_for_row(store, "R", snapshot)

    assert [(r.id, r.code, r.pending, r.edited) for r in merged] == [
        (added.id, "B", True, False),
        ("r2", "C2", False, True),
    ]
    assert store.count() == 3
