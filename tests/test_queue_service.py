from __future__ import annotations

import pytest

from fieldsync import queue_service
from fieldsync.store import (
    MUTATION_ADD,
    MUTATION_DELETE,
    MUTATION_UPDATE,
    ORDER_SENTINEL,
    STATUS_FAILED,
    QueueStore,
)


def test_queue_add_builds_payload(store: QueueStore) -> None:
    mutation = queue_service.queue_add(
        store,
        "ABC123",
        "R",
        4,
        user_id="u1",
        timestamp="2024-05-01T12:00:00+02:00",
        latitude=51.5,
        longitude=-0.1,
    )

    assert mutation.kind == MUTATION_ADD
    assert mutation.payload["code"] == "ABC123"
    assert mutation.payload["order_in_row"] == 4
    assert mutation.payload["local_sequence"] == 1
    assert mutation.timestamp == "2024-05-01T10:00:00.000000+00:00"
    assert mutation.payload["scan_date"] == "2024-05-01"
    assert mutation.record_id == mutation.id
    assert store.get(mutation.id) == mutation


def test_queue_add_defaults_timestamp_to_now(store: QueueStore) -> None:
    mutation = queue_service.queue_add(store, "A", "R", 0)
    assert mutation.timestamp.endswith("+00:00")
    assert mutation.user_id is None


def test_queue_update_and_delete_use_sentinel_order(store: QueueStore) -> None:
    update = queue_service.queue_update(
        store, "rec-1", "R", "OLD", "NEW", "2024-05-01T10:00:00Z", user_id="u1"
    )
    delete = queue_service.queue_delete(store, "rec-2", "R", "GONE", "2024-05-01T10:00:01Z")

    assert update.kind == MUTATION_UPDATE
    assert update.payload["order_in_row"] == ORDER_SENTINEL
    assert update.payload["code"] == "NEW"
    assert update.payload["old_code"] == "OLD"
    assert update.record_id == "rec-1"
    assert delete.kind == MUTATION_DELETE
    assert delete.payload["order_in_row"] == ORDER_SENTINEL
    assert delete.record_id == "rec-2"
    assert [update.local_sequence, delete.local_sequence] == [1, 2]


def test_invalid_input_queues_nothing(store: QueueStore) -> None:
    with pytest.raises(ValueError, match="timestamp"):
        queue_service.queue_add(store, "A", "R", 0, timestamp="yesterday")
    with pytest.raises(ValueError, match="row_id"):
        queue_service.queue_add(store, "A", " ", 0)
    with pytest.raises(ValueError, match="record_id"):
        queue_service.queue_delete(store, "", "R", "A", "2024-05-01T10:00:00Z")
    assert store.count() == 0


def test_pending_overlay_for_row(store: QueueStore) -> None:
    add = queue_service.queue_add(store, "A", "R", 0, timestamp="2024-05-01T10:00:00Z")
    queue_service.queue_add(store, "Z", "other", 0, timestamp="2024-05-01T10:00:00Z")
    queue_service.queue_delete(store, "rec-1", "R", "X", "2024-05-01T10:00:01Z")
    queue_service.queue_update(store, "rec-2", "R", "B", "B1", "2024-05-01T10:00:02Z")
    queue_service.queue_update(store, "rec-2", "R", "B1", "B2", "2024-05-01T10:00:03Z")

    records = queue_service.pending_records_for_row(store, "R")
    assert [r.id for r in records] == [add.id]
    assert records[0].pending is True
    assert records[0].local_sequence == 1
    assert queue_service.pending_delete_ids(store, "R") == {"rec-1"}
    assert queue_service.pending_updates(store, "R") == {"rec-2": "B2"}

    overlay = queue_service.row_overlay(store, "R")
    assert [r.id for r in overlay.adds] == [add.id]
    assert overlay.delete_ids == {"rec-1"}
    assert overlay.updates == {"rec-2": "B2"}


def test_pending_count_adjustments(store: QueueStore) -> None:
    queue_service.queue_add(store, "A", "R1", 0, user_id="u1")
    queue_service.queue_add(store, "B", "R1", 1, user_id="u1")
    queue_service.queue_delete(store, "rec-1", "R1", "X", "2024-05-01T10:00:00Z")
    queue_service.queue_update(store, "rec-2", "R1", "Y", "Y2", "2024-05-01T10:00:00Z")
    failed = queue_service.queue_add(store, "C", "R2", 0, user_id="u1")
    queue_service.queue_add(store, "D", "R2", 1, user_id="u1")

    adjustments = queue_service.pending_count_adjustments(store)
    assert adjustments == {"R1": 1, "R2": 2}
    assert queue_service.park_adjustment(adjustments, ["R1", "R2", "R3"]) == 3
    assert queue_service.row_adjustment(adjustments, "R3") == 0

    store.set_status(failed.id, STATUS_FAILED)
    assert queue_service.pending_count_adjustments(store) == {"R1": 1, "R2": 1}


def test_scan_date_keeps_the_written_offset(store: QueueStore) -> None:
    mutation = queue_service.queue_add(
        store, "A", "R", 0, user_id="u1", timestamp="2024-05-01T23:30-05:00"
    )

    assert mutation.timestamp == "2024-05-02T04:30:00.000000+00:00"
    assert mutation.payload["scan_date"] == "2024-05-01"
