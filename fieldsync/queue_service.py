"""Turn scan intents into queued mutations, and read them back per row."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from .store import (
    MUTATION_ADD,
    MUTATION_DELETE,
    MUTATION_UPDATE,
    ORDER_SENTINEL,
    STATUS_PENDING,
    Mutation,
    MutationPayload,
    QueueStore,
    Record,
)
from .utils import local_date, normalize_timestamp


def _require(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} is required")
    return value.strip()


def queue_add(
    store: QueueStore,
    code: str,
    row_id: str,
    order_in_row: int,
    *,
    user_id: str | None = None,
    timestamp: str | None = None,
    latitude: float | None = None,
    longitude: float | None = None,
) -> Mutation:
    code = _require(code, "code")
    row_id = _require(row_id, "row_id")
    scan_date = local_date(timestamp)
    timestamp = normalize_timestamp(timestamp)
    local_sequence = store.next_sequence(row_id)
    payload: MutationPayload = {
        "code": code,
        "row_id": row_id,
        "order_in_row": int(order_in_row),
        "timestamp": timestamp,
        "scan_date": scan_date,
        "local_sequence": local_sequence,
        "user_id": user_id,
        "latitude": latitude,
        "longitude": longitude,
    }
    return store.append(MUTATION_ADD, payload)


def queue_update(
    store: QueueStore,
    record_id: str,
    row_id: str,
    old_code: str,
    new_code: str,
    timestamp: str,
    *,
    user_id: str | None = None,
) -> Mutation:
    record_id = _require(record_id, "record_id")
    row_id = _require(row_id, "row_id")
    new_code = _require(new_code, "new_code")
    timestamp = normalize_timestamp(timestamp)
    local_sequence = store.next_sequence(row_id)
    payload: MutationPayload = {
        "code": new_code,
        "row_id": row_id,
        "order_in_row": ORDER_SENTINEL,
        "timestamp": timestamp,
        "local_sequence": local_sequence,
        "user_id": user_id,
        "record_id": record_id,
        "old_code": old_code,
        "new_code": new_code,
    }
    return store.append(MUTATION_UPDATE, payload)


def queue_delete(
    store: QueueStore,
    record_id: str,
    row_id: str,
    code: str,
    timestamp: str,
    *,
    user_id: str | None = None,
) -> Mutation:
    record_id = _require(record_id, "record_id")
    row_id = _require(row_id, "row_id")
    scan_date = local_date(timestamp)
    timestamp = normalize_timestamp(timestamp)
    local_sequence = store.next_sequence(row_id)
    payload: MutationPayload = {
        "code": code,
        "row_id": row_id,
        "order_in_row": ORDER_SENTINEL,
        "timestamp": timestamp,
        "scan_date": scan_date,
        "local_sequence": local_sequence,
        "user_id": user_id,
        "record_id": record_id,
    }
    return store.append(MUTATION_DELETE, payload)


def mutation_to_record(mutation: Mutation) -> Record:
    payload = mutation.payload
    return Record(
        id=mutation.id,
        code=str(payload.get("code") or ""),
        row_id=mutation.row_id,
        order_in_row=payload.get("order_in_row"),
        timestamp=mutation.timestamp,
        user_id=mutation.user_id,
        latitude=payload.get("latitude"),
        longitude=payload.get("longitude"),
        pending=True,
        local_sequence=mutation.local_sequence,
    )


def _records_from_adds(mutations: Iterable[Mutation]) -> list[Record]:
    # Anything still in the queue is unconfirmed, whatever its status.
    return [mutation_to_record(m) for m in mutations if m.kind == MUTATION_ADD]


def _delete_ids(mutations: Iterable[Mutation]) -> set[str]:
    ids: set[str] = set()
    for mutation in mutations:
        if mutation.kind == MUTATION_DELETE and mutation.record_id:
            ids.add(mutation.record_id)
    return ids


def _updates(mutations: Iterable[Mutation]) -> dict[str, str]:
    updates: dict[str, str] = {}
    # Queue order: the last edit of a record wins.
    for mutation in mutations:
        if mutation.kind != MUTATION_UPDATE or not mutation.record_id:
            continue
        new_code = mutation.payload.get("new_code") or mutation.payload.get("code")
        if new_code:
            updates[mutation.record_id] = str(new_code)
    return updates


@dataclass(frozen=True)
class RowOverlay:
    """Queued changes for one row, read in a single pass over the queue."""

    adds: list[Record]
    delete_ids: set[str]
    updates: dict[str, str]


def row_overlay(store: QueueStore, row_id: str) -> RowOverlay:
    mutations = store.list_for_row(row_id)
    return RowOverlay(
        adds=_records_from_adds(mutations),
        delete_ids=_delete_ids(mutations),
        updates=_updates(mutations),
    )


def pending_records_for_row(store: QueueStore, row_id: str) -> list[Record]:
    return _records_from_adds(store.list_for_row(row_id))


def pending_delete_ids(store: QueueStore, row_id: str) -> set[str]:
    return _delete_ids(store.list_for_row(row_id))


def pending_updates(store: QueueStore, row_id: str) -> dict[str, str]:
    return _updates(store.list_for_row(row_id))


def count_adjustments(mutations: Iterable[Mutation]) -> dict[str, int]:
    adjustments: dict[str, int] = {}
    for mutation in mutations:
        if mutation.kind == MUTATION_ADD:
            delta = 1
        elif mutation.kind == MUTATION_DELETE:
            delta = -1
        else:
            continue
        adjustments[mutation.row_id] = adjustments.get(mutation.row_id, 0) + delta
    return adjustments


def pending_count_adjustments(store: QueueStore) -> dict[str, int]:
    """Per-row scan count change still waiting in the queue."""
    return count_adjustments(store.list_all(status=STATUS_PENDING))


def row_adjustment(adjustments: dict[str, int], row_id: str) -> int:
    return adjustments.get(row_id, 0)


def park_adjustment(adjustments: dict[str, int], row_ids: Iterable[str]) -> int:
    return sum(adjustments.get(row_id, 0) for row_id in row_ids)
