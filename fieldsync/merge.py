"""Combine a row's remote snapshot with its queued mutations for display.

The merge is a pure projection: neither the snapshot nor the queue is
modified, and the result is recomputed whenever either changes.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping, Sequence
from collections.abc import Set as AbstractSet

from . import queue_service
from .store import QueueStore, Record


def _display_key(record: Record) -> tuple[bool, int, bool, int]:
    # Missing positions go last; on equal positions the queue order decides.
    order_missing = record.order_in_row is None
    order = record.order_in_row if record.order_in_row is not None else 0
    has_sequence = record.local_sequence is not None
    sequence = record.local_sequence if record.local_sequence is not None else 0
    return (order_missing, order, has_sequence, sequence)


def merge_records(
    snapshot: Sequence[Record],
    pending_adds: Sequence[Record],
    delete_ids: AbstractSet[str],
    updates: Mapping[str, str],
) -> list[Record]:
    pending_ids = {record.id for record in pending_adds}
    # A snapshot refreshed mid-sync may already contain a just-synced add.
    confirmed = [record for record in snapshot if record.id not in pending_ids]
    combined = sorted([*confirmed, *pending_adds], key=_display_key)
    merged: list[Record] = []
    for record in combined:
        if record.id in delete_ids:
            continue
        new_code = updates.get(record.id)
        if new_code is not None and new_code != record.code:
            record = dataclasses.replace(record, code=new_code, edited=True)
        merged.append(record)
    return merged


def merged_records_for_row(
    store: QueueStore, row_id: str, snapshot: Sequence[Record]
) -> list[Record]:
    overlay = queue_service.row_overlay(store, row_id)
    return merge_records(snapshot, overlay.adds, overlay.delete_ids, overlay.updates)
