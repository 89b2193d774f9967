from __future__ import annotations

import json

import typer
from rich import print
from rich.markup import escape

from fieldsync import queue_service
from fieldsync.errors import RemoteError, StorageUnavailable
from fieldsync.merge import merged_records_for_row
from fieldsync.remote import RemoteStore
from fieldsync.store import QueueStore, Record


def scan_cmd(
    store: QueueStore,
    *,
    code: str,
    row_id: str,
    order_in_row: int,
    user_id: str | None,
    timestamp: str | None,
    latitude: float | None,
    longitude: float | None,
) -> None:
    """Queue a scanned barcode."""

    try:
        mutation = queue_service.queue_add(
            store,
            code,
            row_id,
            order_in_row,
            user_id=user_id,
            timestamp=timestamp,
            latitude=latitude,
            longitude=longitude,
        )
    except (ValueError, StorageUnavailable) as exc:
        print(f"[red]Not queued: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    if not user_id:
        print("[yellow]No user id set; this scan cannot sync until one is provided[/yellow]")
    print(f"Queued scan {mutation.id} (row {row_id}, seq {mutation.local_sequence})")


def edit_cmd(
    store: QueueStore,
    *,
    record_id: str,
    row_id: str,
    old_code: str,
    new_code: str,
    timestamp: str,
    user_id: str | None,
) -> None:
    """Queue a code change for an existing barcode."""

    try:
        mutation = queue_service.queue_update(
            store, record_id, row_id, old_code, new_code, timestamp, user_id=user_id
        )
    except (ValueError, StorageUnavailable) as exc:
        print(f"[red]Not queued: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"Queued edit {mutation.id}: {record_id} {old_code} -> {new_code}")


def delete_cmd(
    store: QueueStore,
    *,
    record_id: str,
    row_id: str,
    code: str,
    timestamp: str,
    user_id: str | None,
) -> None:
    """Queue removal of a barcode."""

    try:
        mutation = queue_service.queue_delete(
            store, record_id, row_id, code, timestamp, user_id=user_id
        )
    except (ValueError, StorageUnavailable) as exc:
        print(f"[red]Not queued: {exc}[/red]")
        raise typer.Exit(code=1) from exc
    print(f"Queued delete {mutation.id} for {record_id}")


def _record_line(record: Record) -> str:
    flags = []
    if record.pending:
        flags.append("pending")
    if record.edited:
        flags.append("edited")
    suffix = f" <{', '.join(flags)}>" if flags else ""
    order = "-" if record.order_in_row is None else str(record.order_in_row)
    return f"- {order:>4} {escape(record.code)} ({record.id}){suffix}"


def row_cmd(
    store: QueueStore,
    remote: RemoteStore | None,
    *,
    row_id: str,
    as_json: bool,
) -> None:
    """Show a row as the scanner sees it: remote records plus queued changes."""

    snapshot: list[Record] = []
    if remote is not None:
        try:
            snapshot = remote.fetch_row_records(row_id)
        except RemoteError as exc:
            print(f"[yellow]Remote unavailable, showing queued changes only: {exc}[/yellow]")
    records = merged_records_for_row(store, row_id, snapshot)
    if as_json:
        typer.echo(json.dumps([record.to_dict() for record in records], indent=2))
        return
    adjustment = queue_service.row_adjustment(
        queue_service.pending_count_adjustments(store), row_id
    )
    print(f"Row {row_id}: {len(records)} barcodes (pending change {adjustment:+d})")
    for record in records:
        print(_record_line(record))


def queue_status_cmd(store: QueueStore) -> None:
    """Show queued mutation counts by status."""

    counts = store.status_counts()
    total = sum(counts.values())
    if not total:
        print("Queue is empty")
        return
    print(
        f"queued={total} pending={counts['pending']} "
        f"syncing={counts['syncing']} failed={counts['failed']}"
    )
    adjustments = queue_service.pending_count_adjustments(store)
    for row_id in sorted(adjustments):
        print(f"- row {row_id}: {adjustments[row_id]:+d}")


def queue_list_cmd(store: QueueStore, *, row_id: str | None, as_json: bool) -> None:
    """List queued mutations in replay order."""

    mutations = store.list_for_row(row_id) if row_id else store.list_all()
    if as_json:
        items = [
            {
                "id": m.id,
                "kind": m.kind,
                "status": m.status,
                "created_at": m.created_at,
                "payload": dict(m.payload),
            }
            for m in mutations
        ]
        typer.echo(json.dumps(items, indent=2))
        return
    if not mutations:
        print("No queued mutations")
        return
    for m in mutations:
        print(
            f"- {m.id} {m.kind:<6} {m.status:<7} row={m.row_id} "
            f"seq={m.local_sequence} ts={m.timestamp} code={escape(str(m.payload.get('code') or ''))}"
        )


def queue_retry_cmd(store: QueueStore) -> None:
    """Return failed mutations to pending."""

    count = store.retry_failed()
    if not count:
        print("No failed mutations")
        return
    print(f"Moved {count} failed mutations back to pending")


def queue_clear_cmd(store: QueueStore, *, yes: bool) -> None:
    """Drop every queued mutation without syncing it."""

    if not yes:
        print("[red]Refusing to discard queued scans without --yes[/red]")
        raise typer.Exit(code=1)
    removed = store.clear_all()
    store.reset_sequences()
    print(f"Discarded {removed} queued mutations")
