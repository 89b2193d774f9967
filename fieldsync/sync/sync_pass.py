"""Replay the mutation queue against the remote store.

A pass is all-or-nothing from the queue's point of view: mutations are
removed one by one as the remote accepts them, and the first failure
returns everything this pass claimed but did not finish to ``pending``.
"""

from __future__ import annotations

import datetime as dt
import logging
import threading
from collections.abc import Callable
from typing import Any

from ..errors import InvalidMutation, RemoteConflict, RemoteFailure, StorageUnavailable
from ..remote import RemoteStore
from ..store import (
    MUTATION_ADD,
    MUTATION_DELETE,
    MUTATION_UPDATE,
    STATUS_FAILED,
    STATUS_PENDING,
    Mutation,
    QueueStore,
    SyncResult,
    SyncState,
)
from .stats import reconcile_stats

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SyncState], None]

ALREADY_RUNNING = "sync already in progress"
DEFAULT_STUCK_AFTER_S = 300


def _require_record_id(mutation: Mutation) -> str:
    record_id = mutation.record_id
    if not record_id:
        raise InvalidMutation(mutation.id, f"{mutation.kind} without record_id")
    return record_id


def _sync_add(remote: RemoteStore, mutation: Mutation) -> None:
    payload = mutation.payload
    if not mutation.user_id:
        raise InvalidMutation(mutation.id, "user_id is required to sync a scan")
    record: dict[str, Any] = {
        "id": mutation.id,
        "code": payload.get("code"),
        "row_id": mutation.row_id,
        "order_in_row": payload.get("order_in_row"),
        "timestamp": mutation.timestamp,
        "user_id": mutation.user_id,
        "latitude": payload.get("latitude"),
        "longitude": payload.get("longitude"),
    }
    try:
        remote.insert_record(record)
    except RemoteConflict as exc:
        if exc.reason != RemoteConflict.DUPLICATE:
            raise RemoteFailure(str(exc)) from exc
        logger.info("barcode %s already on remote; treating as synced", mutation.id)


def _sync_delete(remote: RemoteStore, mutation: Mutation) -> None:
    record_id = _require_record_id(mutation)
    try:
        remote.delete_record(record_id)
    except RemoteConflict as exc:
        if exc.reason != RemoteConflict.NOT_FOUND:
            raise RemoteFailure(str(exc)) from exc
        logger.info("barcode %s already gone on remote; treating as synced", record_id)


def _sync_update(remote: RemoteStore, mutation: Mutation) -> None:
    record_id = _require_record_id(mutation)
    new_code = mutation.payload.get("new_code") or mutation.payload.get("code")
    if not new_code:
        raise InvalidMutation(mutation.id, "UPDATE without new_code")
    try:
        remote.update_record(record_id, {"code": new_code})
    except RemoteConflict as exc:
        if exc.reason != RemoteConflict.NOT_FOUND:
            raise RemoteFailure(str(exc)) from exc
        logger.info("barcode %s missing on remote; dropping edit", record_id)


_HANDLERS: dict[str, Callable[[RemoteStore, Mutation], None]] = {
    MUTATION_ADD: _sync_add,
    MUTATION_DELETE: _sync_delete,
    MUTATION_UPDATE: _sync_update,
}


def apply_mutation(remote: RemoteStore, mutation: Mutation) -> None:
    handler = _HANDLERS.get(mutation.kind)
    if handler is None:
        raise InvalidMutation(mutation.id, f"unknown kind {mutation.kind!r}")
    handler(remote, mutation)


class SyncManager:
    """Runs sync passes for one queue store, at most one at a time."""

    def __init__(
        self,
        store: QueueStore,
        remote: RemoteStore,
        *,
        stuck_after_s: int = DEFAULT_STUCK_AFTER_S,
    ) -> None:
        self.store = store
        self.remote = remote
        self.stuck_after_s = stuck_after_s
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    def run(self, on_progress: ProgressCallback | None = None) -> SyncResult:
        if not self._lock.acquire(blocking=False):
            logger.info("sync pass requested while another is running; skipping")
            return SyncResult(success=False, error=ALREADY_RUNNING, skipped=True)
        try:
            return self._run_pass(on_progress)
        finally:
            self._lock.release()

    def _notify(self, on_progress: ProgressCallback | None, state: SyncState) -> None:
        if on_progress is None:
            return
        try:
            on_progress(state)
        except Exception:
            logger.exception("sync progress callback failed")

    def _recover_stuck(self) -> None:
        cutoff = dt.datetime.now(dt.UTC) - dt.timedelta(seconds=self.stuck_after_s)
        self.store.recover_stuck(older_than_iso=cutoff.isoformat(timespec="microseconds"))

    def _rollback(self, touched: list[str]) -> None:
        if not touched:
            return
        try:
            released = self.store.release(touched)
        except StorageUnavailable:
            # Left in syncing; the next pass recovers them once they age out.
            logger.exception("failed to release %s claimed mutations", len(touched))
            return
        logger.info("released %s mutations back to pending", released)

    def _run_pass(self, on_progress: ProgressCallback | None) -> SyncResult:
        try:
            self._recover_stuck()
            pending = self.store.list_all(status=STATUS_PENDING)
        except StorageUnavailable as exc:
            return SyncResult(success=False, error=str(exc))
        if not pending:
            logger.debug("sync pass: queue is empty")
            return SyncResult(success=True)

        total = len(pending)
        synced: list[Mutation] = []
        touched: list[str] = []
        logger.info("sync pass started: %s pending mutations", total)
        self._notify(on_progress, SyncState(is_syncing=True, progress=0, total=total))
        try:
            for mutation in pending:
                if not self.store.claim(mutation.id):
                    logger.warning("mutation %s was claimed elsewhere; skipping", mutation.id)
                    total -= 1
                    continue
                touched.append(mutation.id)
                apply_mutation(self.remote, mutation)
                self.store.remove(mutation.id)
                synced.append(mutation)
                self._notify(
                    on_progress,
                    SyncState(is_syncing=True, progress=len(synced), total=total),
                )
        except Exception as exc:
            detail = str(exc).strip() or exc.__class__.__name__
            if isinstance(exc, InvalidMutation):
                self._mark_failed(exc.mutation_id)
                touched = [mid for mid in touched if mid != exc.mutation_id]
            logger.warning("sync pass aborted after %s of %s: %s", len(synced), total, detail)
            self._rollback(touched)
            failed = total - len(synced)
            self._notify(
                on_progress,
                SyncState(is_syncing=False, progress=len(synced), total=total, error=detail),
            )
            return SyncResult(
                success=False,
                synced_count=len(synced),
                failed_count=failed,
                error=detail,
                synced=synced,
            )

        try:
            self.store.reset_sequences()
        except StorageUnavailable:
            logger.warning("could not reset row sequences after sync", exc_info=True)
        if synced:
            try:
                report = reconcile_stats(self.remote, synced)
                if not report.ok:
                    logger.warning("scan stats partially updated: %s", "; ".join(report.errors))
            except Exception:
                logger.exception("scan stats update failed")
        logger.info("sync pass finished: %s mutations synced", len(synced))
        self._notify(
            on_progress,
            SyncState(is_syncing=False, progress=len(synced), total=total),
        )
        return SyncResult(success=True, synced_count=len(synced), synced=synced)

    def _mark_failed(self, mutation_id: str) -> None:
        try:
            self.store.set_status(mutation_id, STATUS_FAILED)
        except StorageUnavailable:
            logger.exception("could not mark mutation %s as failed", mutation_id)
