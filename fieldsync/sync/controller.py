"""Connectivity tracking and user-facing sync orchestration."""

from __future__ import annotations

import datetime as dt
import logging
import threading
import time
import traceback
from collections.abc import Callable
from pathlib import Path

from ..remote import RemoteStore
from ..store import STATUS_PENDING, QueueStore, SyncResult, SyncState
from .sync_pass import ProgressCallback, SyncManager

logger = logging.getLogger(__name__)

OFFLINE_ERROR = "cannot sync while offline"

ConnectivityListener = Callable[[bool], None]
StateListener = Callable[[SyncState], None]


class ConnectivityMonitor:
    def __init__(self, online: bool = False, *, reconnect_grace_s: float = 5.0) -> None:
        self.reconnect_grace_s = reconnect_grace_s
        self._online = online
        self._lock = threading.Lock()
        self._listeners: list[ConnectivityListener] = []
        self._reconnected_at: float | None = None
        self.last_online_at: str | None = None
        self.last_offline_at: str | None = None

    def is_online(self) -> bool:
        return self._online

    def just_reconnected(self) -> bool:
        reconnected_at = self._reconnected_at
        if not self._online or reconnected_at is None:
            return False
        return time.monotonic() - reconnected_at < self.reconnect_grace_s

    def set_online(self, online: bool) -> bool:
        """Record the current connectivity; returns True when it changed."""
        with self._lock:
            if online == self._online:
                return False
            self._online = online
            now = dt.datetime.now(dt.UTC).isoformat()
            if online:
                self.last_online_at = now
                self._reconnected_at = time.monotonic()
            else:
                self.last_offline_at = now
                self._reconnected_at = None
            listeners = list(self._listeners)
        logger.info("connectivity changed: %s", "online" if online else "offline")
        for listener in listeners:
            try:
                listener(online)
            except Exception:
                logger.exception("connectivity listener failed")
        return True

    def subscribe(self, listener: ConnectivityListener) -> Callable[[], None]:
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def probe(self, remote: RemoteStore) -> bool:
        try:
            online = bool(remote.ping())
        except Exception as exc:
            logger.debug("connectivity probe failed: %s", exc)
            online = False
        self.set_online(online)
        return online


class SyncController:
    """What the presentation layer talks to: counts, state and the sync button."""

    def __init__(
        self,
        store: QueueStore,
        remote: RemoteStore,
        monitor: ConnectivityMonitor,
        *,
        auto_sync_on_reconnect: bool = False,
        stuck_after_s: int = 300,
    ) -> None:
        self.store = store
        self.remote = remote
        self.monitor = monitor
        self.auto_sync_on_reconnect = auto_sync_on_reconnect
        self.manager = SyncManager(store, remote, stuck_after_s=stuck_after_s)
        self.sync_state = SyncState()
        self.last_result: SyncResult | None = None
        self._listeners: list[StateListener] = []
        self._unsubscribe_monitor = monitor.subscribe(self._on_connectivity)

    def close(self) -> None:
        self._unsubscribe_monitor()

    def pending_count(self) -> int:
        """Mutations not yet confirmed by the remote store, whatever their status."""
        return self.store.count()

    def can_sync(self) -> bool:
        return self.monitor.is_online() and self.store.count(STATUS_PENDING) > 0

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _publish(self, state: SyncState) -> None:
        self.sync_state = state
        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("sync state listener failed")

    def start_sync(self, on_progress: ProgressCallback | None = None) -> SyncResult:
        if not self.monitor.is_online():
            result = SyncResult(success=False, error=OFFLINE_ERROR)
            self._publish(SyncState(is_syncing=False, error=OFFLINE_ERROR))
            self.last_result = result
            return result

        def forward(state: SyncState) -> None:
            self._publish(state)
            if on_progress is not None:
                on_progress(state)

        result = self.manager.run(forward)
        if result.skipped:
            return result
        self.last_result = result
        if result.synced_count == 0 and result.success:
            self._publish(SyncState(is_syncing=False))
        return result

    def _on_connectivity(self, online: bool) -> None:
        if not online or not self.auto_sync_on_reconnect:
            return
        if self.manager.is_running or not self.can_sync():
            return
        logger.info("back online; starting sync")
        result = self.start_sync()
        if not result.success and not result.skipped:
            logger.warning("automatic sync failed: %s", result.error)


def run_sync_watch(
    controller: SyncController,
    *,
    interval_s: float,
    stop_event: threading.Event | None = None,
) -> None:
    stop = stop_event or threading.Event()
    while not stop.wait(interval_s):
        try:
            controller.monitor.probe(controller.remote)
        except Exception as exc:
            logger.error("sync watch tick failed: %s", exc)
            _append_sync_log(traceback.format_exc())


def _append_sync_log(message: str) -> None:
    try:
        log_dir = Path.home() / ".fieldsync"
        log_dir.mkdir(parents=True, exist_ok=True)
        log_path = log_dir / "sync.log"
        ts = dt.datetime.now(dt.UTC).isoformat()
        with log_path.open("a", encoding="utf-8", errors="ignore") as handle:
            handle.write(f"\n[{ts}]\n{message}\n")
    except OSError:
        return
