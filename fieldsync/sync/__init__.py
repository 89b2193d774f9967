from __future__ import annotations

from .controller import ConnectivityMonitor, SyncController, run_sync_watch
from .stats import StatsReport, reconcile_stats
from .sync_pass import SyncManager, apply_mutation

__all__ = [
    "ConnectivityMonitor",
    "StatsReport",
    "SyncController",
    "SyncManager",
    "apply_mutation",
    "reconcile_stats",
    "run_sync_watch",
]
