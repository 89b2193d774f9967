from __future__ import annotations

from .base import DailyScan, RemoteStore, record_from_row
from .rest import RestRemoteStore

__all__ = ["DailyScan", "RemoteStore", "RestRemoteStore", "record_from_row"]
