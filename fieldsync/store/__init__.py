from __future__ import annotations

from ._store import QueueStore
from .types import (
    MUTATION_ADD,
    MUTATION_DELETE,
    MUTATION_UPDATE,
    ORDER_SENTINEL,
    STATUS_FAILED,
    STATUS_PENDING,
    STATUS_SYNCING,
    Mutation,
    MutationPayload,
    Record,
    SyncResult,
    SyncState,
)

__all__ = [
    "MUTATION_ADD",
    "MUTATION_DELETE",
    "MUTATION_UPDATE",
    "ORDER_SENTINEL",
    "STATUS_FAILED",
    "STATUS_PENDING",
    "STATUS_SYNCING",
    "Mutation",
    "MutationPayload",
    "QueueStore",
    "Record",
    "SyncResult",
    "SyncState",
]
