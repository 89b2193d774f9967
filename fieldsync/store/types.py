from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypedDict

MUTATION_ADD = "ADD"
MUTATION_UPDATE = "UPDATE"
MUTATION_DELETE = "DELETE"
MUTATION_KINDS = (MUTATION_ADD, MUTATION_UPDATE, MUTATION_DELETE)

STATUS_PENDING = "pending"
STATUS_SYNCING = "syncing"
STATUS_FAILED = "failed"
MUTATION_STATUSES = (STATUS_PENDING, STATUS_SYNCING, STATUS_FAILED)

# UPDATE and DELETE do not occupy a position in the row.
ORDER_SENTINEL = -1


class MutationPayload(TypedDict, total=False):
    code: str
    row_id: str
    order_in_row: int
    timestamp: str
    scan_date: str
    local_sequence: int
    user_id: str | None
    latitude: float | None
    longitude: float | None
    record_id: str
    old_code: str
    new_code: str


@dataclass(frozen=True)
class Mutation:
    id: str
    kind: str
    payload: MutationPayload
    created_at: str
    status: str = STATUS_PENDING

    @property
    def row_id(self) -> str:
        return str(self.payload.get("row_id") or "")

    @property
    def timestamp(self) -> str:
        return str(self.payload.get("timestamp") or "")

    @property
    def local_sequence(self) -> int:
        return int(self.payload.get("local_sequence") or 0)

    @property
    def user_id(self) -> str | None:
        return self.payload.get("user_id")

    @property
    def record_id(self) -> str | None:
        """Remote record targeted by this mutation (the mutation id for ADD)."""
        if self.kind == MUTATION_ADD:
            return self.id
        return self.payload.get("record_id")


@dataclass(frozen=True)
class Record:
    id: str
    code: str
    row_id: str
    order_in_row: int | None
    timestamp: str
    user_id: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    pending: bool = False
    local_sequence: int | None = None
    edited: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "code": self.code,
            "row_id": self.row_id,
            "order_in_row": self.order_in_row,
            "timestamp": self.timestamp,
            "user_id": self.user_id,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "pending": self.pending,
            "local_sequence": self.local_sequence,
            "edited": self.edited,
        }


@dataclass
class SyncState:
    is_syncing: bool = False
    progress: int = 0
    total: int = 0
    error: str | None = None


@dataclass
class SyncResult:
    success: bool
    synced_count: int = 0
    failed_count: int = 0
    error: str | None = None
    skipped: bool = False
    synced: list[Mutation] = field(default_factory=list, repr=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "synced_count": self.synced_count,
            "failed_count": self.failed_count,
            "error": self.error,
            "skipped": self.skipped,
        }
