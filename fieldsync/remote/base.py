from __future__ import annotations

from typing import Any, Protocol, TypedDict

from ..store import Record


class DailyScan(TypedDict):
    id: str
    user_id: str
    date: str
    count: int


class RemoteStore(Protocol):
    """System of record the sync pass replays the queue against.

    Implementations raise ``RemoteConflict`` for a duplicate key on insert and
    for a missing row on delete or update, and ``RemoteFailure`` for anything
    else (including transport errors and timeouts).
    """

    def insert_record(self, record: dict[str, Any]) -> None: ...

    def delete_record(self, record_id: str) -> None: ...

    def update_record(self, record_id: str, fields: dict[str, Any]) -> None: ...

    def fetch_row_records(self, row_id: str) -> list[Record]: ...

    def get_daily_scan(self, user_id: str, date: str) -> DailyScan | None: ...

    def insert_daily_scan(self, user_id: str, date: str, count: int) -> None: ...

    def update_daily_scan(self, scan_id: str, count: int) -> None: ...

    def recompute_user_total(self, user_id: str) -> None: ...

    def ping(self) -> bool: ...

    def close(self) -> None: ...


def record_from_row(row: dict[str, Any]) -> Record:
    order = row.get("order_in_row")
    return Record(
        id=str(row.get("id") or ""),
        code=str(row.get("code") or ""),
        row_id=str(row.get("row_id") or ""),
        order_in_row=int(order) if order is not None else None,
        timestamp=str(row.get("timestamp") or ""),
        user_id=row.get("user_id"),
        latitude=row.get("latitude"),
        longitude=row.get("longitude"),
    )
