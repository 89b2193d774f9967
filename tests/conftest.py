from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from typing import Any

import pytest

from fieldsync.config import CONFIG_ENV_OVERRIDES
from fieldsync.errors import RemoteConflict, RemoteFailure
from fieldsync.remote import DailyScan, record_from_row
from fieldsync.store import QueueStore, Record


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for env_var in CONFIG_ENV_OVERRIDES.values():
        monkeypatch.delenv(env_var, raising=False)
    monkeypatch.setenv("FIELDSYNC_CONFIG", str(tmp_path / "config.json"))
    monkeypatch.setenv("HOME", str(tmp_path / "home"))


class FakeRemoteStore:
    """In-memory remote with the same conflict semantics as the REST store."""

    def __init__(self) -> None:
        self.records: dict[str, dict[str, Any]] = {}
        self.daily_scans: dict[tuple[str, str], DailyScan] = {}
        self.recomputed: list[str] = []
        self.calls: list[tuple[str, str]] = []
        self.fail_ids: set[str] = set()
        self.fail_stats = False
        self.online = True
        self.closed = False

    def _maybe_fail(self, record_id: str) -> None:
        if record_id in self.fail_ids:
            raise RemoteFailure(f"write rejected for {record_id}")

    def insert_record(self, record: dict[str, Any]) -> None:
        self.calls.append(("insert", record["id"]))
        self._maybe_fail(record["id"])
        if record["id"] in self.records:
            raise RemoteConflict(RemoteConflict.DUPLICATE)
        self.records[record["id"]] = dict(record)

    def delete_record(self, record_id: str) -> None:
        self.calls.append(("delete", record_id))
        self._maybe_fail(record_id)
        if record_id not in self.records:
            raise RemoteConflict(RemoteConflict.NOT_FOUND)
        del self.records[record_id]

    def update_record(self, record_id: str, fields: dict[str, Any]) -> None:
        self.calls.append(("update", record_id))
        self._maybe_fail(record_id)
        if record_id not in self.records:
            raise RemoteConflict(RemoteConflict.NOT_FOUND)
        self.records[record_id].update(fields)

    def fetch_row_records(self, row_id: str) -> list[Record]:
        rows = [r for r in self.records.values() if r["row_id"] == row_id]
        rows.sort(key=lambda r: r["order_in_row"])
        return [record_from_row(r) for r in rows]

    def get_daily_scan(self, user_id: str, date: str) -> DailyScan | None:
        if self.fail_stats:
            raise RemoteFailure("stats unavailable")
        return self.daily_scans.get((user_id, date))

    def insert_daily_scan(self, user_id: str, date: str, count: int) -> None:
        scan_id = f"scan-{len(self.daily_scans) + 1}"
        self.daily_scans[(user_id, date)] = {
            "id": scan_id,
            "user_id": user_id,
            "date": date,
            "count": count,
        }

    def update_daily_scan(self, scan_id: str, count: int) -> None:
        for scan in self.daily_scans.values():
            if scan["id"] == scan_id:
                scan["count"] = count
                return
        raise RemoteFailure(f"no daily scan {scan_id}")

    def recompute_user_total(self, user_id: str) -> None:
        if self.fail_stats:
            raise RemoteFailure("stats function unavailable")
        self.recomputed.append(user_id)

    def ping(self) -> bool:
        return self.online

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def remote() -> FakeRemoteStore:
    return FakeRemoteStore()


@pytest.fixture
def store(tmp_path: Path) -> Iterator[QueueStore]:
    queue = QueueStore(tmp_path / "queue.sqlite")
    try:
        yield queue
    finally:
        queue.close()
