from __future__ import annotations

import pytest
from conftest import FakeRemoteStore

from fieldsync.errors import StatsFailure
from fieldsync.store import MUTATION_ADD, MUTATION_DELETE, MUTATION_UPDATE, Mutation
from fieldsync.sync.stats import (
    ScanGroup,
    decrement_daily_scans,
    group_by_user_and_date,
    increment_daily_scans,
    reconcile_stats,
)


def _mutation(mid: str, kind: str, user_id: str | None, ts: str) -> Mutation:
    return Mutation(
        id=mid,
        kind=kind,
        payload={"row_id": "R", "user_id": user_id, "timestamp": ts},
        created_at=ts,
    )


def test_group_by_user_and_date() -> None:
    mutations = [
        _mutation("a", MUTATION_ADD, "u1", "2024-05-01T08:00:00.000000+00:00"),
        _mutation("b", MUTATION_ADD, "u1", "2024-05-01T20:00:00.000000+00:00"),
        _mutation("c", MUTATION_ADD, "u1", "2024-05-02T08:00:00.000000+00:00"),
        _mutation("d", MUTATION_ADD, "u2", "2024-05-01T08:00:00.000000+00:00"),
        _mutation("e", MUTATION_ADD, None, "2024-05-01T08:00:00.000000+00:00"),
    ]

    groups = group_by_user_and_date(mutations)

    assert sorted(groups, key=lambda g: (g.user_id, g.date)) == [
        ScanGroup("u1", "2024-05-01", 2),
        ScanGroup("u1", "2024-05-02", 1),
        ScanGroup("u2", "2024-05-01", 1),
    ]


def test_increment_inserts_then_updates(remote: FakeRemoteStore) -> None:
    increment_daily_scans(remote, "u1", "2024-05-01", 2)
    increment_daily_scans(remote, "u1", "2024-05-01", 3)
    assert remote.daily_scans[("u1", "2024-05-01")]["count"] == 5


def test_decrement_floors_at_zero(remote: FakeRemoteStore) -> None:
    decrement_daily_scans(remote, "u1", "2024-05-01", 1)
    assert remote.daily_scans == {}

    increment_daily_scans(remote, "u1", "2024-05-01", 1)
    decrement_daily_scans(remote, "u1", "2024-05-01", 4)
    assert remote.daily_scans[("u1", "2024-05-01")]["count"] == 0


def test_remote_errors_become_stats_failures(remote: FakeRemoteStore) -> None:
    remote.fail_stats = True
    with pytest.raises(StatsFailure, match="u1"):
        increment_daily_scans(remote, "u1", "2024-05-01", 1)


def test_reconcile_stats_counts_adds_and_deletes(remote: FakeRemoteStore) -> None:
    ts = "2024-05-01T08:00:00.000000+00:00"
    synced = [
        _mutation("a", MUTATION_ADD, "u1", ts),
        _mutation("b", MUTATION_ADD, "u1", ts),
        _mutation("c", MUTATION_DELETE, "u1", ts),
        _mutation("d", MUTATION_UPDATE, "u2", ts),
    ]

    report = reconcile_stats(remote, synced)

    assert report.ok
    assert (report.incremented, report.decremented, report.users_recomputed) == (1, 1, 1)
    assert remote.daily_scans[("u1", "2024-05-01")]["count"] == 1
    assert remote.recomputed == ["u1"]


def test_reconcile_stats_never_raises(remote: FakeRemoteStore) -> None:
    remote.fail_stats = True
    ts = "2024-05-01T08:00:00.000000+00:00"

    report = reconcile_stats(remote, [_mutation("a", MUTATION_ADD, "u1", ts)])

    assert not report.ok
    assert len(report.errors) == 2
    assert report.incremented == 0


def test_group_by_scanner_local_date() -> None:
    late_evening = _mutation("a", MUTATION_ADD, "u1", "2024-05-02T04:30:00.000000+00:00")
    late_evening.payload["scan_date"] = "2024-05-01"

    assert group_by_user_and_date([late_evening]) == [ScanGroup("u1", "2024-05-01", 1)]
