"""Best-effort update of the remote scan counters after a sync pass.

Barcodes are already durable on the remote side by the time this runs, so
nothing here may fail the pass: every error is logged and counted.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field

from ..errors import RemoteError, StatsFailure
from ..remote import RemoteStore
from ..store import MUTATION_ADD, MUTATION_DELETE, Mutation
from ..utils import date_part

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanGroup:
    user_id: str
    date: str
    count: int


@dataclass
class StatsReport:
    incremented: int = 0
    decremented: int = 0
    users_recomputed: int = 0
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def group_by_user_and_date(mutations: Iterable[Mutation]) -> list[ScanGroup]:
    counts: dict[tuple[str, str], int] = {}
    for mutation in mutations:
        user_id = mutation.user_id
        if not user_id or not mutation.timestamp:
            continue
        key = (user_id, mutation.payload.get("scan_date") or date_part(mutation.timestamp))
        counts[key] = counts.get(key, 0) + 1
    return [ScanGroup(user_id=u, date=d, count=n) for (u, d), n in counts.items()]


def increment_daily_scans(remote: RemoteStore, user_id: str, date: str, count: int) -> None:
    try:
        existing = remote.get_daily_scan(user_id, date)
        if existing is not None:
            remote.update_daily_scan(existing["id"], existing["count"] + count)
        else:
            remote.insert_daily_scan(user_id, date, count)
    except RemoteError as exc:
        raise StatsFailure(f"increment daily scans for {user_id} on {date}: {exc}") from exc


def decrement_daily_scans(remote: RemoteStore, user_id: str, date: str, count: int) -> None:
    try:
        existing = remote.get_daily_scan(user_id, date)
        if existing is None:
            return
        remote.update_daily_scan(existing["id"], max(0, existing["count"] - count))
    except RemoteError as exc:
        raise StatsFailure(f"decrement daily scans for {user_id} on {date}: {exc}") from exc


def trigger_user_total_update(remote: RemoteStore, user_id: str) -> None:
    try:
        remote.recompute_user_total(user_id)
    except RemoteError as exc:
        raise StatsFailure(f"recompute total scans for {user_id}: {exc}") from exc


def reconcile_stats(remote: RemoteStore, synced: Iterable[Mutation]) -> StatsReport:
    synced = list(synced)
    report = StatsReport()
    adds = group_by_user_and_date(m for m in synced if m.kind == MUTATION_ADD)
    deletes = group_by_user_and_date(m for m in synced if m.kind == MUTATION_DELETE)
    if not adds and not deletes:
        return report
    logger.info("updating scan stats for %s user-date groups", len(adds) + len(deletes))

    def _attempt(step: Callable[..., None], *args: object) -> bool:
        try:
            step(*args)
        except Exception as exc:
            report.errors.append(str(exc))
            logger.warning("stats update failed: %s", exc, exc_info=exc)
            return False
        return True

    for group in adds:
        if _attempt(increment_daily_scans, remote, group.user_id, group.date, group.count):
            report.incremented += 1
    for group in deletes:
        if _attempt(decrement_daily_scans, remote, group.user_id, group.date, group.count):
            report.decremented += 1

    users = sorted({g.user_id for g in adds} | {g.user_id for g in deletes})
    for user_id in users:
        if _attempt(trigger_user_total_update, remote, user_id):
            report.users_recomputed += 1
    return report
